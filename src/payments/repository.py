# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Cassandra persistence for payments.

Status changes are lightweight transactions guarded by ``IF status =
'pending'``; the database decides which concurrent writer wins.
"""

import asyncio
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from cassandra.query import BatchStatement, BatchType

from src.payments.models import Payment, PaymentStatus


if TYPE_CHECKING:
    from cassandra.cluster import Session


class PaymentRepository:
    """Payments plus the per-user history lookup table."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._insert_payment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.payments
            (id, user_id, course_id, user_email, course_title, amount, currency,
             status, gateway_session_id, gateway_payment_intent_id,
             created_at, updated_at, completed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._insert_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.payments_by_user
            (user_id, created_at, payment_id)
            VALUES (?, ?, ?)
        """)
        self._get_payment = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.payments WHERE id = ?"
        )
        self._list_by_user = self.session.prepare(f"""
            SELECT payment_id FROM {self.keyspace}.payments_by_user
            WHERE user_id = ?
        """)
        self._set_session_id = self.session.prepare(f"""
            UPDATE {self.keyspace}.payments
            SET gateway_session_id = ?, updated_at = ?
            WHERE id = ?
            IF status = ?
        """)
        self._complete = self.session.prepare(f"""
            UPDATE {self.keyspace}.payments
            SET status = ?, gateway_payment_intent_id = ?,
                completed_at = ?, updated_at = ?
            WHERE id = ?
            IF status = ?
        """)
        self._mark_failed = self.session.prepare(f"""
            UPDATE {self.keyspace}.payments
            SET status = ?, updated_at = ?
            WHERE id = ?
            IF status = ?
        """)

    async def insert(self, payment: Payment) -> Payment:
        """Persist a new payment and its history entry in one logged batch."""
        batch = BatchStatement(batch_type=BatchType.LOGGED)
        batch.add(
            self._insert_payment,
            [
                payment.id,
                payment.user_id,
                payment.course_id,
                payment.user_email,
                payment.course_title,
                payment.amount,
                payment.currency,
                payment.status.value,
                payment.gateway_session_id,
                payment.gateway_payment_intent_id,
                payment.created_at,
                payment.updated_at,
                payment.completed_at,
            ],
        )
        batch.add(
            self._insert_by_user,
            [payment.user_id, payment.created_at, payment.id],
        )
        await self.session.aexecute(batch)
        return payment

    async def get(self, payment_id: UUID) -> Payment | None:
        result = await self.session.aexecute(self._get_payment, [payment_id])
        row = result.one()
        return Payment.from_row(row) if row else None

    async def set_session_id(self, payment_id: UUID, session_id: str) -> bool:
        """Record the gateway session while the payment is still pending."""
        result = await self.session.aexecute(
            self._set_session_id,
            [session_id, datetime.now(UTC), payment_id, PaymentStatus.PENDING.value],
        )
        return result.was_applied

    async def complete(self, payment_id: UUID, payment_intent_id: str | None) -> bool:
        """Transition pending -> completed.

        Returns:
            True if this call performed the transition.
        """
        now = datetime.now(UTC)
        result = await self.session.aexecute(
            self._complete,
            [
                PaymentStatus.COMPLETED.value,
                payment_intent_id,
                now,
                now,
                payment_id,
                PaymentStatus.PENDING.value,
            ],
        )
        return result.was_applied

    async def mark_failed(self, payment_id: UUID) -> bool:
        """Transition pending -> failed.

        Returns:
            True if this call performed the transition.
        """
        result = await self.session.aexecute(
            self._mark_failed,
            [
                PaymentStatus.FAILED.value,
                datetime.now(UTC),
                payment_id,
                PaymentStatus.PENDING.value,
            ],
        )
        return result.was_applied

    async def list_for_user(self, user_id: UUID) -> list[Payment]:
        """A user's payments, newest first."""
        rows = await self.session.aexecute(self._list_by_user, [user_id])
        payments = await asyncio.gather(*(self.get(row.payment_id) for row in rows))
        return [p for p in payments if p is not None]
