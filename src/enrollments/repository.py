# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Cassandra persistence for the enrollment ledger."""

from typing import TYPE_CHECKING
from uuid import UUID

from src.enrollments.models import Enrollment


if TYPE_CHECKING:
    from cassandra.cluster import Session


class EnrollmentRepository:
    """Append-only (user, course) membership rows."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (user_id, course_id, payment_id, enrolled_at)
            VALUES (?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE user_id = ? AND course_id = ?
        """)
        self._list_by_user = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.enrollments WHERE user_id = ?"
        )

    async def insert_if_absent(self, enrollment: Enrollment) -> bool:
        """Insert the membership unless it already exists.

        Returns:
            True if this call created the row.
        """
        result = await self.session.aexecute(
            self._insert_enrollment,
            [
                enrollment.user_id,
                enrollment.course_id,
                enrollment.payment_id,
                enrollment.enrolled_at,
            ],
        )
        return result.was_applied

    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        result = await self.session.aexecute(self._get_enrollment, [user_id, course_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def list_for_user(self, user_id: UUID) -> list[Enrollment]:
        rows = await self.session.aexecute(self._list_by_user, [user_id])
        return [Enrollment.from_row(row) for row in rows]
