"""Payment models and Cassandra schema.

A payment snapshots the course title and price when checkout starts, so the
receipt and the history stay correct if the course changes later.

Status transitions:
- PENDING -> COMPLETED (webhook: checkout.session.completed)
- PENDING -> FAILED (gateway error, session expired, async payment failed)
COMPLETED and FAILED are terminal.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4


if TYPE_CHECKING:
    from cassandra.cluster import Row


class PaymentStatus(str, Enum):
    """Lifecycle of a payment."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

PAYMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.payments (
    id UUID PRIMARY KEY,
    user_id UUID,
    course_id UUID,
    user_email TEXT,
    course_title TEXT,
    amount DECIMAL,
    currency TEXT,
    status TEXT,
    gateway_session_id TEXT,
    gateway_payment_intent_id TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    completed_at TIMESTAMP
)
"""

# History lookup: a user's payments, newest first
PAYMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.payments_by_user (
    user_id UUID,
    created_at TIMESTAMP,
    payment_id UUID,
    PRIMARY KEY ((user_id), created_at, payment_id)
) WITH CLUSTERING ORDER BY (created_at DESC, payment_id ASC)
"""

PAYMENTS_TABLES_CQL = [
    PAYMENTS_TABLE_CQL,
    PAYMENTS_BY_USER_TABLE_CQL,
]


# ==============================================================================
# Entity
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


@dataclass
class Payment:
    """One checkout attempt for one course."""

    user_id: UUID
    course_id: UUID
    user_email: str
    course_title: str
    amount: Decimal
    currency: str
    status: PaymentStatus = PaymentStatus.PENDING
    gateway_session_id: str | None = None
    gateway_payment_intent_id: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    @classmethod
    def from_row(cls, row: "Row") -> "Payment":
        """Create instance from Cassandra row."""
        return cls(
            id=row.id,
            user_id=row.user_id,
            course_id=row.course_id,
            user_email=row.user_email,
            course_title=row.course_title,
            amount=row.amount,
            currency=row.currency,
            status=PaymentStatus(row.status),
            gateway_session_id=row.gateway_session_id,
            gateway_payment_intent_id=row.gateway_payment_intent_id,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            updated_at=ensure_utc_aware(row.updated_at) or datetime.now(UTC),
            completed_at=ensure_utc_aware(row.completed_at),
        )

    @property
    def is_pending(self) -> bool:
        return self.status == PaymentStatus.PENDING
