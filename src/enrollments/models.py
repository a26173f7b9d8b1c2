"""Enrollment ledger model and Cassandra schema.

An enrollment is the (user, course) membership created when a payment for
that pair completes. Rows are never updated or deleted.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID


if TYPE_CHECKING:
    from cassandra.cluster import Row


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    user_id UUID,
    course_id UUID,
    payment_id UUID,
    enrolled_at TIMESTAMP,
    PRIMARY KEY ((user_id), course_id)
)
"""

ENROLLMENTS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
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
class Enrollment:
    """A user's membership in a course."""

    user_id: UUID
    course_id: UUID
    payment_id: UUID | None = None
    enrolled_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: "Row") -> "Enrollment":
        """Create instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            payment_id=row.payment_id,
            enrolled_at=ensure_utc_aware(row.enrolled_at) or datetime.now(UTC),
        )
