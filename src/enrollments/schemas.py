"""Pydantic schemas for enrollments."""

from datetime import datetime
from uuid import UUID

from src.core.schemas import ApiModel


class EnrollmentResponse(ApiModel):
    """One course the caller is enrolled in."""

    course_id: UUID
    payment_id: UUID | None = None
    enrolled_at: datetime


class EnrollmentCheckResponse(ApiModel):
    """Whether the caller is enrolled in a course."""

    course_id: UUID
    enrolled: bool
