"""Dependencies for enrollments module."""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends

from src.enrollments.service import EnrollmentService


_enrollment_service_getter: Callable[[], EnrollmentService] | None = None


def set_enrollment_service_getter(getter: Callable[[], EnrollmentService]) -> None:
    """Set the enrollment service getter function (called by main.py)."""
    global _enrollment_service_getter  # noqa: PLW0603
    _enrollment_service_getter = getter


def get_enrollment_service() -> EnrollmentService:
    """Get the enrollment service built at startup."""
    if _enrollment_service_getter is None:
        msg = "EnrollmentService not configured"
        raise RuntimeError(msg)
    return _enrollment_service_getter()


EnrollmentServiceDep = Annotated[EnrollmentService, Depends(get_enrollment_service)]
