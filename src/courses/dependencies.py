"""FastAPI dependencies for course management.

Provides dependency injection for:
- The course service
- The set of courses the caller may see in full
"""

from collections.abc import Callable
from typing import Annotated
from uuid import UUID

from fastapi import Depends

from src.auth.dependencies import CurrentUser
from src.courses.service import CourseService
from src.enrollments.dependencies import EnrollmentServiceDep


# ==============================================================================
# Service Getters (set by main.py)
# ==============================================================================

_course_service_getter: Callable[[], CourseService] | None = None
_sign_timeout_getter: Callable[[], float] | None = None


def set_course_service_getter(getter: Callable[[], CourseService]) -> None:
    """Set the course service getter function."""
    global _course_service_getter  # noqa: PLW0603
    _course_service_getter = getter


def set_sign_timeout_getter(getter: Callable[[], float]) -> None:
    """Set the signed-URL timeout getter function."""
    global _sign_timeout_getter  # noqa: PLW0603
    _sign_timeout_getter = getter


def get_course_service() -> CourseService:
    """Get CourseService instance from app state."""
    if _course_service_getter is None:
        msg = "CourseService not configured"
        raise RuntimeError(msg)
    return _course_service_getter()


def get_sign_timeout() -> float:
    """Seconds allowed for signing the media of one response."""
    if _sign_timeout_getter is None:
        return 5.0
    return _sign_timeout_getter()


async def get_enrolled_course_ids(
    current_user: CurrentUser,
    enrollment_service: EnrollmentServiceDep,
) -> set[UUID]:
    """Courses the caller is enrolled in."""
    return await enrollment_service.enrolled_course_ids(current_user.id)


# ==============================================================================
# Type Aliases for Dependencies
# ==============================================================================

CourseServiceDep = Annotated[CourseService, Depends(get_course_service)]
EnrolledCourseIds = Annotated[set[UUID], Depends(get_enrolled_course_ids)]
SignTimeout = Annotated[float, Depends(get_sign_timeout)]
