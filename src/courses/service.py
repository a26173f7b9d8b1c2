"""Course management service layer.

Business logic for:
- Course creation and lookup
- Section and lecture appends (owner or admin only)
- Targeted media updates on a single course/section/lecture path
- Catalog listing and search with 1-based pagination

Every mutation follows the same loop: read the aggregate, apply the change
to a copy, write it back conditionally on ``version`` and retry on conflict.
A mutation that cannot resolve its target raises before anything is written.
"""

import math
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from src.auth.permissions import can_manage_course, is_admin
from src.auth.schemas import AuthenticatedUser
from src.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from src.core.logging import get_logger
from src.courses.models import Course, Lecture, Section
from src.courses.schemas import (
    CreateCourseRequest,
    CreateLectureRequest,
    CreateSectionRequest,
)


if TYPE_CHECKING:
    from src.courses.repository import CourseRepository


logger = get_logger(__name__)

DEFAULT_MAX_RETRIES = 5


# ==============================================================================
# Errors
# ==============================================================================


class CourseNotFoundError(NotFoundError):
    """Course not found."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class SectionNotFoundError(NotFoundError):
    """Section does not belong to the course."""

    def __init__(self, message: str = "Section not found"):
        super().__init__(message, "section_not_found")


class LectureNotFoundError(NotFoundError):
    """Lecture does not belong to the section."""

    def __init__(self, message: str = "Lecture not found"):
        super().__init__(message, "lecture_not_found")


class CourseAccessDeniedError(ForbiddenError):
    """Caller may not modify this course."""

    def __init__(self, message: str = "You are not authorized to modify this course"):
        super().__init__(message, "course_forbidden")


# ==============================================================================
# Paging
# ==============================================================================


@dataclass
class Page:
    """A slice of a filtered, ordered collection."""

    items: list[Course]
    total_items: int
    items_per_page: int
    current_page: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_items / self.items_per_page)


def paginate(courses: list[Course], page: int, limit: int) -> Page:
    """Slice an ordered list using 1-based page numbers."""
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1:
        raise ValidationError("limit must be >= 1")
    start = (page - 1) * limit
    return Page(
        items=courses[start : start + limit],
        total_items=len(courses),
        items_per_page=limit,
        current_page=page,
    )


# ==============================================================================
# Validation helpers
# ==============================================================================


def _require_text(value: str | None, field_name: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def _locate_lecture(
    course: Course, section_id: UUID, lecture_id: UUID
) -> tuple[Section, Lecture]:
    section = course.find_section(section_id)
    if section is None:
        raise SectionNotFoundError
    lecture = section.find_lecture(lecture_id)
    if lecture is None:
        raise LectureNotFoundError
    return section, lecture


# ==============================================================================
# Course Service
# ==============================================================================


class CourseService:
    """Service for the course aggregate."""

    def __init__(
        self,
        repository: "CourseRepository",
        max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        self.repository = repository
        self.max_retries = max_retries

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get_course(self, course_id: UUID) -> Course:
        """Get a course or raise CourseNotFoundError."""
        course = await self.repository.get(course_id)
        if course is None:
            raise CourseNotFoundError
        return course

    async def list_courses(self, page: int = 1, limit: int = 10) -> Page:
        """Catalog page, newest first."""
        courses = await self.repository.list_all()
        courses.sort(key=lambda c: c.created_at, reverse=True)
        return paginate(courses, page, limit)

    async def search_courses(self, query: str, page: int = 1, limit: int = 10) -> Page:
        """Case-insensitive search over title, description and tags."""
        courses = [c for c in await self.repository.list_all() if c.matches(query)]
        courses.sort(key=lambda c: c.created_at, reverse=True)
        logger.debug("courses_searched", query=query, matches=len(courses))
        return paginate(courses, page, limit)

    # ==========================================================================
    # Creation
    # ==========================================================================

    async def create_course(
        self, data: CreateCourseRequest, instructor_id: UUID
    ) -> Course:
        """Create a course owned by ``instructor_id``.

        Raises:
            ValidationError: Blank title/description or negative price.
        """
        if data.price is None or Decimal(data.price) < 0:
            raise ValidationError("price must be non-negative")

        course = Course(
            title=_require_text(data.title, "title"),
            description=_require_text(data.description, "description"),
            price=Decimal(data.price),
            instructor_id=instructor_id,
            category=data.category,
            difficulty=data.difficulty,
            tags=[tag.strip() for tag in data.tags if tag and tag.strip()],
            thumbnail_key=data.thumbnail,
        )
        await self.repository.insert(course)
        logger.info(
            "course_created",
            course_id=str(course.id),
            instructor_id=str(instructor_id),
        )
        return course

    # ==========================================================================
    # Authorization
    # ==========================================================================

    async def ensure_can_modify(self, course_id: UUID, actor: AuthenticatedUser) -> Course:
        """Return the course if ``actor`` may modify it.

        Non-admins get CourseAccessDeniedError for a missing course too, so the
        response does not reveal whether the course exists.
        """
        course = await self.repository.get(course_id)
        if course is None:
            if is_admin(actor.role):
                raise CourseNotFoundError
            raise CourseAccessDeniedError
        if not can_manage_course(actor.role, actor.id, course.instructor_id):
            logger.warning(
                "course_modification_denied",
                course_id=str(course_id),
                actor_id=str(actor.id),
                actor_role=actor.role.value,
            )
            raise CourseAccessDeniedError
        return course

    async def ensure_can_modify_lecture(
        self,
        course_id: UUID,
        section_id: UUID,
        lecture_id: UUID,
        actor: AuthenticatedUser,
    ) -> Course:
        """Authorize ``actor`` and check the lecture path before an upload."""
        course = await self.ensure_can_modify(course_id, actor)
        _locate_lecture(course, section_id, lecture_id)
        return course

    # ==========================================================================
    # Mutations
    # ==========================================================================

    async def _mutate(self, course_id: UUID, change: Callable[[Course], None]) -> Course:
        """Apply ``change`` to a fresh copy and write it conditionally.

        Raises:
            CourseNotFoundError: Course vanished.
            NotFoundError: ``change`` could not resolve its target.
            ConflictError: Lost the race ``max_retries`` times in a row.
        """
        for attempt in range(1, self.max_retries + 1):
            current = await self.get_course(course_id)
            candidate = current.clone()
            change(candidate)
            candidate.version = current.version + 1
            if await self.repository.replace(candidate, expected_version=current.version):
                return candidate
            logger.debug(
                "course_write_retry",
                course_id=str(course_id),
                attempt=attempt,
            )
        logger.warning("course_write_gave_up", course_id=str(course_id))
        raise ConflictError(
            "Course was modified concurrently, please retry", "course_write_conflict"
        )

    async def append_section(
        self,
        course_id: UUID,
        data: CreateSectionRequest,
        actor: AuthenticatedUser,
    ) -> Course:
        """Append a section to the end of the course."""
        await self.ensure_can_modify(course_id, actor)
        if data.order < 1:
            raise ValidationError("order must be >= 1")
        section = Section(title=_require_text(data.title, "title"), order=data.order)

        def change(course: Course) -> None:
            course.sections.append(section)

        course = await self._mutate(course_id, change)
        logger.info(
            "section_appended",
            course_id=str(course_id),
            section_id=str(section.id),
        )
        return course

    async def append_lecture(
        self,
        course_id: UUID,
        section_id: UUID,
        data: CreateLectureRequest,
        actor: AuthenticatedUser,
    ) -> Course:
        """Append a lecture to the end of one section."""
        await self.ensure_can_modify(course_id, actor)
        if data.duration < 0:
            raise ValidationError("duration must be non-negative")
        lecture = Lecture(
            title=_require_text(data.title, "title"),
            content=data.content,
            duration=data.duration,
            video_key=data.video_url,
            resource_keys=list(data.resource_urls),
        )

        def change(course: Course) -> None:
            section = course.find_section(section_id)
            if section is None:
                raise SectionNotFoundError
            section.lectures.append(lecture)

        course = await self._mutate(course_id, change)
        logger.info(
            "lecture_appended",
            course_id=str(course_id),
            section_id=str(section_id),
            lecture_id=str(lecture.id),
        )
        return course

    async def set_thumbnail(self, course_id: UUID, key: str) -> Course:
        """Point the course at a new thumbnail object."""

        def change(course: Course) -> None:
            course.thumbnail_key = key

        return await self._mutate(course_id, change)

    async def append_lecture_resources(
        self,
        course_id: UUID,
        section_id: UUID,
        lecture_id: UUID,
        keys: list[str],
    ) -> Course:
        """Add resource objects to one lecture."""

        def change(course: Course) -> None:
            _, lecture = _locate_lecture(course, section_id, lecture_id)
            lecture.resource_keys.extend(keys)

        return await self._mutate(course_id, change)

    async def set_lecture_video(
        self,
        course_id: UUID,
        section_id: UUID,
        lecture_id: UUID,
        key: str,
    ) -> Course:
        """Replace the video object of one lecture."""

        def change(course: Course) -> None:
            _, lecture = _locate_lecture(course, section_id, lecture_id)
            lecture.video_key = key

        return await self._mutate(course_id, change)
