"""Content access filtering for course reads.

Lecture content is visible only to enrolled students, the course instructor
and admins. Everyone else sees the course skeleton with empty lecture lists.
Retained storage keys are turned into signed URLs concurrently; a key that
cannot be signed in time degrades to an ``unavailable`` field instead of
failing the request.
"""

import asyncio
from typing import Protocol
from uuid import UUID

from src.auth.permissions import can_manage_course
from src.auth.schemas import AuthenticatedUser
from src.core.logging import get_logger
from src.courses.models import Course, Lecture, Section
from src.courses.schemas import (
    CourseResponse,
    LectureResponse,
    SectionResponse,
    SignedMedia,
)
from src.storage.service import SignedUrl


logger = get_logger(__name__)

DEFAULT_SIGN_TIMEOUT = 5.0


class BlobStore(Protocol):
    async def get_signed_url(self, key: str) -> SignedUrl: ...


def can_view_lectures(
    course: Course,
    viewer: AuthenticatedUser,
    enrolled_course_ids: set[UUID],
) -> bool:
    """Instructor, admin or enrolled student."""
    if can_manage_course(viewer.role, viewer.id, course.instructor_id):
        return True
    return course.id in enrolled_course_ids


def redact_course(course: Course, include_lectures: bool) -> Course:
    """Return a copy of ``course``; lectures are emptied unless included."""
    copy = course.clone()
    if not include_lectures:
        for section in copy.sections:
            section.lectures = []
    return copy


# ==============================================================================
# URL resolution
# ==============================================================================


class _Resolver:
    """Signs every distinct key once, all at the same time."""

    def __init__(self, blob_store: BlobStore, timeout: float):
        self.blob_store = blob_store
        self.timeout = timeout
        self.resolved: dict[str, SignedMedia] = {}

    async def _sign(self, key: str) -> SignedMedia:
        try:
            signed = await asyncio.wait_for(
                self.blob_store.get_signed_url(key), timeout=self.timeout
            )
        except TimeoutError:
            logger.warning("media_sign_timeout", storage_key=key)
            return SignedMedia(url=None, status="unavailable")
        except Exception as e:
            logger.warning("media_unavailable", storage_key=key, error=str(e))
            return SignedMedia(url=None, status="unavailable")
        return SignedMedia(url=signed.url, expires_at=signed.expires_at)

    async def resolve(self, keys: set[str]) -> None:
        pending = sorted(k for k in keys if k and k not in self.resolved)
        results = await asyncio.gather(*(self._sign(k) for k in pending))
        self.resolved.update(zip(pending, results, strict=True))

    def media(self, key: str | None) -> SignedMedia | None:
        if not key:
            return None
        return self.resolved[key]


def _collect_keys(course: Course, with_sections: bool = True) -> set[str]:
    keys: set[str] = set()
    if course.thumbnail_key:
        keys.add(course.thumbnail_key)
    if not with_sections:
        return keys
    for section in course.sections:
        for lecture in section.lectures:
            if lecture.video_key:
                keys.add(lecture.video_key)
            keys.update(k for k in lecture.resource_keys if k)
    return keys


def _lecture_response(lecture: Lecture, resolver: _Resolver) -> LectureResponse:
    return LectureResponse(
        id=lecture.id,
        title=lecture.title,
        content=lecture.content,
        duration=lecture.duration,
        video=resolver.media(lecture.video_key),
        resources=[resolver.media(k) for k in lecture.resource_keys if k],
    )


def _section_response(section: Section, resolver: _Resolver) -> SectionResponse:
    return SectionResponse(
        id=section.id,
        title=section.title,
        order=section.order,
        lectures=[_lecture_response(lec, resolver) for lec in section.lectures],
    )


def _course_response(course: Course, resolver: _Resolver) -> CourseResponse:
    return CourseResponse(
        id=course.id,
        title=course.title,
        description=course.description,
        price=course.price,
        instructor_id=course.instructor_id,
        category=course.category,
        difficulty=course.difficulty,
        tags=list(course.tags),
        thumbnail=resolver.media(course.thumbnail_key),
        sections=[_section_response(s, resolver) for s in course.sections],
        created_at=course.created_at,
        updated_at=course.updated_at,
    )


# ==============================================================================
# Projections
# ==============================================================================


async def project_courses(
    courses: list[Course],
    viewer: AuthenticatedUser,
    enrolled_course_ids: set[UUID],
    blob_store: BlobStore,
    timeout: float = DEFAULT_SIGN_TIMEOUT,
) -> list[CourseResponse]:
    """Redact and sign a list of courses with a single round of signing."""
    redacted = [
        redact_course(c, can_view_lectures(c, viewer, enrolled_course_ids))
        for c in courses
    ]
    resolver = _Resolver(blob_store, timeout)
    keys: set[str] = set()
    for course in redacted:
        keys |= _collect_keys(course)
    await resolver.resolve(keys)
    return [_course_response(c, resolver) for c in redacted]


async def project_course(
    course: Course,
    viewer: AuthenticatedUser,
    enrolled_course_ids: set[UUID],
    blob_store: BlobStore,
    timeout: float = DEFAULT_SIGN_TIMEOUT,
) -> CourseResponse:
    """Redact and sign one course for ``viewer``."""
    projected = await project_courses(
        [course], viewer, enrolled_course_ids, blob_store, timeout
    )
    return projected[0]


async def project_sections(
    course: Course,
    viewer: AuthenticatedUser,
    enrolled_course_ids: set[UUID],
    blob_store: BlobStore,
    timeout: float = DEFAULT_SIGN_TIMEOUT,
) -> list[SectionResponse]:
    """Sections of one course, redacted like the full course."""
    projected = await project_course(
        course, viewer, enrolled_course_ids, blob_store, timeout
    )
    return projected.sections


def project_section(section: Section) -> SectionResponse:
    """Single-section fetch: lectures are never included, for any viewer."""
    return SectionResponse(
        id=section.id,
        title=section.title,
        order=section.order,
        lectures=[],
    )
