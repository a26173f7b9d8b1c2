"""Pydantic schemas for course management.

Request and response models for:
- Courses: creation, catalog pages and search
- Sections and lectures: appends
- Media: signed retrieval links with per-field availability
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import Field

from src.core.schemas import ApiModel
from src.courses.models import CourseCategory, CourseDifficulty


# ==============================================================================
# Requests
# ==============================================================================
# Domain rules (non-negative price, non-blank text, order >= 1) are enforced by
# CourseService so that direct callers get the same ValidationError.


class CreateCourseRequest(ApiModel):
    """Course creation request."""

    title: str = Field(..., max_length=200, description="Course title")
    description: str = Field(..., max_length=5000, description="Course description")
    price: Decimal = Field(..., description="Course price")
    category: CourseCategory
    difficulty: CourseDifficulty
    tags: list[str] = Field(default_factory=list, description="Search tags")
    thumbnail: str | None = Field(None, description="Existing thumbnail storage key")


class CreateSectionRequest(ApiModel):
    """Section append request."""

    title: str = Field(..., max_length=200)
    order: int = Field(..., description="Display order, starts at 1")


class CreateLectureRequest(ApiModel):
    """Lecture append request."""

    title: str = Field(..., max_length=200)
    content: str = Field(..., description="Lecture text")
    video_url: str | None = Field(None, description="Existing video storage key")
    resource_urls: list[str] = Field(
        default_factory=list, description="Existing resource storage keys"
    )
    duration: float = Field(0, description="Duration in seconds")


# ==============================================================================
# Responses
# ==============================================================================


class SignedMedia(ApiModel):
    """Retrieval link for one stored object.

    ``status == "unavailable"`` means signing failed or timed out; the rest of
    the response is still valid.
    """

    url: str | None = None
    expires_at: datetime | None = None
    status: Literal["available", "unavailable"] = "available"


class LectureResponse(ApiModel):
    """Lecture visible to an entitled viewer."""

    id: UUID
    title: str
    content: str
    duration: float
    video: SignedMedia | None = None
    resources: list[SignedMedia] = Field(default_factory=list)


class SectionResponse(ApiModel):
    """Section with its (possibly redacted) lectures."""

    id: UUID
    title: str
    order: int
    lectures: list[LectureResponse] = Field(default_factory=list)


class CourseResponse(ApiModel):
    """Course as seen by a particular viewer."""

    id: UUID
    title: str
    description: str
    price: Decimal
    instructor_id: UUID
    category: CourseCategory
    difficulty: CourseDifficulty
    tags: list[str]
    thumbnail: SignedMedia | None = None
    sections: list[SectionResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime | None = None


class PageMeta(ApiModel):
    """Pagination metadata."""

    total_items: int
    items_per_page: int
    total_pages: int
    current_page: int


class CoursePageResponse(ApiModel):
    """One catalog page."""

    items: list[CourseResponse]
    meta: PageMeta
