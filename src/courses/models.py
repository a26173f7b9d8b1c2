"""Course aggregate and its Cassandra table.

A course owns its sections and each section owns its lectures. Sections and
lectures have no life of their own, so the whole tree is stored on the
course row (``sections`` is a JSON document) and every write replaces the
aggregate conditionally on ``version``.
"""

import copy
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4


if TYPE_CHECKING:
    from cassandra.cluster import Row


class CourseCategory(str, Enum):
    """Catalog category."""

    DEVELOPMENT = "development"
    BUSINESS = "business"
    DESIGN = "design"
    MARKETING = "marketing"
    IT_SOFTWARE = "it_software"
    PERSONAL_DEVELOPMENT = "personal_development"
    PHOTOGRAPHY = "photography"
    MUSIC = "music"
    HEALTH = "health"
    OTHER = "other"


class CourseDifficulty(str, Enum):
    """Target audience level."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    description TEXT,
    price DECIMAL,
    instructor_id UUID,
    thumbnail_key TEXT,
    category TEXT,
    difficulty TEXT,
    tags LIST<TEXT>,
    sections TEXT,
    version INT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

COURSES_TABLES_CQL = [
    COURSE_TABLE_CQL,
]


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Lecture:
    """Lecture embedded in a section."""

    title: str
    content: str
    duration: float = 0
    video_key: str | None = None
    resource_keys: list[str] = field(default_factory=list)
    id: UUID = field(default_factory=uuid4)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Lecture":
        return cls(
            id=UUID(data["id"]),
            title=data["title"],
            content=data.get("content", ""),
            duration=data.get("duration", 0),
            video_key=data.get("video_key"),
            resource_keys=list(data.get("resource_keys") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "title": self.title,
            "content": self.content,
            "duration": self.duration,
            "video_key": self.video_key,
            "resource_keys": list(self.resource_keys),
        }


@dataclass
class Section:
    """Section embedded in a course. ``order`` is display-only."""

    title: str
    order: int
    lectures: list[Lecture] = field(default_factory=list)
    id: UUID = field(default_factory=uuid4)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Section":
        return cls(
            id=UUID(data["id"]),
            title=data["title"],
            order=data.get("order", 1),
            lectures=[Lecture.from_dict(item) for item in data.get("lectures") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "title": self.title,
            "order": self.order,
            "lectures": [lecture.to_dict() for lecture in self.lectures],
        }

    def find_lecture(self, lecture_id: UUID) -> Lecture | None:
        """Locate a lecture of this section by identity."""
        return next((lec for lec in self.lectures if lec.id == lecture_id), None)


@dataclass
class Course:
    """Course aggregate root.

    Attributes:
        id: Unique identifier
        title: Course title
        description: Course description
        price: Non-negative price in the checkout currency
        instructor_id: Owning instructor
        category: Catalog category
        difficulty: Audience level
        tags: Free-form search tags
        thumbnail_key: Storage key of the cover image
        sections: Ordered sections (each with ordered lectures)
        version: Optimistic concurrency counter, bumped on every write
    """

    title: str
    description: str
    price: Decimal
    instructor_id: UUID
    category: CourseCategory
    difficulty: CourseDifficulty
    tags: list[str] = field(default_factory=list)
    thumbnail_key: str | None = None
    sections: list[Section] = field(default_factory=list)
    id: UUID = field(default_factory=uuid4)
    version: int = 1
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: "Row") -> "Course":
        """Create Course instance from Cassandra row."""
        raw_sections = json.loads(row.sections) if row.sections else []
        return cls(
            id=row.id,
            title=row.title,
            description=row.description or "",
            price=row.price if row.price is not None else Decimal("0"),
            instructor_id=row.instructor_id,
            category=CourseCategory(row.category),
            difficulty=CourseDifficulty(row.difficulty),
            tags=list(row.tags or []),
            thumbnail_key=row.thumbnail_key,
            sections=[Section.from_dict(item) for item in raw_sections],
            version=row.version or 1,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            updated_at=ensure_utc_aware(row.updated_at),
        )

    def sections_json(self) -> str:
        """Serialize the embedded tree for the ``sections`` column."""
        return json.dumps([section.to_dict() for section in self.sections])

    def find_section(self, section_id: UUID) -> Section | None:
        """Locate a section of this course by identity."""
        return next((sec for sec in self.sections if sec.id == section_id), None)

    def clone(self) -> "Course":
        """Deep copy; mutations on the copy never touch the original."""
        return copy.deepcopy(self)

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on title, description and tags."""
        needle = query.casefold()
        if needle in self.title.casefold() or needle in self.description.casefold():
            return True
        return any(needle in tag.casefold() for tag in self.tags)

    def __repr__(self) -> str:
        return f"<Course {self.title} v{self.version}>"
