# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Cassandra persistence for the course aggregate."""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from src.core.logging import get_logger
from src.courses.models import Course


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = get_logger(__name__)


class CourseRepository:
    """Reads and conditionally writes whole course aggregates."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._insert_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.courses
            (id, title, description, price, instructor_id, thumbnail_key,
             category, difficulty, tags, sections, version, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._get_course = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses WHERE id = ?"
        )
        self._list_courses = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses"
        )
        # Lightweight transaction: only the writer holding the current version wins
        self._replace_course = self.session.prepare(f"""
            UPDATE {self.keyspace}.courses
            SET title = ?, description = ?, price = ?, thumbnail_key = ?,
                category = ?, difficulty = ?, tags = ?, sections = ?,
                version = ?, updated_at = ?
            WHERE id = ?
            IF version = ?
        """)

    async def insert(self, course: Course) -> Course:
        """Persist a brand-new course."""
        await self.session.aexecute(
            self._insert_course,
            [
                course.id,
                course.title,
                course.description,
                course.price,
                course.instructor_id,
                course.thumbnail_key,
                course.category.value,
                course.difficulty.value,
                course.tags,
                course.sections_json(),
                course.version,
                course.created_at,
                course.updated_at,
            ],
        )
        return course

    async def get(self, course_id: UUID) -> Course | None:
        """Fetch a course by id."""
        result = await self.session.aexecute(self._get_course, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def list_all(self) -> list[Course]:
        """Fetch every course (catalog scans filter in memory)."""
        rows = await self.session.aexecute(self._list_courses)
        return [Course.from_row(row) for row in rows]

    async def replace(self, course: Course, expected_version: int) -> bool:
        """Write the aggregate if nobody else changed it in the meantime.

        ``course.version`` must already hold the new version number.

        Returns:
            True if the write was applied, False on a version conflict.
        """
        course.updated_at = datetime.now(UTC)
        result = await self.session.aexecute(
            self._replace_course,
            [
                course.title,
                course.description,
                course.price,
                course.thumbnail_key,
                course.category.value,
                course.difficulty.value,
                course.tags,
                course.sections_json(),
                course.version,
                course.updated_at,
                course.id,
                expected_version,
            ],
        )
        applied = result.was_applied
        if not applied:
            logger.info(
                "course_version_conflict",
                course_id=str(course.id),
                expected_version=expected_version,
            )
        return applied
