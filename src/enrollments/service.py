"""Enrollment ledger service.

Memberships are append-only, so positive lookups are cached in Redis
(``enrollment:{user}:{course}``) and grants write the key through. Negative
lookups are never cached.
"""

from typing import TYPE_CHECKING
from uuid import UUID

import redis.asyncio as redis

from src.core.logging import get_logger
from src.core.redis import enrollment_cache_key
from src.enrollments.models import Enrollment


if TYPE_CHECKING:
    from src.enrollments.repository import EnrollmentRepository


logger = get_logger(__name__)

DEFAULT_CACHE_TTL = 3600


class EnrollmentService:
    """Records and answers (user, course) memberships."""

    def __init__(
        self,
        repository: "EnrollmentRepository",
        redis_client: redis.Redis | None = None,
        cache_ttl: int = DEFAULT_CACHE_TTL,
    ):
        self.repository = repository
        self.redis = redis_client
        self.cache_ttl = cache_ttl

    async def _cache_get(self, key: str) -> bool:
        if self.redis is None:
            return False
        try:
            return await self.redis.get(key) == "1"
        except redis.RedisError as e:
            logger.warning("enrollment_cache_read_failed", error=str(e))
            return False

    async def _cache_set(self, key: str) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.set(key, "1", ex=self.cache_ttl)
        except redis.RedisError as e:
            logger.warning("enrollment_cache_write_failed", error=str(e))

    async def is_enrolled(self, user_id: UUID, course_id: UUID) -> bool:
        """Check whether ``user_id`` has access to ``course_id``."""
        key = enrollment_cache_key(user_id, course_id)
        if await self._cache_get(key):
            return True

        enrollment = await self.repository.get(user_id, course_id)
        if enrollment is None:
            return False
        await self._cache_set(key)
        return True

    async def grant(
        self, user_id: UUID, course_id: UUID, payment_id: UUID | None = None
    ) -> bool:
        """Create the membership if it does not exist yet.

        Returns:
            True only when this call created the membership.
        """
        created = await self.repository.insert_if_absent(
            Enrollment(user_id=user_id, course_id=course_id, payment_id=payment_id)
        )
        await self._cache_set(enrollment_cache_key(user_id, course_id))
        if created:
            logger.info(
                "enrollment_granted",
                user_id=str(user_id),
                course_id=str(course_id),
                payment_id=str(payment_id) if payment_id else None,
            )
        else:
            logger.debug(
                "enrollment_already_exists",
                user_id=str(user_id),
                course_id=str(course_id),
            )
        return created

    async def list_for_user(self, user_id: UUID) -> list[Enrollment]:
        """All memberships of a user, most recent first."""
        enrollments = await self.repository.list_for_user(user_id)
        enrollments.sort(key=lambda e: e.enrolled_at, reverse=True)
        return enrollments

    async def enrolled_course_ids(self, user_id: UUID) -> set[UUID]:
        """Ids of every course ``user_id`` is enrolled in."""
        return {e.course_id for e in await self.repository.list_for_user(user_id)}
