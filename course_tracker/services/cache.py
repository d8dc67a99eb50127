"""Sync report cache.

get_sync_report reads here first and only loads the stored aggregate on a
miss, writing the rendered report back with a TTL.  Every successful sync
of a (user, course) pair deletes that pair's entry, so the TTL only matters
when an invalidation is lost (e.g. the API and worker disagree on backend).
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable

from course_tracker.db.redis import redis_pool


def report_cache_key(user_id: str, course_id: str) -> str:
    return f"sync-report:{user_id}:{course_id}"


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryCacheService:
    """Process-local cache.  Entries expire lazily, on the next read."""

    def __init__(self) -> None:
        self._store: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if time.monotonic() >= expires_at:
            del self._store[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = (value, time.monotonic() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)


class RedisCacheService:
    """Cache entries live under ``course-tracker:cache:`` and expire server-side."""

    namespace = "course-tracker:cache"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> str | None:
        return await self._redis.get(self._key(key))

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.set(self._key(key), value, ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        await self._redis.delete(self._key(key))


cache_service: CacheService = (
    RedisCacheService(redis_pool) if redis_pool is not None else InMemoryCacheService()
)
