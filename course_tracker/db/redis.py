"""Optional Redis client shared by the report cache and the task queue.

redis_pool is None unless REDIS_URL is set, in which case both consumers
switch from their in-memory backends to Redis at import time.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from course_tracker.core.config import SETTINGS

logger = logging.getLogger(__name__)


def create_redis_pool(url: str) -> aioredis.Redis:  # type: ignore[type-arg]
    return aioredis.from_url(
        url,
        decode_responses=True,
        max_connections=SETTINGS.redis_max_connections,
    )


redis_pool: aioredis.Redis | None = (  # type: ignore[type-arg]
    create_redis_pool(SETTINGS.redis_url) if SETTINGS.redis_url else None
)


@asynccontextmanager
async def lifespan_redis():
    if redis_pool is None:
        logger.info("REDIS_URL not set: report cache and task queue are in-memory")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
    except RedisError:
        # The app still starts; /health shows redis as degraded.
        logger.exception("Redis unreachable at startup")
    else:
        logger.info("Redis connected: %s", SETTINGS.redis_url)

    try:
        yield
    finally:
        await redis_pool.aclose()
        logger.info("Redis connection pool closed")
