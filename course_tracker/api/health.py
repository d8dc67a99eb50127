"""Liveness endpoint with per-dependency status.

/health always answers 200 while the process can respond; the "status"
field carries the verdict.  A degraded dependency reports "degraded"
rather than failing the probe, because restarting the container does not
fix an unreachable database or Redis.

  status:  "ok" or "degraded"
  checks:  {"database": ..., "redis": ...}, each one of
           "ok" | "degraded" | "not_configured"
"""

from __future__ import annotations

import logging

from fastapi import APIRouter
from sqlalchemy import text

from course_tracker.db import engine as db_engine
from course_tracker.db import redis as db_redis

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_database() -> str:
    if db_engine.engine is None:
        return "not_configured"
    try:
        async with db_engine.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"
    return "ok"


async def _check_redis() -> str:
    if db_redis.redis_pool is None:
        return "not_configured"
    try:
        await db_redis.redis_pool.ping()  # type: ignore[misc]
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    checks = {
        "database": await _check_database(),
        "redis": await _check_redis(),
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}
