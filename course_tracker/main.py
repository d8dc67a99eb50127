"""ASGI entry point: operational surface for the progress sync service.

The sync operations are driven by the worker (course_tracker.worker) and
by in-process callers of course_tracker.services.progress_sync; the HTTP
app only exposes /health and /metrics.

  uvicorn course_tracker.main:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from course_tracker.api.health import router as health_router
from course_tracker.api.metrics_endpoint import router as metrics_router
from course_tracker.core.config import SETTINGS
from course_tracker.core.logging import setup_logging
from course_tracker.db.engine import lifespan_db
from course_tracker.db.redis import lifespan_redis
from course_tracker.middleware.metrics import MetricsMiddleware
from course_tracker.middleware.request_context import RequestContextMiddleware

setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order.
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="course-tracker",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Last-added runs first: RequestContext -> Metrics -> route handler.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)

logger.info(
    "course-tracker started  env=%s log_level=%s port=%d sync_concurrency=%d",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    SETTINGS.sync_concurrency,
)
