"""Prometheus scrape endpoint.

Returns text exposition format (not JSON): HTTP metrics from the
middleware plus the sync, achievement, struggle, cache and queue
counters declared in course_tracker/core/metrics.py.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
