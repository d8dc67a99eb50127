"""HTTP request metrics.

The endpoint label is the matched route's path template, read from the
scope after routing.  Requests no route matched (404 probes, scanners)
share the single label "unmatched", so they cannot grow the label set.
The /metrics scrape itself is not counted.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from course_tracker.core.metrics import ACTIVE_REQUESTS, REQUEST_COUNT, REQUEST_DURATION

UNMATCHED = "unmatched"


def _endpoint_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path_format", None) or getattr(route, "path", None) or UNMATCHED


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        status = "500"
        ACTIVE_REQUESTS.inc()
        started = time.perf_counter()
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            elapsed = time.perf_counter() - started
            ACTIVE_REQUESTS.dec()
            # Routing has filled in scope["route"] by now.
            endpoint = _endpoint_label(request)
            REQUEST_COUNT.labels(request.method, endpoint, status).inc()
            REQUEST_DURATION.labels(request.method, endpoint).observe(elapsed)
