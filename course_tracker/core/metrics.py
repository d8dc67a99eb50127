"""Prometheus metric inventory.

Every metric the service exposes is declared here; the owning module
imports it and increments/observes at the point of action.  /metrics
renders them in text exposition format.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Progress synchronization
# ---------------------------------------------------------------------------

SYNC_OPERATIONS = Counter(
    "progress_sync_operations_total",
    "Sync operations by operation and result",
    ["operation", "result"],  # result: ok|integrity_error|not_found|transient|error
)

SYNC_DURATION = Histogram(
    "progress_sync_duration_seconds",
    "Duration of a single (user, course) sync including store round-trips",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

SYNC_CONFLICTS = Counter(
    "progress_sync_conflicts_total",
    "Optimistic version conflicts hit while persisting an aggregate",
)

ACHIEVEMENTS_UNLOCKED = Counter(
    "achievements_unlocked_total",
    "Achievements appended to course progress aggregates",
    ["type"],
)

STRUGGLES_FLAGGED = Counter(
    "struggling_modules_flagged_total",
    "Modules newly flagged as struggling",
)

STRUGGLES_RESOLVED = Counter(
    "struggling_modules_resolved_total",
    "Previously flagged modules cleared after completion with a passing score",
)

# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # "hit" or "miss"
)

QUEUE_DEPTH = Gauge(
    "task_queue_depth",
    "Number of tasks waiting in a queue",
    ["queue_name"],
)
