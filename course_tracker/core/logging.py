"""Logging configuration for course-tracker.

Two output modes share the same records:

  _ContainerFormatter  single-line text for local development.
  _JsonFormatter       one JSON object per line for log aggregation,
                       enabled with LOG_JSON=true.

SYNC CONTEXT
------------
A sync touches several stores and three derivation stages.  The
orchestrator publishes the (user_id, course_id, stage) it is working on
through ContextVars; _SyncContextFilter copies them onto every LogRecord
emitted inside that scope, whichever module logs it.  HTTP requests do the
same with request_id_var, set by RequestContextMiddleware.  Concurrent syncs in
the same event loop each see their own values because every asyncio task
runs in a copy of the context.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

sync_user_var: ContextVar[str | None] = ContextVar("sync_user_id", default=None)
sync_course_var: ContextVar[str | None] = ContextVar("sync_course_id", default=None)
sync_stage_var: ContextVar[str | None] = ContextVar("sync_stage", default=None)
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


@contextmanager
def sync_context(user_id: str, course_id: str) -> Iterator[None]:
    user_token = sync_user_var.set(user_id)
    course_token = sync_course_var.set(course_id)
    try:
        yield
    finally:
        sync_course_var.reset(course_token)
        sync_user_var.reset(user_token)


@contextmanager
def stage_context(stage: str) -> Iterator[None]:
    token = sync_stage_var.set(stage)
    try:
        yield
    finally:
        sync_stage_var.reset(token)


class _SyncContextFilter(logging.Filter):
    """Attach the current sync and request context to every record.

    Values passed explicitly through ``extra=`` win over the ContextVars.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for attr, var in (
            ("user_id", sync_user_var),
            ("course_id", sync_course_var),
            ("stage", sync_stage_var),
            ("request_id", request_id_var),
        ):
            if getattr(record, attr, None) is None:
                setattr(record, attr, var.get())
        return True


class _ContainerFormatter(logging.Formatter):
    """Single-line formatter tuned for container stdout.

    - Always: ISO-8601 timestamp, level, logger name, message
    - Inside a sync: appends {user=... course=... stage=...}
    - WARNING+: appends [filename:lineno]
    """

    _BASE_FMT = "%(asctime)s %(levelname)-8s %(name)s  %(message)s"
    _LOC_SUFFIX = "  [%(filename)s:%(lineno)d]"

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        ms = int(record.msecs)
        # Insert .NNN before the timezone offset (last 5 chars: +0000)
        return f"{base[:-5]}.{ms:03d}{base[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        fmt = self._BASE_FMT
        context = _context_suffix(record)
        if context:
            fmt += "  " + context.replace("%", "%%")
        if record.levelno >= logging.WARNING:
            fmt += self._LOC_SUFFIX
        self._style._fmt = fmt
        return super().format(record)


def _context_suffix(record: logging.LogRecord) -> str:
    parts = [
        f"{label}={value}"
        for label, value in (
            ("user", getattr(record, "user_id", None)),
            ("course", getattr(record, "course_id", None)),
            ("stage", getattr(record, "stage", None)),
            ("req", getattr(record, "request_id", None)),
        )
        if value is not None
    ]
    return "{" + " ".join(parts) + "}" if parts else ""


class _JsonFormatter(logging.Formatter):
    """JSON Lines formatter; context fields become top-level keys."""

    _CONTEXT_FIELDS = (
        "request_id",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "user_id",
        "course_id",
        "stage",
        "task_id",
        "queue",
    )

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self._CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Configure the root logger for container environments.

    Args:
        level_name: Log level string (debug/info/warning/error)
        json_format: If True, emit JSON lines. If False, human-readable.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())
    handler.addFilter(_SyncContextFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in (
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
        "httpcore",
        "httpx",
        "sqlalchemy.engine",
    ):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
