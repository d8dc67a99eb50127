from __future__ import annotations

import logging

from course_tracker.core.logging import (
    _ContainerFormatter,
    _SyncContextFilter,
    request_id_var,
    setup_logging,
    stage_context,
    sync_context,
)


def _record(level: int = logging.INFO, msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="svc.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_quiets_noisy_libraries_at_debug() -> None:
    setup_logging("debug")
    assert logging.getLogger("uvicorn").level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_formatter_excludes_location_for_info() -> None:
    output = _ContainerFormatter().format(_record())
    assert "hello" in output
    assert "[svc.py:" not in output


def test_formatter_includes_location_for_warning() -> None:
    output = _ContainerFormatter().format(_record(logging.WARNING, "bad thing"))
    assert "bad thing" in output
    assert "[svc.py:42]" in output


def test_filter_attaches_sync_context() -> None:
    record = _record()
    with sync_context("user-1", "course-1"), stage_context("struggles"):
        _SyncContextFilter().filter(record)

    assert record.user_id == "user-1"  # type: ignore[attr-defined]
    assert record.course_id == "course-1"  # type: ignore[attr-defined]
    assert record.stage == "struggles"  # type: ignore[attr-defined]


def test_filter_outside_sync_leaves_context_empty() -> None:
    record = _record()
    _SyncContextFilter().filter(record)
    assert record.user_id is None  # type: ignore[attr-defined]
    assert record.stage is None  # type: ignore[attr-defined]


def test_explicit_extra_wins_over_context() -> None:
    record = _record()
    record.user_id = "explicit"  # type: ignore[attr-defined]
    with sync_context("user-1", "course-1"):
        _SyncContextFilter().filter(record)
    assert record.user_id == "explicit"  # type: ignore[attr-defined]


def test_formatter_appends_sync_context() -> None:
    record = _record(msg="synced 50%")
    with sync_context("user-1", "course-1"):
        _SyncContextFilter().filter(record)

    output = _ContainerFormatter().format(record)
    assert "synced 50%" in output
    assert "{user=user-1 course=course-1}" in output


def test_context_is_reset_on_exit() -> None:
    with sync_context("user-1", "course-1"):
        pass
    record = _record()
    _SyncContextFilter().filter(record)
    assert record.course_id is None  # type: ignore[attr-defined]


def test_filter_attaches_request_id() -> None:
    record = _record()
    token = request_id_var.set("req-7")
    try:
        _SyncContextFilter().filter(record)
    finally:
        request_id_var.reset(token)
    assert record.request_id == "req-7"  # type: ignore[attr-defined]
