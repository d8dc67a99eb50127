from __future__ import annotations

from course_tracker.models.progress import (
    COMPLETED,
    IN_PROGRESS,
    ModuleProgressRecord,
    StruggleEntry,
)
from course_tracker.services.struggle_detector import (
    REASON_ATTEMPTS,
    REASON_LOW_SCORE,
    REASON_STALLED,
    REASON_TIME,
    detect_struggles,
    is_resolved,
    struggle_reasons,
)

NOW = 1_700_000_000
DAY = 24 * 60 * 60


def _record(module_id: str = "m1", **kwargs) -> ModuleProgressRecord:
    defaults = {
        "status": IN_PROGRESS,
        "total_attempts": 1,
        "started_at": NOW - DAY,
        "last_accessed_at": NOW - DAY,
    }
    defaults.update(kwargs)
    return ModuleProgressRecord(
        user_id="user-1", course_id="course-1", module_id=module_id, **defaults
    )


def _detect(records, previous=(), durations=None):
    return detect_struggles(
        records, previous=previous, module_durations=durations or {}, now=NOW
    )


def test_many_attempts_and_low_score_flag_with_both_reasons() -> None:
    result = _detect([_record(total_attempts=5, best_score_percentage=40)])

    assert len(result.struggling_modules) == 1
    entry = result.struggling_modules[0]
    assert entry.module_id == "m1"
    assert entry.reason == "Multiple assessment attempts, Low assessment scores"
    assert entry.detected_at == NOW
    assert result.newly_flagged == result.struggling_modules


def test_thresholds_are_exclusive() -> None:
    record = _record(total_attempts=3, best_score_percentage=60)
    assert struggle_reasons(record, estimated_duration=None, now=NOW) == []


def test_time_overrun_needs_an_estimate() -> None:
    record = _record(total_time_spent=61)
    assert struggle_reasons(record, estimated_duration=30, now=NOW) == [REASON_TIME]
    assert struggle_reasons(record, estimated_duration=None, now=NOW) == []
    assert struggle_reasons(_record(total_time_spent=60), estimated_duration=30, now=NOW) == []


def test_stalled_in_progress_module_is_flagged() -> None:
    record = _record(started_at=NOW - 8 * DAY)
    assert struggle_reasons(record, estimated_duration=None, now=NOW) == [REASON_STALLED]


def test_completed_module_is_never_stalled() -> None:
    record = _record(
        status=COMPLETED,
        completion_percentage=100,
        started_at=NOW - 30 * DAY,
        completed_at=NOW - DAY,
        best_score_percentage=85,
    )
    assert struggle_reasons(record, estimated_duration=None, now=NOW) == []


def test_flag_survives_when_trigger_disappears() -> None:
    previous = (StruggleEntry("m1", REASON_ATTEMPTS, NOW - DAY),)
    # Completed, but below the resolution score: still flagged.
    record = _record(
        status=COMPLETED,
        completion_percentage=100,
        completed_at=NOW,
        total_attempts=1,
        best_score_percentage=65,
    )

    result = _detect([record], previous=previous)

    assert result.struggling_modules == previous
    assert result.newly_flagged == ()
    assert result.resolved == ()


def test_completion_with_passing_score_resolves_flag() -> None:
    previous = (StruggleEntry("m1", REASON_LOW_SCORE, NOW - DAY),)
    record = _record(
        status=COMPLETED,
        completion_percentage=100,
        completed_at=NOW,
        total_attempts=5,
        best_score_percentage=75,
    )

    assert is_resolved(record)
    result = _detect([record], previous=previous)

    assert result.struggling_modules == ()
    assert result.resolved == previous


def test_resolved_module_is_not_flagged_again() -> None:
    record = _record(
        status=COMPLETED,
        completion_percentage=100,
        completed_at=NOW,
        total_attempts=6,
        best_score_percentage=90,
    )
    assert _detect([record]).struggling_modules == ()


def test_rerunning_on_own_output_is_stable() -> None:
    records = [
        _record("m1", total_attempts=4),
        _record("m2", best_score_percentage=20),
        _record("m3"),
    ]
    first = _detect(records)
    second = _detect(records, previous=first.struggling_modules)

    assert [e.module_id for e in first.struggling_modules] == ["m1", "m2"]
    assert second.struggling_modules == first.struggling_modules
    assert second.newly_flagged == ()


def test_kept_entries_precede_new_ones() -> None:
    previous = (StruggleEntry("m2", REASON_LOW_SCORE, NOW - DAY),)
    records = [_record("m1", total_attempts=4), _record("m2")]

    result = _detect(records, previous=previous)

    assert [e.module_id for e in result.struggling_modules] == ["m2", "m1"]
    assert [e.module_id for e in result.newly_flagged] == ["m1"]
