"""Apply learning events to a single ModuleProgressRecord.

Both functions are pure: they return a new record.  An event carrying an
idempotency key that the record has already seen returns the record
unchanged, so a retried event never double-counts time or attempts.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from course_tracker.models.progress import (
    COMPLETED,
    IN_PROGRESS,
    NOT_STARTED,
    ModuleProgressRecord,
)

# Only the most recent keys are remembered; retries arrive close together.
MAX_REMEMBERED_KEYS = 50


@dataclass(frozen=True, slots=True)
class CompletionData:
    time_spent: int = 0
    score: float | None = None
    idempotency_key: str | None = None

    def __post_init__(self) -> None:
        _validate(self.time_spent, self.score)


@dataclass(frozen=True, slots=True)
class ContentProgressUpdate:
    time_spent: int = 0
    completion_percentage: int | None = None
    score: float | None = None
    idempotency_key: str | None = None

    def __post_init__(self) -> None:
        _validate(self.time_spent, self.score)
        if self.completion_percentage is not None and not (
            0 <= self.completion_percentage <= 100
        ):
            raise ValueError("completion_percentage must be between 0 and 100")


def _validate(time_spent: int, score: float | None) -> None:
    if time_spent < 0:
        raise ValueError("time_spent must be >= 0")
    if score is not None and not (0 <= score <= 100):
        raise ValueError("score must be between 0 and 100")


def already_applied(record: ModuleProgressRecord, key: str | None) -> bool:
    return key is not None and key in record.applied_event_keys


def apply_completion(
    record: ModuleProgressRecord, data: CompletionData, *, now: int
) -> ModuleProgressRecord:
    if already_applied(record, data.idempotency_key):
        return record
    record = _start(record, now)
    record = _add_activity(record, data.time_spent, data.score, now)
    record = _complete(record, now)
    return _remember(record, data.idempotency_key)


def apply_content_progress(
    record: ModuleProgressRecord, update: ContentProgressUpdate, *, now: int
) -> ModuleProgressRecord:
    if already_applied(record, update.idempotency_key):
        return record
    record = _start(record, now)
    record = _add_activity(record, update.time_spent, update.score, now)
    if update.completion_percentage is not None and not record.is_completed:
        # Percentage only moves forward; a stale event cannot undo progress.
        pct = max(record.completion_percentage, update.completion_percentage)
        record = replace(record, completion_percentage=pct)
        if pct >= 100:
            record = _complete(record, now)
    return _remember(record, update.idempotency_key)


def _start(record: ModuleProgressRecord, now: int) -> ModuleProgressRecord:
    if record.status != NOT_STARTED:
        return record
    return replace(
        record,
        status=IN_PROGRESS,
        started_at=record.started_at or now,
        total_attempts=max(record.total_attempts, 1),
    )


def _add_activity(
    record: ModuleProgressRecord, time_spent: int, score: float | None, now: int
) -> ModuleProgressRecord:
    record = replace(
        record,
        total_time_spent=record.total_time_spent + time_spent,
        last_accessed_at=now,
    )
    if score is None:
        return record
    best = record.best_score_percentage
    attempts = record.total_attempts
    # The opening attempt counts as the first scored one.
    if best is not None:
        attempts += 1
    return replace(
        record,
        best_score_percentage=score if best is None else max(best, score),
        total_attempts=max(attempts, 1),
    )


def _complete(record: ModuleProgressRecord, now: int) -> ModuleProgressRecord:
    return replace(
        record,
        status=COMPLETED,
        completion_percentage=100,
        completed_at=record.completed_at or now,
    )


def _remember(record: ModuleProgressRecord, key: str | None) -> ModuleProgressRecord:
    if key is None:
        return record
    keys = (record.applied_event_keys + (key,))[-MAX_REMEMBERED_KEYS:]
    return replace(record, applied_event_keys=keys)
