"""Struggle detection with hysteresis.

A module is flagged when any heuristic fires.  Once flagged it stays
flagged across syncs until the learner completes it with a best score of
at least RESOLUTION_SCORE; a retry that merely stops tripping the
heuristic does not clear it.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from course_tracker.models.progress import (
    IN_PROGRESS,
    ModuleProgressRecord,
    StruggleEntry,
)

MAX_ATTEMPTS = 3
LOW_SCORE = 60
RESOLUTION_SCORE = 70
TIME_OVERRUN_FACTOR = 2
STALL_SECONDS = 7 * 24 * 60 * 60

REASON_ATTEMPTS = "Multiple assessment attempts"
REASON_LOW_SCORE = "Low assessment scores"
REASON_TIME = "Extended time spent"
REASON_STALLED = "Long duration without completion"


@dataclass(frozen=True, slots=True)
class StruggleResult:
    struggling_modules: tuple[StruggleEntry, ...]
    newly_flagged: tuple[StruggleEntry, ...]
    resolved: tuple[StruggleEntry, ...]


def is_resolved(record: ModuleProgressRecord) -> bool:
    return (
        record.is_completed
        and record.best_score_percentage is not None
        and record.best_score_percentage >= RESOLUTION_SCORE
    )


def struggle_reasons(
    record: ModuleProgressRecord, *, estimated_duration: int | None, now: int
) -> list[str]:
    reasons = []
    if record.total_attempts > MAX_ATTEMPTS:
        reasons.append(REASON_ATTEMPTS)
    if (
        record.best_score_percentage is not None
        and record.best_score_percentage < LOW_SCORE
    ):
        reasons.append(REASON_LOW_SCORE)
    if estimated_duration and record.total_time_spent > (
        TIME_OVERRUN_FACTOR * estimated_duration
    ):
        reasons.append(REASON_TIME)
    if (
        record.status == IN_PROGRESS
        and record.started_at is not None
        and now - record.started_at > STALL_SECONDS
    ):
        reasons.append(REASON_STALLED)
    return reasons


def detect_struggles(
    records: Sequence[ModuleProgressRecord],
    *,
    previous: Sequence[StruggleEntry],
    module_durations: Mapping[str, int | None],
    now: int,
) -> StruggleResult:
    resolved_ids = {r.module_id for r in records if is_resolved(r)}

    kept = tuple(e for e in previous if e.module_id not in resolved_ids)
    resolved = tuple(e for e in previous if e.module_id in resolved_ids)
    flagged_ids = {e.module_id for e in kept}

    new_entries = []
    for record in records:
        if record.module_id in flagged_ids or record.module_id in resolved_ids:
            continue
        reasons = struggle_reasons(
            record,
            estimated_duration=module_durations.get(record.module_id),
            now=now,
        )
        if reasons:
            new_entries.append(
                StruggleEntry(
                    module_id=record.module_id,
                    reason=", ".join(reasons),
                    detected_at=now,
                )
            )
            flagged_ids.add(record.module_id)

    return StruggleResult(
        struggling_modules=kept + tuple(new_entries),
        newly_flagged=tuple(new_entries),
        resolved=resolved,
    )
