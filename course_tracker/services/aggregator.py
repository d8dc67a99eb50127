"""Aggregator: module-level records → course-level numbers.

A pure function of its inputs.  The declared module count and module id
set come from the course definition, not from the records, because a
module can exist before anyone has opened it.

Rules
-----
  completed_modules      records with status == completed
  completion_percentage  completed / total × 100, rounded half up
                         (0 for a course with no modules)
  total_time_spent       sum over all records
  average_module_score   mean of the present best scores, None if none
  current_module_id      in-progress module accessed most recently;
                         otherwise the previous pointer is kept; with no
                         previous pointer, the most recently completed one
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from course_tracker.core.errors import DataIntegrityError
from course_tracker.models.progress import COMPLETED, IN_PROGRESS, ModuleProgressRecord


@dataclass(frozen=True, slots=True)
class AggregateResult:
    total_modules: int
    completed_modules: int
    in_progress_modules: int
    completion_percentage: int
    average_module_score: float | None
    total_time_spent: int
    current_module_id: str | None


def completion_percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    # Integer round-half-up; Python's round() would send 12.5 to 12.
    return (completed * 200 + total) // (2 * total)


def aggregate(
    records: Sequence[ModuleProgressRecord],
    *,
    user_id: str,
    course_id: str,
    total_modules: int,
    module_ids: Iterable[str],
    previous_current_module_id: str | None = None,
) -> AggregateResult:
    module_set = frozenset(module_ids)
    _check_integrity(records, user_id, course_id, total_modules, module_set)

    completed = [r for r in records if r.status == COMPLETED]
    in_progress = [r for r in records if r.status == IN_PROGRESS]
    scores = [
        r.best_score_percentage for r in records if r.best_score_percentage is not None
    ]

    return AggregateResult(
        total_modules=total_modules,
        completed_modules=len(completed),
        in_progress_modules=len(in_progress),
        completion_percentage=completion_percentage(len(completed), total_modules),
        average_module_score=sum(scores) / len(scores) if scores else None,
        total_time_spent=sum(r.total_time_spent for r in records),
        current_module_id=_current_module(
            in_progress, completed, previous_current_module_id
        ),
    )


def _check_integrity(
    records: Sequence[ModuleProgressRecord],
    user_id: str,
    course_id: str,
    total_modules: int,
    module_set: frozenset[str],
) -> None:
    if total_modules < 0:
        raise DataIntegrityError(f"negative module count {total_modules}")
    if len(module_set) != total_modules:
        raise DataIntegrityError(
            f"module count mismatch: declared {total_modules}, "
            f"course defines {len(module_set)}"
        )

    seen: set[str] = set()
    for record in records:
        if record.user_id != user_id or record.course_id != course_id:
            raise DataIntegrityError(
                f"record for module={record.module_id} belongs to "
                f"user={record.user_id} course={record.course_id}"
            )
        if record.module_id not in module_set:
            raise DataIntegrityError(
                f"orphaned progress record for module={record.module_id}"
            )
        if record.module_id in seen:
            raise DataIntegrityError(
                f"duplicate progress records for module={record.module_id}"
            )
        seen.add(record.module_id)


def _current_module(
    in_progress: list[ModuleProgressRecord],
    completed: list[ModuleProgressRecord],
    previous: str | None,
) -> str | None:
    if in_progress:
        # max() keeps the first of equal keys, so ties go to record order.
        newest = max(in_progress, key=lambda r: r.last_accessed_at or 0)
        return newest.module_id
    if previous is not None:
        return previous
    if completed:
        return max(completed, key=lambda r: r.completed_at or 0).module_id
    return None
