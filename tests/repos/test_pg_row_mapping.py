"""Row <-> dataclass conversions used by the PostgreSQL stores.

These run without a database: the ORM row classes can be instantiated
directly, and the conversions are plain functions.
"""

from __future__ import annotations

from course_tracker.db.tables import CourseProgressRow, ModuleProgressRow
from course_tracker.models.progress import (
    Achievement,
    CourseProgressAggregate,
    ModuleProgressRecord,
    StruggleEntry,
)
from course_tracker.repos.pg_progress_repo import (
    _aggregate_values,
    _record_values,
    _row_to_aggregate,
    _row_to_record,
)


def test_module_record_survives_row_conversion() -> None:
    record = ModuleProgressRecord(
        user_id="user-1",
        course_id="course-1",
        module_id="m1",
        status="completed",
        completion_percentage=100,
        total_time_spent=42,
        best_score_percentage=88.5,
        total_attempts=2,
        started_at=100,
        completed_at=200,
        last_accessed_at=200,
        applied_event_keys=("evt-1", "evt-2"),
        version=3,
    )

    values = _record_values(record)
    assert values["applied_event_keys"] == ["evt-1", "evt-2"]
    assert values["version"] == 3
    assert _row_to_record(ModuleProgressRow(**values)) == record


def test_aggregate_serializes_lists_as_json_documents() -> None:
    aggregate = CourseProgressAggregate(
        user_id="user-1",
        course_id="course-1",
        total_modules=4,
        completed_modules=4,
        average_module_score=92.0,
        total_time_spent=120,
        current_module_id="m4",
        completion_percentage=100,
        is_completed=True,
        completion_date=500,
        struggling_modules=(StruggleEntry("m2", "Low assessment scores", 300),),
        achievements=(Achievement("course-completion", 500, "done"),),
        certificate_issued=True,
        certificate_id="CERT_course-1_user-1_500",
        last_synced_at=500,
        version=3,
    )

    values = _aggregate_values(aggregate)

    assert values["struggling_modules"] == [
        {"module_id": "m2", "reason": "Low assessment scores", "detected_at": 300}
    ]
    assert values["achievements"] == [
        {"type": "course-completion", "unlocked_at": 500, "description": "done"}
    ]
    assert _row_to_aggregate(CourseProgressRow(**values)) == aggregate
