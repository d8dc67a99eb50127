from __future__ import annotations

from pydantic import BaseModel

from course_tracker.models.progress import CourseProgressAggregate


class StruggleOut(BaseModel):
    module_id: str
    reason: str
    detected_at: int


class AchievementOut(BaseModel):
    type: str
    unlocked_at: int
    description: str


class SyncReport(BaseModel):
    """Summary projection of a CourseProgressAggregate."""

    user_id: str
    course_id: str
    total_modules: int
    completed_modules: int
    in_progress_modules: int
    not_started_modules: int
    completion_percentage: int
    average_module_score: float | None
    total_time_spent: int
    current_module_id: str | None
    is_completed: bool
    completion_date: int | None
    certificate_issued: bool
    certificate_id: str | None
    struggling_modules: list[StruggleOut]
    achievements: list[AchievementOut]
    last_synced_at: int | None

    @classmethod
    def from_aggregate(cls, aggregate: CourseProgressAggregate) -> SyncReport:
        return cls(
            user_id=aggregate.user_id,
            course_id=aggregate.course_id,
            total_modules=aggregate.total_modules,
            completed_modules=aggregate.completed_modules,
            in_progress_modules=aggregate.in_progress_modules,
            not_started_modules=aggregate.not_started_modules,
            completion_percentage=aggregate.completion_percentage,
            average_module_score=aggregate.average_module_score,
            total_time_spent=aggregate.total_time_spent,
            current_module_id=aggregate.current_module_id,
            is_completed=aggregate.is_completed,
            completion_date=aggregate.completion_date,
            certificate_issued=aggregate.certificate_issued,
            certificate_id=aggregate.certificate_id,
            struggling_modules=[
                StruggleOut(
                    module_id=s.module_id, reason=s.reason, detected_at=s.detected_at
                )
                for s in aggregate.struggling_modules
            ],
            achievements=[
                AchievementOut(
                    type=a.type, unlocked_at=a.unlocked_at, description=a.description
                )
                for a in aggregate.achievements
            ],
            last_synced_at=aggregate.last_synced_at,
        )
