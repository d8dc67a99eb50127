from __future__ import annotations

from dataclasses import dataclass

NOT_STARTED = "not-started"
IN_PROGRESS = "in-progress"
COMPLETED = "completed"

MODULE_STATUSES = (NOT_STARTED, IN_PROGRESS, COMPLETED)


@dataclass(frozen=True, slots=True)
class ModuleProgressRecord:
    """Per-(user, module) progress, mutated by content and quiz events.

    completed_at is set exactly once and never cleared; it is set if and
    only if status is completed and completion_percentage is 100.
    """

    user_id: str
    course_id: str
    module_id: str
    status: str = NOT_STARTED  # not-started|in-progress|completed
    completion_percentage: int = 0
    total_time_spent: int = 0  # minutes, never decreases
    best_score_percentage: float | None = None
    total_attempts: int = 0
    started_at: int | None = None
    completed_at: int | None = None
    last_accessed_at: int | None = None
    applied_event_keys: tuple[str, ...] = ()
    version: int = 0  # optimistic-concurrency token, bumped on every write

    @staticmethod
    def new(
        *, user_id: str, course_id: str, module_id: str, opened_at: int
    ) -> ModuleProgressRecord:
        return ModuleProgressRecord(
            user_id=user_id,
            course_id=course_id,
            module_id=module_id,
            status=IN_PROGRESS,
            total_attempts=1,
            started_at=opened_at,
            last_accessed_at=opened_at,
        )

    @property
    def is_completed(self) -> bool:
        return self.status == COMPLETED


@dataclass(frozen=True, slots=True)
class StruggleEntry:
    module_id: str
    reason: str
    detected_at: int


@dataclass(frozen=True, slots=True)
class Achievement:
    type: str  # course-completion|perfect-course|speed-learner|study-warrior
    unlocked_at: int
    description: str


@dataclass(frozen=True, slots=True)
class CourseProgressAggregate:
    """Per-(user, course) summary derived from the module records.

    Counts, score and time are recomputed on every sync.  is_completed,
    completion_date, certificate_*, achievements and struggling_modules
    carry history across syncs and are only ever extended (struggles are
    cleared by the resolution rule, never by a missing trigger).

    version is the store's optimistic-concurrency token.
    """

    user_id: str
    course_id: str
    total_modules: int = 0
    completed_modules: int = 0
    in_progress_modules: int = 0
    average_module_score: float | None = None
    total_time_spent: int = 0
    current_module_id: str | None = None
    completion_percentage: int = 0
    is_completed: bool = False
    completion_date: int | None = None
    struggling_modules: tuple[StruggleEntry, ...] = ()
    achievements: tuple[Achievement, ...] = ()
    certificate_issued: bool = False
    certificate_id: str | None = None
    last_synced_at: int | None = None
    version: int = 0

    @staticmethod
    def new(*, user_id: str, course_id: str) -> CourseProgressAggregate:
        return CourseProgressAggregate(user_id=user_id, course_id=course_id)

    @property
    def not_started_modules(self) -> int:
        return max(
            self.total_modules - self.completed_modules - self.in_progress_modules, 0
        )

    def has_achievement(self, achievement_type: str) -> bool:
        return any(a.type == achievement_type for a in self.achievements)
