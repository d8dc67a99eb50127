"""Achievement evaluation and the course completion transition.

Input is an aggregate whose counts were just recomputed but whose
is_completed flag is still the one read from the store.  The completion
transition (is_completed false → true) happens here, exactly once per
enrollment, together with the achievements that are only evaluated at
that moment.

Each achievement type appears at most once per enrollment: every unlock
is guarded by a scan of the existing list.  Re-running the engine over its
own output therefore unlocks nothing.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from course_tracker.models.progress import Achievement, CourseProgressAggregate

COURSE_COMPLETION = "course-completion"
PERFECT_COURSE = "perfect-course"
SPEED_LEARNER = "speed-learner"
STUDY_WARRIOR = "study-warrior"

PERFECT_SCORE = 90
CERTIFICATE_SCORE = 70
SPEED_FACTOR = 0.75
STUDY_WARRIOR_MINUTES = 600

DESCRIPTIONS = {
    COURSE_COMPLETION: "Completed every module in the course",
    PERFECT_COURSE: "Finished the course with an average score of 90% or more",
    SPEED_LEARNER: "Finished the course in under 75% of the estimated time",
    STUDY_WARRIOR: "Spent 10 hours or more studying this course",
}


@dataclass(frozen=True, slots=True)
class AchievementOutcome:
    aggregate: CourseProgressAggregate
    unlocked: tuple[Achievement, ...]
    just_completed: bool


def certificate_id_for(aggregate: CourseProgressAggregate, now: int) -> str:
    return f"CERT_{aggregate.course_id}_{aggregate.user_id}_{now}"


def evaluate_achievements(
    aggregate: CourseProgressAggregate,
    *,
    estimated_completion_time: int | None,
    now: int,
) -> AchievementOutcome:
    just_completed = (
        not aggregate.is_completed
        and aggregate.total_modules > 0
        and aggregate.completed_modules == aggregate.total_modules
    )
    average = aggregate.average_module_score

    earned: list[str] = []
    if just_completed:
        earned.append(COURSE_COMPLETION)
        if average is not None and average >= PERFECT_SCORE:
            earned.append(PERFECT_COURSE)
        if (
            estimated_completion_time
            and aggregate.total_time_spent < SPEED_FACTOR * estimated_completion_time
        ):
            earned.append(SPEED_LEARNER)
    if aggregate.total_time_spent >= STUDY_WARRIOR_MINUTES:
        earned.append(STUDY_WARRIOR)

    unlocked = tuple(
        Achievement(type=t, unlocked_at=now, description=DESCRIPTIONS[t])
        for t in earned
        if not aggregate.has_achievement(t)
    )

    updated = aggregate
    if unlocked:
        updated = replace(updated, achievements=updated.achievements + unlocked)
    if just_completed:
        updated = replace(updated, is_completed=True, completion_date=now)
        if (
            not updated.certificate_issued
            and average is not None
            and average >= CERTIFICATE_SCORE
        ):
            updated = replace(
                updated,
                certificate_issued=True,
                certificate_id=certificate_id_for(updated, now),
            )

    return AchievementOutcome(
        aggregate=updated, unlocked=unlocked, just_completed=just_completed
    )
