from __future__ import annotations

from course_tracker.models.progress import Achievement, CourseProgressAggregate
from course_tracker.services.achievement_engine import (
    COURSE_COMPLETION,
    PERFECT_COURSE,
    SPEED_LEARNER,
    STUDY_WARRIOR,
    evaluate_achievements,
)

NOW = 1_700_000_000


def _aggregate(**kwargs) -> CourseProgressAggregate:
    defaults = {
        "user_id": "user-1",
        "course_id": "course-1",
        "total_modules": 4,
        "completed_modules": 4,
        "average_module_score": 92.0,
        "total_time_spent": 120,
    }
    defaults.update(kwargs)
    return CourseProgressAggregate(**defaults)


def _types(aggregate: CourseProgressAggregate) -> list[str]:
    return [a.type for a in aggregate.achievements]


def test_last_module_completion_unlocks_completion_and_perfect_course() -> None:
    outcome = evaluate_achievements(_aggregate(), estimated_completion_time=None, now=NOW)

    updated = outcome.aggregate
    assert outcome.just_completed
    assert updated.is_completed
    assert updated.completion_date == NOW
    assert _types(updated) == [COURSE_COMPLETION, PERFECT_COURSE]
    assert all(a.unlocked_at == NOW for a in updated.achievements)


def test_completion_issues_certificate_at_passing_average() -> None:
    outcome = evaluate_achievements(_aggregate(), estimated_completion_time=None, now=NOW)

    assert outcome.aggregate.certificate_issued
    assert outcome.aggregate.certificate_id == f"CERT_course-1_user-1_{NOW}"


def test_completion_below_passing_average_has_no_certificate() -> None:
    outcome = evaluate_achievements(
        _aggregate(average_module_score=65.0), estimated_completion_time=None, now=NOW
    )

    assert outcome.aggregate.is_completed
    assert not outcome.aggregate.certificate_issued
    assert outcome.aggregate.certificate_id is None
    assert _types(outcome.aggregate) == [COURSE_COMPLETION]


def test_study_time_mid_course_unlocks_study_warrior_only() -> None:
    outcome = evaluate_achievements(
        _aggregate(completed_modules=2, total_time_spent=610),
        estimated_completion_time=None,
        now=NOW,
    )

    assert not outcome.just_completed
    assert not outcome.aggregate.is_completed
    assert outcome.aggregate.completion_date is None
    assert _types(outcome.aggregate) == [STUDY_WARRIOR]


def test_study_warrior_threshold_is_inclusive() -> None:
    outcome = evaluate_achievements(
        _aggregate(completed_modules=1, total_time_spent=600),
        estimated_completion_time=None,
        now=NOW,
    )
    assert _types(outcome.aggregate) == [STUDY_WARRIOR]
    (unlocked,) = outcome.aggregate.achievements
    assert unlocked.description == "Spent 10 hours or more studying this course"


def test_speed_learner_needs_estimate_and_fast_finish() -> None:
    fast = evaluate_achievements(
        _aggregate(total_time_spent=70), estimated_completion_time=100, now=NOW
    )
    slow = evaluate_achievements(
        _aggregate(total_time_spent=75), estimated_completion_time=100, now=NOW
    )

    assert SPEED_LEARNER in _types(fast.aggregate)
    assert SPEED_LEARNER not in _types(slow.aggregate)


def test_completion_is_evaluated_only_once() -> None:
    first = evaluate_achievements(_aggregate(), estimated_completion_time=None, now=NOW)
    second = evaluate_achievements(
        first.aggregate, estimated_completion_time=None, now=NOW + 60
    )

    assert not second.just_completed
    assert second.unlocked == ()
    assert second.aggregate == first.aggregate


def test_existing_achievement_is_not_duplicated() -> None:
    existing = Achievement(type=STUDY_WARRIOR, unlocked_at=NOW - 100, description="x")
    outcome = evaluate_achievements(
        _aggregate(completed_modules=1, total_time_spent=900, achievements=(existing,)),
        estimated_completion_time=None,
        now=NOW,
    )

    assert outcome.unlocked == ()
    assert outcome.aggregate.achievements == (existing,)


def test_perfect_average_later_does_not_unlock_perfect_course() -> None:
    # Already completed with a lower average; raising it afterwards is too late.
    completed = _aggregate(
        is_completed=True,
        completion_date=NOW - 100,
        average_module_score=95.0,
    )
    outcome = evaluate_achievements(completed, estimated_completion_time=None, now=NOW)

    assert PERFECT_COURSE not in _types(outcome.aggregate)
    assert outcome.aggregate.completion_date == NOW - 100


def test_empty_course_never_completes() -> None:
    outcome = evaluate_achievements(
        _aggregate(total_modules=0, completed_modules=0),
        estimated_completion_time=None,
        now=NOW,
    )
    assert not outcome.aggregate.is_completed
