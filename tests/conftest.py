from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from course_tracker.main import app
from course_tracker.models.course import CourseDefinition, CourseModule, Enrollment
from course_tracker.models.progress import ModuleProgressRecord
from course_tracker.services import progress_sync
from course_tracker.services.cache import cache_service
from course_tracker.services.notifications import AchievementNotifier
from course_tracker.services.sync_locks import sync_locks
from course_tracker.services.sync_orchestrator import SyncOrchestrator
from course_tracker.services.task_queue import task_queue

# Ensure repo root is on sys.path so `import course_tracker` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

T0 = 1_700_000_000
DAY = 24 * 60 * 60


@pytest.fixture(autouse=True)
def reset_progress_stores() -> None:
    """Clear the in-memory stores behind the orchestrator singleton."""
    for repo, attrs in (
        (progress_sync.module_progress_repo, ("_store",)),
        (progress_sync.course_progress_repo, ("_store",)),
        (progress_sync.course_repo, ("_by_id", "_module_durations")),
        (progress_sync.enrollment_repo, ("_store",)),
    ):
        for attr in attrs:
            if hasattr(repo, attr):
                getattr(repo, attr).clear()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    if hasattr(task_queue, "_queues"):
        task_queue._queues.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_sync_locks() -> None:
    sync_locks._locks.clear()
    sync_locks._users.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeClock:
    """Deterministic epoch-seconds clock for the orchestrator."""

    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


def seed_course(
    course_id: str = "course-1",
    module_ids: tuple[str, ...] = ("m1", "m2", "m3", "m4"),
    *,
    estimated_completion_time: int | None = None,
    module_duration: int | None = None,
) -> CourseDefinition:
    course = CourseDefinition(
        id=course_id,
        title=course_id.replace("-", " ").title(),
        estimated_completion_time=estimated_completion_time,
        modules=tuple(
            CourseModule(id=mid, position=i, estimated_duration=module_duration)
            for i, mid in enumerate(module_ids, start=1)
        ),
    )
    progress_sync.course_repo.add(course)  # type: ignore[union-attr]
    return course


def enroll(user_id: str, course_id: str = "course-1", enrolled_at: int = T0) -> None:
    progress_sync.enrollment_repo.add(  # type: ignore[union-attr]
        Enrollment(user_id=user_id, course_id=course_id, enrolled_at=enrolled_at)
    )


def seed_record(record: ModuleProgressRecord) -> ModuleProgressRecord:
    """Write a module record straight into the store, bypassing events."""
    progress_sync.module_progress_repo._store[  # type: ignore[union-attr]
        (record.user_id, record.module_id)
    ] = record
    return record


def make_orchestrator(
    clock: FakeClock,
    *,
    notifier: AchievementNotifier | None = None,
    **overrides,
) -> SyncOrchestrator:
    """An orchestrator over the shared in-memory stores with a fixed clock."""
    kwargs = {
        "module_progress": progress_sync.module_progress_repo,
        "course_progress": progress_sync.course_progress_repo,
        "courses": progress_sync.course_repo,
        "enrollments": progress_sync.enrollment_repo,
        "cache": cache_service,
        "notifier": notifier,
        "clock": clock,
    }
    kwargs.update(overrides)
    return SyncOrchestrator(**kwargs)
