"""Module-level store and orchestrator singletons.

Same selection rule as the cache and task queue: PostgreSQL-backed stores
when DATABASE_URL is configured, in-memory stores otherwise.  Tests seed
the in-memory stores directly and conftest.py clears them between tests.
"""

from __future__ import annotations

from course_tracker.db.engine import async_session_factory
from course_tracker.repos.course_progress_repo import (
    CourseProgressRepo,
    InMemoryCourseProgressRepo,
)
from course_tracker.repos.course_repo import CourseDefinitionProvider, InMemoryCourseRepo
from course_tracker.repos.enrollment_repo import EnrollmentProvider, InMemoryEnrollmentRepo
from course_tracker.repos.module_progress_repo import (
    InMemoryModuleProgressRepo,
    ModuleProgressRepo,
)
from course_tracker.repos.pg_course_repo import PgCourseRepo, PgEnrollmentRepo
from course_tracker.repos.pg_progress_repo import (
    PgCourseProgressRepo,
    PgModuleProgressRepo,
)
from course_tracker.services.cache import cache_service
from course_tracker.services.notifications import QueueAchievementNotifier
from course_tracker.services.sync_locks import sync_locks
from course_tracker.services.sync_orchestrator import SyncOrchestrator
from course_tracker.services.task_queue import task_queue

if async_session_factory is not None:
    module_progress_repo: ModuleProgressRepo = PgModuleProgressRepo(async_session_factory)
    course_progress_repo: CourseProgressRepo = PgCourseProgressRepo(async_session_factory)
    course_repo: CourseDefinitionProvider = PgCourseRepo(async_session_factory)
    enrollment_repo: EnrollmentProvider = PgEnrollmentRepo(async_session_factory)
else:
    module_progress_repo = InMemoryModuleProgressRepo()
    course_progress_repo = InMemoryCourseProgressRepo()
    course_repo = InMemoryCourseRepo()
    enrollment_repo = InMemoryEnrollmentRepo()

sync_orchestrator = SyncOrchestrator(
    module_progress=module_progress_repo,
    course_progress=course_progress_repo,
    courses=course_repo,
    enrollments=enrollment_repo,
    cache=cache_service,
    notifier=QueueAchievementNotifier(task_queue),
    locks=sync_locks,
)
