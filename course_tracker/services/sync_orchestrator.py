"""SyncOrchestrator: the single writer of CourseProgressAggregate.

One sync of a (user, course) pair runs, in this fixed order:

  load          course definition, module records, stored aggregate
  aggregate     counts, completion %, average score, time, current module
  struggles     flag / resolve struggling modules (needs fresh counts)
  achievements  completion transition + unlocks (needs fresh counts)
  persist       write the fully derived aggregate with a version check

Nothing is written before every stage has succeeded, so an error in any
stage leaves the stored aggregate exactly as it was.  A version conflict
on persist restarts the whole cycle from a fresh read.

Calling sync_one again without new module events changes nothing but
last_synced_at (and the store's version token).
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace

from course_tracker.core.config import SETTINGS
from course_tracker.core.errors import (
    ConcurrencyConflictError,
    DataIntegrityError,
    NotFoundError,
    ProgressSyncError,
    TransientStoreError,
)
from course_tracker.core.logging import stage_context, sync_context
from course_tracker.core.metrics import (
    ACHIEVEMENTS_UNLOCKED,
    CACHE_OPERATIONS,
    STRUGGLES_FLAGGED,
    STRUGGLES_RESOLVED,
    SYNC_CONFLICTS,
    SYNC_DURATION,
    SYNC_OPERATIONS,
)
from course_tracker.models.progress import (
    Achievement,
    CourseProgressAggregate,
    ModuleProgressRecord,
)
from course_tracker.models.report import SyncReport
from course_tracker.repos.course_progress_repo import CourseProgressRepo
from course_tracker.repos.course_repo import CourseDefinitionProvider
from course_tracker.repos.enrollment_repo import EnrollmentProvider
from course_tracker.repos.module_progress_repo import ModuleProgressRepo
from course_tracker.services.achievement_engine import evaluate_achievements
from course_tracker.services.aggregator import aggregate
from course_tracker.services.cache import CacheService, report_cache_key
from course_tracker.services.module_events import (
    CompletionData,
    ContentProgressUpdate,
    apply_completion,
    apply_content_progress,
)
from course_tracker.services.notifications import AchievementNotifier
from course_tracker.services.struggle_detector import detect_struggles
from course_tracker.services.sync_locks import KeyedLocks

logger = logging.getLogger(__name__)

MAX_PERSIST_ATTEMPTS = 3

Clock = Callable[[], int]
ModuleEvent = Callable[[ModuleProgressRecord, int], ModuleProgressRecord]


def utc_now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


@dataclass(frozen=True, slots=True)
class SyncResult:
    """Per-user outcome of a bulk sync."""

    user_id: str
    success: bool
    error: str | None = None
    stage: str | None = None


@dataclass(frozen=True, slots=True)
class _CourseView:
    module_count: int
    module_ids: tuple[str, ...]
    estimated_duration: int | None
    module_durations: dict[str, int | None]


@dataclass(frozen=True, slots=True)
class _SyncOutcome:
    stored: CourseProgressAggregate
    unlocked: tuple[Achievement, ...]
    newly_flagged: int
    resolved: int
    certificate_issued: bool


def _result_label(exc: ProgressSyncError) -> str:
    if isinstance(exc, DataIntegrityError):
        return "integrity_error"
    if isinstance(exc, NotFoundError):
        return "not_found"
    if isinstance(exc, TransientStoreError):
        return "transient"
    return "error"


@contextmanager
def _track(operation: str) -> Iterator[None]:
    try:
        yield
    except ProgressSyncError as exc:
        SYNC_OPERATIONS.labels(operation=operation, result=_result_label(exc)).inc()
        raise
    SYNC_OPERATIONS.labels(operation=operation, result="ok").inc()


@contextmanager
def _stage(name: str, user_id: str, course_id: str) -> Iterator[None]:
    with stage_context(name):
        try:
            yield
        except ProgressSyncError as exc:
            exc.bind(user_id=user_id, course_id=course_id, stage=name)
            raise


class SyncOrchestrator:
    def __init__(
        self,
        *,
        module_progress: ModuleProgressRepo,
        course_progress: CourseProgressRepo,
        courses: CourseDefinitionProvider,
        enrollments: EnrollmentProvider,
        cache: CacheService,
        notifier: AchievementNotifier | None = None,
        locks: KeyedLocks | None = None,
        clock: Clock = utc_now,
        concurrency: int = SETTINGS.sync_concurrency,
        max_persist_attempts: int = MAX_PERSIST_ATTEMPTS,
        report_cache_ttl: int = SETTINGS.report_cache_ttl,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._module_progress = module_progress
        self._course_progress = course_progress
        self._courses = courses
        self._enrollments = enrollments
        self._cache = cache
        self._notifier = notifier
        self._locks = locks if locks is not None else KeyedLocks()
        self._clock = clock
        self._concurrency = concurrency
        self._report_cache_ttl = report_cache_ttl
        self._max_persist_attempts = max_persist_attempts

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def sync_one(
        self, user_id: str, course_id: str, *, create_if_missing: bool = True
    ) -> CourseProgressAggregate:
        """Recompute and persist the aggregate for one (user, course) pair."""
        with sync_context(user_id, course_id), _track("sync_one"):
            start = time.monotonic()
            try:
                async with self._locks.hold(user_id, course_id):
                    outcome = await self._sync_with_retries(
                        user_id, course_id, create_if_missing
                    )
            except ProgressSyncError as exc:
                logger.warning("Sync failed: %s", exc)
                raise
            finally:
                SYNC_DURATION.observe(time.monotonic() - start)

            await self._after_persist(outcome)
            logger.info(
                "Synced course progress completed=%d/%d pct=%d struggles=%d "
                "unlocked=%s",
                outcome.stored.completed_modules,
                outcome.stored.total_modules,
                outcome.stored.completion_percentage,
                len(outcome.stored.struggling_modules),
                [a.type for a in outcome.unlocked],
            )
            return outcome.stored

    async def sync_module_completion(
        self,
        user_id: str,
        course_id: str,
        module_id: str,
        completion: CompletionData,
    ) -> CourseProgressAggregate:
        """Mark a module completed with the given time/score, then sync."""
        with sync_context(user_id, course_id), _track("sync_module_completion"):
            await self._apply_module_event(
                user_id,
                course_id,
                module_id,
                lambda record, now: apply_completion(record, completion, now=now),
            )
        return await self.sync_one(user_id, course_id)

    async def sync_content_progress(
        self,
        user_id: str,
        course_id: str,
        module_id: str,
        update: ContentProgressUpdate,
    ) -> CourseProgressAggregate:
        """Record content activity inside a module, then sync."""
        with sync_context(user_id, course_id), _track("sync_content_progress"):
            await self._apply_module_event(
                user_id,
                course_id,
                module_id,
                lambda record, now: apply_content_progress(record, update, now=now),
            )
        return await self.sync_one(user_id, course_id)

    async def sync_all_users_in_course(self, course_id: str) -> list[SyncResult]:
        """Sync every enrolled user; failures are reported, never propagated."""
        with _track("sync_all_users_in_course"):
            if await self._courses.get_module_count(course_id) is None:
                raise NotFoundError("course not found", course_id=course_id, stage="load")
            user_ids = list(dict.fromkeys(await self._enrollments.list_users(course_id)))

        semaphore = asyncio.Semaphore(self._concurrency)

        async def _sync_user(user_id: str) -> SyncResult:
            async with semaphore:
                try:
                    await self.sync_one(user_id, course_id)
                except ProgressSyncError as exc:
                    return SyncResult(
                        user_id=user_id,
                        success=False,
                        error=exc.message,
                        stage=exc.stage,
                    )
                except Exception as exc:
                    logger.exception(
                        "Unexpected error syncing user=%s course=%s", user_id, course_id
                    )
                    return SyncResult(
                        user_id=user_id,
                        success=False,
                        error=str(exc) or type(exc).__name__,
                    )
                return SyncResult(user_id=user_id, success=True)

        results = list(await asyncio.gather(*(_sync_user(u) for u in user_ids)))
        failed = sum(1 for r in results if not r.success)
        logger.info(
            "Course-wide sync finished course=%s users=%d ok=%d failed=%d",
            course_id,
            len(results),
            len(results) - failed,
            failed,
        )
        return results

    async def get_sync_report(self, user_id: str, course_id: str) -> SyncReport:
        """Summary of the stored aggregate, served read-through from the cache."""
        key = report_cache_key(user_id, course_id)
        cached = await self._cache.get(key)
        if cached is not None:
            CACHE_OPERATIONS.labels(operation="hit").inc()
            return SyncReport.model_validate_json(cached)

        CACHE_OPERATIONS.labels(operation="miss").inc()
        stored = await self._course_progress.get(user_id, course_id)
        if stored is None:
            raise NotFoundError(
                "no course progress for this enrollment",
                user_id=user_id,
                course_id=course_id,
                stage="load",
            )
        report = SyncReport.from_aggregate(stored)
        await self._cache.set(key, report.model_dump_json(), self._report_cache_ttl)
        return report

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _sync_with_retries(
        self, user_id: str, course_id: str, create_if_missing: bool
    ) -> _SyncOutcome:
        attempt = 1
        while True:
            try:
                return await self._derive_and_persist(
                    user_id, course_id, create_if_missing
                )
            except ConcurrencyConflictError:
                SYNC_CONFLICTS.inc()
                if attempt >= self._max_persist_attempts:
                    raise
                logger.info("Aggregate changed underneath us, retrying attempt=%d", attempt)
                attempt += 1

    async def _derive_and_persist(
        self, user_id: str, course_id: str, create_if_missing: bool
    ) -> _SyncOutcome:
        now = self._clock()

        with _stage("load", user_id, course_id):
            course = await self._load_course(course_id)
            records = await self._module_progress.find(user_id, course_id)
            previous = await self._course_progress.get(user_id, course_id)
            if previous is None and not create_if_missing:
                raise NotFoundError("no course progress for this enrollment")

        base = previous or CourseProgressAggregate.new(
            user_id=user_id, course_id=course_id
        )

        with _stage("aggregate", user_id, course_id):
            numbers = aggregate(
                records,
                user_id=user_id,
                course_id=course_id,
                total_modules=course.module_count,
                module_ids=course.module_ids,
                previous_current_module_id=base.current_module_id,
            )

        with _stage("struggles", user_id, course_id):
            struggles = detect_struggles(
                records,
                previous=base.struggling_modules,
                module_durations=course.module_durations,
                now=now,
            )

        derived = replace(
            base,
            total_modules=numbers.total_modules,
            completed_modules=numbers.completed_modules,
            in_progress_modules=numbers.in_progress_modules,
            completion_percentage=numbers.completion_percentage,
            average_module_score=numbers.average_module_score,
            total_time_spent=numbers.total_time_spent,
            current_module_id=numbers.current_module_id,
            struggling_modules=struggles.struggling_modules,
        )

        with _stage("achievements", user_id, course_id):
            achievements = evaluate_achievements(
                derived,
                estimated_completion_time=course.estimated_duration,
                now=now,
            )

        final = replace(achievements.aggregate, last_synced_at=now)

        with _stage("persist", user_id, course_id):
            if previous is None:
                stored = await self._course_progress.create(final)
            else:
                stored = await self._course_progress.update(
                    final, expected_version=previous.version
                )

        return _SyncOutcome(
            stored=stored,
            unlocked=achievements.unlocked,
            newly_flagged=len(struggles.newly_flagged),
            resolved=len(struggles.resolved),
            certificate_issued=stored.certificate_issued and not base.certificate_issued,
        )

    async def _load_course(self, course_id: str) -> _CourseView:
        module_count = await self._courses.get_module_count(course_id)
        module_ids = await self._courses.list_module_ids(course_id)
        if module_count is None or module_ids is None:
            raise NotFoundError("course not found")
        return _CourseView(
            module_count=module_count,
            module_ids=module_ids,
            estimated_duration=await self._courses.get_estimated_duration(course_id),
            module_durations={
                module_id: await self._courses.get_module_estimated_duration(module_id)
                for module_id in module_ids
            },
        )

    async def _apply_module_event(
        self, user_id: str, course_id: str, module_id: str, event: ModuleEvent
    ) -> ModuleProgressRecord:
        async with self._locks.hold(user_id, course_id):
            with _stage("apply", user_id, course_id):
                module_ids = await self._courses.list_module_ids(course_id)
                if module_ids is None:
                    raise NotFoundError("course not found")
                if module_id not in module_ids:
                    raise NotFoundError(f"module={module_id} is not part of the course")

                attempt = 1
                while True:
                    try:
                        return await self._write_module_event(
                            user_id, course_id, module_id, event
                        )
                    except ConcurrencyConflictError:
                        # Another process wrote the record; re-read and re-apply.
                        SYNC_CONFLICTS.inc()
                        if attempt >= self._max_persist_attempts:
                            raise
                        attempt += 1

    async def _write_module_event(
        self, user_id: str, course_id: str, module_id: str, event: ModuleEvent
    ) -> ModuleProgressRecord:
        now = self._clock()
        record = await self._module_progress.get(user_id, course_id, module_id)
        if record is None:
            opened = ModuleProgressRecord.new(
                user_id=user_id,
                course_id=course_id,
                module_id=module_id,
                opened_at=now,
            )
            return await self._module_progress.add(event(opened, now))

        updated = event(record, now)
        if updated == record:
            logger.info("Duplicate module event ignored module=%s", module_id)
            return record
        return await self._module_progress.update(
            updated, expected_version=record.version
        )

    async def _after_persist(self, outcome: _SyncOutcome) -> None:
        stored = outcome.stored
        for achievement in outcome.unlocked:
            ACHIEVEMENTS_UNLOCKED.labels(type=achievement.type).inc()
        if outcome.newly_flagged:
            STRUGGLES_FLAGGED.inc(outcome.newly_flagged)
        if outcome.resolved:
            STRUGGLES_RESOLVED.inc(outcome.resolved)

        await self._cache.delete(report_cache_key(stored.user_id, stored.course_id))

        if self._notifier is None:
            return
        # Persisted already: notification failures are logged, not raised.
        try:
            if outcome.unlocked:
                await self._notifier.achievements_unlocked(
                    stored.user_id, stored.course_id, outcome.unlocked
                )
            if outcome.certificate_issued and stored.certificate_id is not None:
                await self._notifier.certificate_issued(
                    stored.user_id, stored.course_id, stored.certificate_id
                )
        except Exception:
            logger.exception("Failed to forward sync notifications")
