"""PostgreSQL implementations of ModuleProgressRepo and CourseProgressRepo.

Each method runs in its own short transaction (see session_scope), so the
stores behave like the CRUD document store the orchestrator expects and
concurrent syncs never share a session.
"""

from __future__ import annotations

from dataclasses import fields, replace

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from course_tracker.core.errors import ConcurrencyConflictError, NotFoundError
from course_tracker.db.engine import session_scope
from course_tracker.db.tables import CourseProgressRow, ModuleProgressRow
from course_tracker.models.progress import (
    Achievement,
    CourseProgressAggregate,
    ModuleProgressRecord,
    StruggleEntry,
)


class PgModuleProgressRepo:
    """Satisfies the ModuleProgressRepo Protocol."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def find(self, user_id: str, course_id: str) -> list[ModuleProgressRecord]:
        stmt = (
            select(ModuleProgressRow)
            .where(
                ModuleProgressRow.user_id == user_id,
                ModuleProgressRow.course_id == course_id,
            )
            .order_by(
                ModuleProgressRow.started_at.asc().nulls_last(),
                ModuleProgressRow.module_id,
            )
        )
        async with session_scope(self._sessions) as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_row_to_record(r) for r in rows]

    async def get(
        self, user_id: str, course_id: str, module_id: str
    ) -> ModuleProgressRecord | None:
        stmt = select(ModuleProgressRow).where(
            ModuleProgressRow.user_id == user_id,
            ModuleProgressRow.module_id == module_id,
            ModuleProgressRow.course_id == course_id,
        )
        async with session_scope(self._sessions) as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return None if row is None else _row_to_record(row)

    async def add(self, record: ModuleProgressRecord) -> ModuleProgressRecord:
        stored = replace(record, version=1)
        async with session_scope(self._sessions) as session:
            session.add(ModuleProgressRow(**_record_values(stored)))
        return stored

    async def update(
        self, record: ModuleProgressRecord, *, expected_version: int
    ) -> ModuleProgressRecord:
        stored = replace(record, version=expected_version + 1)
        key = (
            ModuleProgressRow.user_id == record.user_id,
            ModuleProgressRow.module_id == record.module_id,
        )
        stmt = (
            update(ModuleProgressRow)
            .where(*key, ModuleProgressRow.version == expected_version)
            .values(**_record_values(stored))
        )
        async with session_scope(self._sessions) as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                current = await session.scalar(
                    select(ModuleProgressRow.version).where(*key)
                )
                if current is None:
                    raise NotFoundError(
                        f"module progress for module={record.module_id} not found",
                        user_id=record.user_id,
                        course_id=record.course_id,
                    )
                # Another worker wrote the record since it was read.
                raise ConcurrencyConflictError(
                    f"module={record.module_id} expected version {expected_version}",
                    user_id=record.user_id,
                    course_id=record.course_id,
                )
        return stored


class PgCourseProgressRepo:
    """Satisfies the CourseProgressRepo Protocol with a version column."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def get(self, user_id: str, course_id: str) -> CourseProgressAggregate | None:
        stmt = select(CourseProgressRow).where(
            CourseProgressRow.user_id == user_id,
            CourseProgressRow.course_id == course_id,
        )
        async with session_scope(self._sessions) as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return None if row is None else _row_to_aggregate(row)

    async def create(self, aggregate: CourseProgressAggregate) -> CourseProgressAggregate:
        values = _aggregate_values(aggregate)
        values["version"] = 1
        # A concurrent create violates the primary key → ConcurrencyConflictError.
        async with session_scope(self._sessions) as session:
            session.add(CourseProgressRow(**values))
        return replace(aggregate, version=1)

    async def update(
        self, aggregate: CourseProgressAggregate, *, expected_version: int
    ) -> CourseProgressAggregate:
        values = _aggregate_values(aggregate)
        values["version"] = expected_version + 1
        stmt = (
            update(CourseProgressRow)
            .where(
                CourseProgressRow.user_id == aggregate.user_id,
                CourseProgressRow.course_id == aggregate.course_id,
                CourseProgressRow.version == expected_version,
            )
            .values(**values)
        )
        async with session_scope(self._sessions) as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise ConcurrencyConflictError(
                    f"expected version {expected_version}",
                    user_id=aggregate.user_id,
                    course_id=aggregate.course_id,
                )
        return replace(aggregate, version=expected_version + 1)


def _row_to_record(row: ModuleProgressRow) -> ModuleProgressRecord:
    return ModuleProgressRecord(
        user_id=row.user_id,
        course_id=row.course_id,
        module_id=row.module_id,
        status=row.status,
        completion_percentage=row.completion_percentage,
        total_time_spent=row.total_time_spent,
        best_score_percentage=row.best_score_percentage,
        total_attempts=row.total_attempts,
        started_at=row.started_at,
        completed_at=row.completed_at,
        last_accessed_at=row.last_accessed_at,
        applied_event_keys=tuple(row.applied_event_keys or ()),
        version=row.version,
    )


def _record_values(record: ModuleProgressRecord) -> dict:
    return {
        "user_id": record.user_id,
        "course_id": record.course_id,
        "module_id": record.module_id,
        "status": record.status,
        "completion_percentage": record.completion_percentage,
        "total_time_spent": record.total_time_spent,
        "best_score_percentage": record.best_score_percentage,
        "total_attempts": record.total_attempts,
        "started_at": record.started_at,
        "completed_at": record.completed_at,
        "last_accessed_at": record.last_accessed_at,
        "applied_event_keys": list(record.applied_event_keys),
        "version": record.version,
    }


def _aggregate_values(aggregate: CourseProgressAggregate) -> dict:
    values = {f.name: getattr(aggregate, f.name) for f in fields(aggregate)}
    values["struggling_modules"] = [
        {"module_id": s.module_id, "reason": s.reason, "detected_at": s.detected_at}
        for s in aggregate.struggling_modules
    ]
    values["achievements"] = [
        {"type": a.type, "unlocked_at": a.unlocked_at, "description": a.description}
        for a in aggregate.achievements
    ]
    return values


def _row_to_aggregate(row: CourseProgressRow) -> CourseProgressAggregate:
    return CourseProgressAggregate(
        user_id=row.user_id,
        course_id=row.course_id,
        total_modules=row.total_modules,
        completed_modules=row.completed_modules,
        in_progress_modules=row.in_progress_modules,
        average_module_score=row.average_module_score,
        total_time_spent=row.total_time_spent,
        current_module_id=row.current_module_id,
        completion_percentage=row.completion_percentage,
        is_completed=row.is_completed,
        completion_date=row.completion_date,
        struggling_modules=tuple(
            StruggleEntry(**entry) for entry in row.struggling_modules or ()
        ),
        achievements=tuple(Achievement(**entry) for entry in row.achievements or ()),
        certificate_issued=row.certificate_issued,
        certificate_id=row.certificate_id,
        last_synced_at=row.last_synced_at,
        version=row.version,
    )
