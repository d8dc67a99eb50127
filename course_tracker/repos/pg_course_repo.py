"""PostgreSQL implementations of CourseDefinitionProvider and EnrollmentProvider."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from course_tracker.db.engine import session_scope
from course_tracker.db.tables import CourseModuleRow, CourseRow, EnrollmentRow


class PgCourseRepo:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def get_module_count(self, course_id: str) -> int | None:
        async with session_scope(self._sessions) as session:
            if await session.get(CourseRow, course_id) is None:
                return None
            stmt = select(func.count()).where(CourseModuleRow.course_id == course_id)
            return (await session.execute(stmt)).scalar_one()

    async def list_module_ids(self, course_id: str) -> tuple[str, ...] | None:
        async with session_scope(self._sessions) as session:
            if await session.get(CourseRow, course_id) is None:
                return None
            stmt = (
                select(CourseModuleRow.id)
                .where(CourseModuleRow.course_id == course_id)
                .order_by(CourseModuleRow.position)
            )
            return tuple((await session.execute(stmt)).scalars().all())

    async def get_estimated_duration(self, course_id: str) -> int | None:
        async with session_scope(self._sessions) as session:
            row = await session.get(CourseRow, course_id)
            return None if row is None else row.estimated_completion_time

    async def get_module_estimated_duration(self, module_id: str) -> int | None:
        async with session_scope(self._sessions) as session:
            row = await session.get(CourseModuleRow, module_id)
            return None if row is None else row.estimated_duration


class PgEnrollmentRepo:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def list_users(self, course_id: str) -> list[str]:
        stmt = (
            select(EnrollmentRow.user_id)
            .where(EnrollmentRow.course_id == course_id)
            .order_by(EnrollmentRow.enrolled_at, EnrollmentRow.user_id)
        )
        async with session_scope(self._sessions) as session:
            return list((await session.execute(stmt)).scalars().all())
