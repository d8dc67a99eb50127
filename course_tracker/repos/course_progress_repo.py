from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from course_tracker.core.errors import ConcurrencyConflictError
from course_tracker.models.progress import CourseProgressAggregate


class CourseProgressRepo(Protocol):
    """Aggregate store with an optimistic version check.

    create() and update() return the stored aggregate carrying its new
    version.  update() raises ConcurrencyConflictError when the stored
    version no longer equals expected_version.
    """

    async def get(
        self, user_id: str, course_id: str
    ) -> CourseProgressAggregate | None: ...
    async def create(
        self, aggregate: CourseProgressAggregate
    ) -> CourseProgressAggregate: ...
    async def update(
        self, aggregate: CourseProgressAggregate, *, expected_version: int
    ) -> CourseProgressAggregate: ...


class InMemoryCourseProgressRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, str], CourseProgressAggregate] = {}

    async def get(self, user_id: str, course_id: str) -> CourseProgressAggregate | None:
        return self._store.get((user_id, course_id))

    async def create(self, aggregate: CourseProgressAggregate) -> CourseProgressAggregate:
        key = (aggregate.user_id, aggregate.course_id)
        if key in self._store:
            raise ConcurrencyConflictError(
                "course progress already exists",
                user_id=aggregate.user_id,
                course_id=aggregate.course_id,
            )
        stored = replace(aggregate, version=1)
        self._store[key] = stored
        return stored

    async def update(
        self, aggregate: CourseProgressAggregate, *, expected_version: int
    ) -> CourseProgressAggregate:
        key = (aggregate.user_id, aggregate.course_id)
        current = self._store.get(key)
        if current is None or current.version != expected_version:
            raise ConcurrencyConflictError(
                f"expected version {expected_version}, "
                f"found {None if current is None else current.version}",
                user_id=aggregate.user_id,
                course_id=aggregate.course_id,
            )
        stored = replace(aggregate, version=expected_version + 1)
        self._store[key] = stored
        return stored
