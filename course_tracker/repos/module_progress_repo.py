from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from course_tracker.core.errors import ConcurrencyConflictError, NotFoundError
from course_tracker.models.progress import ModuleProgressRecord


class ModuleProgressRepo(Protocol):
    async def find(self, user_id: str, course_id: str) -> list[ModuleProgressRecord]: ...
    async def get(
        self, user_id: str, course_id: str, module_id: str
    ) -> ModuleProgressRecord | None: ...
    async def add(self, record: ModuleProgressRecord) -> ModuleProgressRecord: ...
    async def update(
        self, record: ModuleProgressRecord, *, expected_version: int
    ) -> ModuleProgressRecord: ...


class InMemoryModuleProgressRepo:
    def __init__(self) -> None:
        # One record per (user, module); insertion order is the record order.
        self._store: dict[tuple[str, str], ModuleProgressRecord] = {}

    async def find(self, user_id: str, course_id: str) -> list[ModuleProgressRecord]:
        return [
            r
            for r in self._store.values()
            if r.user_id == user_id and r.course_id == course_id
        ]

    async def get(
        self, user_id: str, course_id: str, module_id: str
    ) -> ModuleProgressRecord | None:
        record = self._store.get((user_id, module_id))
        if record is None or record.course_id != course_id:
            return None
        return record

    async def add(self, record: ModuleProgressRecord) -> ModuleProgressRecord:
        key = (record.user_id, record.module_id)
        if key in self._store:
            raise ConcurrencyConflictError(
                f"module progress for module={record.module_id} already exists",
                user_id=record.user_id,
                course_id=record.course_id,
            )
        stored = replace(record, version=1)
        self._store[key] = stored
        return stored

    async def update(
        self, record: ModuleProgressRecord, *, expected_version: int
    ) -> ModuleProgressRecord:
        key = (record.user_id, record.module_id)
        current = self._store.get(key)
        if current is None:
            raise NotFoundError(
                f"module progress for module={record.module_id} not found",
                user_id=record.user_id,
                course_id=record.course_id,
            )
        if current.version != expected_version:
            raise ConcurrencyConflictError(
                f"module={record.module_id} expected version {expected_version}, "
                f"found {current.version}",
                user_id=record.user_id,
                course_id=record.course_id,
            )
        stored = replace(record, version=expected_version + 1)
        self._store[key] = stored
        return stored
