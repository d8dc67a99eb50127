from __future__ import annotations

from typing import Protocol

from course_tracker.models.course import Enrollment


class EnrollmentProvider(Protocol):
    async def list_users(self, course_id: str) -> list[str]: ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, str], Enrollment] = {}

    def add(self, enrollment: Enrollment) -> None:
        key = (enrollment.user_id, enrollment.course_id)
        if key in self._store:
            raise ValueError("already enrolled")
        self._store[key] = enrollment

    async def list_users(self, course_id: str) -> list[str]:
        return [e.user_id for e in self._store.values() if e.course_id == course_id]
