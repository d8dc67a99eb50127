from __future__ import annotations

from typing import Protocol

from course_tracker.models.course import CourseDefinition


class CourseDefinitionProvider(Protocol):
    """Read side of course authoring.  Course ids that do not exist yield None."""

    async def get_module_count(self, course_id: str) -> int | None: ...
    async def list_module_ids(self, course_id: str) -> tuple[str, ...] | None: ...
    async def get_estimated_duration(self, course_id: str) -> int | None: ...
    async def get_module_estimated_duration(self, module_id: str) -> int | None: ...


class InMemoryCourseRepo:
    def __init__(self) -> None:
        self._by_id: dict[str, CourseDefinition] = {}
        self._module_durations: dict[str, int | None] = {}

    def add(self, course: CourseDefinition) -> None:
        if course.id in self._by_id:
            raise ValueError("course already exists")
        self._by_id[course.id] = course
        for module in course.modules:
            self._module_durations[module.id] = module.estimated_duration

    async def get_module_count(self, course_id: str) -> int | None:
        course = self._by_id.get(course_id)
        return None if course is None else len(course.modules)

    async def list_module_ids(self, course_id: str) -> tuple[str, ...] | None:
        course = self._by_id.get(course_id)
        return None if course is None else course.module_ids

    async def get_estimated_duration(self, course_id: str) -> int | None:
        course = self._by_id.get(course_id)
        return None if course is None else course.estimated_completion_time

    async def get_module_estimated_duration(self, module_id: str) -> int | None:
        return self._module_durations.get(module_id)
