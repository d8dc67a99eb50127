from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class CourseModule:
    id: str
    position: int
    title: str = ""
    estimated_duration: int | None = None  # minutes


@dataclass(frozen=True, slots=True)
class CourseDefinition:
    """Read-only view of an authored course, as far as sync needs it."""

    id: str
    title: str = ""
    estimated_completion_time: int | None = None  # minutes
    modules: tuple[CourseModule, ...] = field(default_factory=tuple)

    @property
    def module_ids(self) -> tuple[str, ...]:
        return tuple(m.id for m in sorted(self.modules, key=lambda m: m.position))


@dataclass(frozen=True, slots=True)
class Enrollment:
    user_id: str
    course_id: str
    enrolled_at: int
