"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in course_tracker/models/.
Repos convert between rows and dataclasses.  The aggregate's append-only
lists (struggles, achievements) are stored as JSONB documents on the
course_progress row so one UPDATE writes the whole aggregate.
"""

from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    Boolean,
    Float,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from course_tracker.db.engine import Base

# --- Course definitions (read-only for sync) ---


class CourseRow(Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    estimated_completion_time: Mapped[int | None] = mapped_column(
        Integer, nullable=True
    )


class CourseModuleRow(Base):
    __tablename__ = "course_modules"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id", ondelete="CASCADE"), index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    estimated_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)


class EnrollmentRow(Base):
    __tablename__ = "enrollments"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("courses.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    enrolled_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


# --- Progress ---


class ModuleProgressRow(Base):
    __tablename__ = "module_progress"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    module_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    completion_percentage: Mapped[int] = mapped_column(Integer, nullable=False)
    total_time_spent: Mapped[int] = mapped_column(Integer, nullable=False)
    best_score_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_attempts: Mapped[int] = mapped_column(Integer, nullable=False)
    started_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    completed_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    last_accessed_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    applied_event_keys: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=list
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class CourseProgressRow(Base):
    __tablename__ = "course_progress"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)
    total_modules: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_modules: Mapped[int] = mapped_column(Integer, nullable=False)
    in_progress_modules: Mapped[int] = mapped_column(Integer, nullable=False)
    average_module_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_time_spent: Mapped[int] = mapped_column(Integer, nullable=False)
    current_module_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    completion_percentage: Mapped[int] = mapped_column(Integer, nullable=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    completion_date: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    struggling_modules: Mapped[list[dict]] = mapped_column(
        JSONB, nullable=False, default=list
    )
    achievements: Mapped[list[dict]] = mapped_column(JSONB, nullable=False, default=list)
    certificate_issued: Mapped[bool] = mapped_column(Boolean, nullable=False)
    certificate_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_synced_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
