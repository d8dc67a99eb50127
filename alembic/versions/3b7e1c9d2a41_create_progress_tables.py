"""create course and progress tables

Revision ID: 3b7e1c9d2a41
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e1c9d2a41"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "courses",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("estimated_completion_time", sa.Integer(), nullable=True),
    )
    op.create_table(
        "course_modules",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "course_id",
            sa.String(length=64),
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("estimated_duration", sa.Integer(), nullable=True),
    )
    op.create_index("ix_course_modules_course_id", "course_modules", ["course_id"])

    op.create_table(
        "enrollments",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column(
            "course_id",
            sa.String(length=64),
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("enrolled_at", sa.BigInteger(), nullable=False),
    )
    op.create_index("ix_enrollments_course_id", "enrollments", ["course_id"])

    op.create_table(
        "module_progress",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column("module_id", sa.String(length=64), primary_key=True),
        sa.Column("course_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("completion_percentage", sa.Integer(), nullable=False),
        sa.Column("total_time_spent", sa.Integer(), nullable=False),
        sa.Column("best_score_percentage", sa.Float(), nullable=True),
        sa.Column("total_attempts", sa.Integer(), nullable=False),
        sa.Column("started_at", sa.BigInteger(), nullable=True),
        sa.Column("completed_at", sa.BigInteger(), nullable=True),
        sa.Column("last_accessed_at", sa.BigInteger(), nullable=True),
        sa.Column(
            "applied_event_keys",
            postgresql.ARRAY(sa.String()),
            nullable=False,
            server_default="{}",
        ),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_module_progress_course_id", "module_progress", ["course_id"])

    op.create_table(
        "course_progress",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column("course_id", sa.String(length=64), primary_key=True),
        sa.Column("total_modules", sa.Integer(), nullable=False),
        sa.Column("completed_modules", sa.Integer(), nullable=False),
        sa.Column("in_progress_modules", sa.Integer(), nullable=False),
        sa.Column("average_module_score", sa.Float(), nullable=True),
        sa.Column("total_time_spent", sa.Integer(), nullable=False),
        sa.Column("current_module_id", sa.String(length=64), nullable=True),
        sa.Column("completion_percentage", sa.Integer(), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False),
        sa.Column("completion_date", sa.BigInteger(), nullable=True),
        sa.Column(
            "struggling_modules",
            postgresql.JSONB(),
            nullable=False,
            server_default="[]",
        ),
        sa.Column(
            "achievements", postgresql.JSONB(), nullable=False, server_default="[]"
        ),
        sa.Column("certificate_issued", sa.Boolean(), nullable=False),
        sa.Column("certificate_id", sa.String(length=255), nullable=True),
        sa.Column("last_synced_at", sa.BigInteger(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_course_progress_course_id", "course_progress", ["course_id"])


def downgrade() -> None:
    op.drop_index("ix_course_progress_course_id", table_name="course_progress")
    op.drop_table("course_progress")
    op.drop_index("ix_module_progress_course_id", table_name="module_progress")
    op.drop_table("module_progress")
    op.drop_index("ix_enrollments_course_id", table_name="enrollments")
    op.drop_table("enrollments")
    op.drop_index("ix_course_modules_course_id", table_name="course_modules")
    op.drop_table("course_modules")
    op.drop_table("courses")
