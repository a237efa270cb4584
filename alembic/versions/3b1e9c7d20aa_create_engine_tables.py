"""create progress, submission and enrollment tables

Revision ID: 3b1e9c7d20aa
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1e9c7d20aa"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "module_progress",
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("module_id", sa.String(length=128), nullable=False),
        sa.Column("section_progress", sa.JSON(), nullable=False),
        sa.Column("overall_progress", sa.Float(), nullable=False, server_default="0"),
        sa.Column("completed_at", sa.BigInteger(), nullable=True),
        sa.Column("last_accessed", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("user_id", "module_id"),
    )
    op.create_table(
        "exercise_submissions",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("module_id", sa.String(length=128), nullable=False),
        sa.Column("exercise_type", sa.String(length=32), nullable=False),
        sa.Column("exercise_id", sa.String(length=128), nullable=False),
        sa.Column("attempt_id", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("user_answer", sa.Text(), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=True),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("max_score", sa.Float(), nullable=True),
        sa.Column("submitted_at", sa.BigInteger(), nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("user_agent", sa.Text(), nullable=False, server_default=""),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id",
            "module_id",
            "exercise_type",
            "exercise_id",
            "attempt_id",
            name="uq_exercise_submission_identity",
        ),
    )
    op.create_table(
        "enrollments",
        sa.Column("student_id", sa.String(length=64), nullable=False),
        sa.Column("class_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("course_title", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("program_name", sa.String(length=500), nullable=False, server_default=""),
        sa.PrimaryKeyConstraint("student_id", "class_id"),
    )


def downgrade() -> None:
    op.drop_table("enrollments")
    op.drop_table("exercise_submissions")
    op.drop_table("module_progress")
