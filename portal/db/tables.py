"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in portal/models/.
Repos convert between rows and dataclasses.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Float,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from portal.db.engine import Base

# Sentinel attempt_id for formative exercises, so that the unique key
# (user, module, type, exercise, attempt) collapses to one row per exercise.
FORMATIVE_ATTEMPT = ""


class ModuleProgressRow(Base):
    __tablename__ = "module_progress"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    module_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    # {"1": 100.0, "2": 0.0, ...}; JSON keys are strings
    section_progress: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    overall_progress: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    completed_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    last_accessed: Mapped[int | None] = mapped_column(BigInteger, nullable=True)


class ExerciseSubmissionRow(Base):
    """Formative answers (one row per exercise) and module-test attempts
    (one row per attempt) share this table; attempt_id tells them apart."""

    __tablename__ = "exercise_submissions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    module_id: Mapped[str] = mapped_column(String(128), nullable=False)
    exercise_type: Mapped[str] = mapped_column(
        String(32), nullable=False
    )  # multiple_choice|true_false|code_analysis|python_code|module_test
    exercise_id: Mapped[str] = mapped_column(String(128), nullable=False)
    attempt_id: Mapped[str] = mapped_column(
        String(64), nullable=False, default=FORMATIVE_ATTEMPT
    )
    user_answer: Mapped[str] = mapped_column(Text, nullable=False)
    is_correct: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    submitted_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    ip_address: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    user_agent: Mapped[str] = mapped_column(Text, nullable=False, default="")

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "module_id",
            "exercise_type",
            "exercise_id",
            "attempt_id",
            name="uq_exercise_submission_identity",
        ),
    )


class EnrollmentRow(Base):
    """Denormalized view of enrollments joined to class, course and program.

    Owned by the enrollment system; the engine only reads it.
    """

    __tablename__ = "enrollments"

    student_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    class_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="active"
    )  # active|completed|withdrawn|...
    course_title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    program_name: Mapped[str] = mapped_column(String(500), nullable=False, default="")
