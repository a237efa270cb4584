"""PostgreSQL implementation of SubmissionRepo."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from portal.db.tables import FORMATIVE_ATTEMPT, ExerciseSubmissionRow
from portal.models.assessment import TestAttempt
from portal.models.submission import ExerciseSubmission
from portal.repos.submission_repo import (
    MODULE_TEST_TYPE,
    dump_attempt_payload,
    load_attempt_payload,
    module_test_exercise_id,
)

_IDENTITY = ["user_id", "module_id", "exercise_type", "exercise_id", "attempt_id"]


class PgSubmissionRepo:
    """Satisfies the SubmissionRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert(self, submission: ExerciseSubmission) -> None:
        values = {
            "user_id": submission.user_id,
            "module_id": submission.module_id,
            "exercise_type": submission.exercise_type,
            "exercise_id": submission.exercise_id,
            "attempt_id": FORMATIVE_ATTEMPT,
            "user_answer": submission.answer_payload,
            "is_correct": submission.is_correct,
            "score": submission.score,
            "max_score": submission.max_score,
            "submitted_at": submission.submitted_at,
            "ip_address": submission.ip_address,
            "user_agent": submission.user_agent,
        }
        stmt = pg_insert(ExerciseSubmissionRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=_IDENTITY,
            set_={
                "user_answer": stmt.excluded.user_answer,
                "is_correct": stmt.excluded.is_correct,
                "score": stmt.excluded.score,
                "max_score": stmt.excluded.max_score,
                "submitted_at": stmt.excluded.submitted_at,
                "ip_address": stmt.excluded.ip_address,
                "user_agent": stmt.excluded.user_agent,
            },
        )
        await self._session.execute(stmt)

    async def get_latest(
        self, user_id: str, module_id: str, exercise_type: str, exercise_id: str
    ) -> ExerciseSubmission | None:
        stmt = select(ExerciseSubmissionRow).where(
            ExerciseSubmissionRow.user_id == user_id,
            ExerciseSubmissionRow.module_id == module_id,
            ExerciseSubmissionRow.exercise_type == exercise_type,
            ExerciseSubmissionRow.exercise_id == exercise_id,
            ExerciseSubmissionRow.attempt_id == FORMATIVE_ATTEMPT,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_submission(row)

    async def list_for_module(
        self, user_id: str, module_id: str
    ) -> list[ExerciseSubmission]:
        stmt = select(ExerciseSubmissionRow).where(
            ExerciseSubmissionRow.user_id == user_id,
            ExerciseSubmissionRow.module_id == module_id,
            ExerciseSubmissionRow.attempt_id == FORMATIVE_ATTEMPT,
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_submission(r) for r in rows]

    async def append_attempt(self, attempt: TestAttempt) -> None:
        row = ExerciseSubmissionRow(
            user_id=attempt.user_id,
            module_id=attempt.module_id,
            exercise_type=MODULE_TEST_TYPE,
            exercise_id=module_test_exercise_id(attempt.module_id),
            attempt_id=attempt.id,
            user_answer=dump_attempt_payload(attempt),
            is_correct=attempt.passed,
            score=attempt.total_score_percent,
            max_score=100.0,
            submitted_at=attempt.submitted_at,
            ip_address=attempt.ip_address,
            user_agent=attempt.user_agent,
        )
        self._session.add(row)
        await self._session.flush()

    async def recent_attempts(
        self, user_id: str, module_id: str, limit: int = 5
    ) -> list[TestAttempt]:
        stmt = (
            select(ExerciseSubmissionRow)
            .where(
                ExerciseSubmissionRow.user_id == user_id,
                ExerciseSubmissionRow.module_id == module_id,
                ExerciseSubmissionRow.exercise_type == MODULE_TEST_TYPE,
            )
            .order_by(
                ExerciseSubmissionRow.submitted_at.desc(),
                ExerciseSubmissionRow.id.desc(),
            )
            .limit(limit)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_attempt(r) for r in rows]


def _row_to_submission(row: ExerciseSubmissionRow) -> ExerciseSubmission:
    return ExerciseSubmission(
        user_id=row.user_id,
        module_id=row.module_id,
        exercise_type=row.exercise_type,
        exercise_id=row.exercise_id,
        answer_payload=row.user_answer,
        is_correct=row.is_correct,
        score=row.score,
        max_score=row.max_score,
        submitted_at=row.submitted_at,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
    )


def _row_to_attempt(row: ExerciseSubmissionRow) -> TestAttempt:
    sampled, results = load_attempt_payload(row.user_answer)
    return TestAttempt(
        id=row.attempt_id,
        user_id=row.user_id,
        module_id=row.module_id,
        sampled_question_ids=sampled,
        per_question_result=results,
        total_score_percent=row.score or 0.0,
        passed=bool(row.is_correct),
        submitted_at=row.submitted_at,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
    )
