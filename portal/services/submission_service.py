"""Exercise answers and module-test attempts.

Formative exercises keep only the latest answer per (user, module,
exercise type, exercise id): a new submission overwrites the old one.
Module-test attempts are appended, never overwritten, and the most
recent five are what the test page shows.
"""

from __future__ import annotations

import json
import logging

from portal.models.assessment import TestAttempt
from portal.models.submission import UNGRADED, ClientMetadata, ExerciseSubmission, Grading
from portal.repos.stores import Stores
from portal.services.persistence import acknowledged, epoch_now, guarded_read

logger = logging.getLogger(__name__)

RECENT_ATTEMPTS_LIMIT = 5


class SubmissionService:
    def __init__(self, stores: Stores) -> None:
        self._stores = stores

    async def record_answer(
        self,
        user_id: str,
        module_id: str,
        exercise_type: str,
        exercise_id: str,
        answer: object,
        grading: Grading | None = None,
        client: ClientMetadata | None = None,
        *,
        commit: bool = True,
    ) -> ExerciseSubmission:
        grading = grading or UNGRADED
        client = client or ClientMetadata()
        submission = ExerciseSubmission(
            user_id=user_id,
            module_id=module_id,
            exercise_type=exercise_type,
            exercise_id=exercise_id,
            answer_payload=json.dumps(answer),
            is_correct=grading.is_correct,
            score=grading.score,
            max_score=grading.max_score,
            submitted_at=epoch_now(),
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        async with acknowledged(
            self._stores,
            operation="record_answer",
            user_id=user_id,
            module_id=module_id,
            commit=commit,
        ):
            await self._stores.submissions.upsert(submission)
        logger.info(
            "Recorded %s answer user=%s module=%s exercise=%s correct=%s",
            exercise_type,
            user_id,
            module_id,
            exercise_id,
            grading.is_correct,
        )
        return submission

    async def latest_answer(
        self, user_id: str, module_id: str, exercise_type: str, exercise_id: str
    ) -> ExerciseSubmission | None:
        async with guarded_read(
            operation="get_submission", user_id=user_id, module_id=module_id
        ):
            return await self._stores.submissions.get_latest(
                user_id, module_id, exercise_type, exercise_id
            )

    async def answers_for_module(
        self, user_id: str, module_id: str
    ) -> list[ExerciseSubmission]:
        async with guarded_read(
            operation="list_submissions", user_id=user_id, module_id=module_id
        ):
            return await self._stores.submissions.list_for_module(user_id, module_id)

    async def record_test_attempt(
        self, attempt: TestAttempt, *, commit: bool = True
    ) -> TestAttempt:
        async with acknowledged(
            self._stores,
            operation="record_test_attempt",
            user_id=attempt.user_id,
            module_id=attempt.module_id,
            commit=commit,
        ):
            await self._stores.submissions.append_attempt(attempt)
        return attempt

    async def recent_attempts(
        self, user_id: str, module_id: str, limit: int = RECENT_ATTEMPTS_LIMIT
    ) -> list[TestAttempt]:
        async with guarded_read(
            operation="recent_attempts", user_id=user_id, module_id=module_id
        ):
            return await self._stores.submissions.recent_attempts(
                user_id, module_id, limit
            )
