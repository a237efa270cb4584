from __future__ import annotations

import json
from typing import Protocol

from portal.models.assessment import QuestionResult, TestAttempt
from portal.models.submission import ExerciseSubmission

MODULE_TEST_TYPE = "module_test"


def module_test_exercise_id(module_id: str) -> str:
    return f"{module_id}_completion_test"


class SubmissionRepo(Protocol):
    async def upsert(self, submission: ExerciseSubmission) -> None:
        """Insert, or overwrite the existing row with the same identity."""
        ...

    async def get_latest(
        self, user_id: str, module_id: str, exercise_type: str, exercise_id: str
    ) -> ExerciseSubmission | None: ...

    async def list_for_module(
        self, user_id: str, module_id: str
    ) -> list[ExerciseSubmission]: ...

    async def append_attempt(self, attempt: TestAttempt) -> None:
        """Always inserts a new row; attempts are never overwritten."""
        ...

    async def recent_attempts(
        self, user_id: str, module_id: str, limit: int = 5
    ) -> list[TestAttempt]:
        """Newest first."""
        ...


class InMemorySubmissionRepo:
    def __init__(self) -> None:
        self._latest: dict[tuple[str, str, str, str], ExerciseSubmission] = {}
        self._attempts: list[TestAttempt] = []

    async def upsert(self, submission: ExerciseSubmission) -> None:
        self._latest[submission.identity] = submission

    async def get_latest(
        self, user_id: str, module_id: str, exercise_type: str, exercise_id: str
    ) -> ExerciseSubmission | None:
        return self._latest.get((user_id, module_id, exercise_type, exercise_id))

    async def list_for_module(
        self, user_id: str, module_id: str
    ) -> list[ExerciseSubmission]:
        return [
            s
            for s in self._latest.values()
            if s.user_id == user_id and s.module_id == module_id
        ]

    async def append_attempt(self, attempt: TestAttempt) -> None:
        if any(a.id == attempt.id for a in self._attempts):
            raise ValueError("attempt already recorded")
        self._attempts.append(attempt)

    async def recent_attempts(
        self, user_id: str, module_id: str, limit: int = 5
    ) -> list[TestAttempt]:
        mine = [
            a
            for a in self._attempts
            if a.user_id == user_id and a.module_id == module_id
        ]
        # Insertion order breaks ties between same-second submissions.
        return list(reversed(mine))[:limit]


# ---------------------------------------------------------------------------
# Attempt payload codec (attempt rows keep their detail in user_answer)
# ---------------------------------------------------------------------------


def dump_attempt_payload(attempt: TestAttempt) -> str:
    return json.dumps(
        {
            "sampled_question_ids": list(attempt.sampled_question_ids),
            "results": {
                qid: {
                    "chosen": r.chosen,
                    "correct": r.correct,
                    "is_correct": r.is_correct,
                    "points_awarded": r.points_awarded,
                    "explanation": r.explanation,
                }
                for qid, r in attempt.per_question_result.items()
            },
        }
    )


def load_attempt_payload(payload: str) -> tuple[tuple[str, ...], dict[str, QuestionResult]]:
    data = json.loads(payload)
    results = {
        qid: QuestionResult(
            chosen=r.get("chosen"),
            correct=r["correct"],
            is_correct=bool(r["is_correct"]),
            points_awarded=int(r.get("points_awarded", 0)),
            explanation=r.get("explanation", ""),
        )
        for qid, r in data.get("results", {}).items()
    }
    return tuple(data.get("sampled_question_ids", [])), results
