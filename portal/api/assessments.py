"""Module test endpoints.

Start and submit both pass the assessment gate.  Start returns an opaque
attempt token and the drawn questions without their answer keys; submit
posts answers against that token.  A token grades once: resubmitting it,
or submitting after it expired, is a 404 and the learner starts a fresh
draw.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from portal.api.dependencies import client_metadata, get_stores, require_user
from portal.api.modules import ProgressOut, current_progress
from portal.core.config import SETTINGS
from portal.models.assessment import TestAttempt
from portal.models.principal import Actor
from portal.models.submission import ClientMetadata
from portal.repos.stores import Stores
from portal.services import catalog
from portal.services.assessment_service import AssessmentService

router = APIRouter(prefix="/v1/modules/{module_id}/test", tags=["assessments"])


class QuestionOut(BaseModel):
    id: str
    prompt: str
    options: dict[str, str]
    kind: str
    points: int


class TestStartOut(BaseModel):
    attempt_token: str
    module_id: str
    pass_threshold_percent: float
    expires_in: int
    questions: list[QuestionOut]


class TestSubmissionIn(BaseModel):
    # question id -> choice key, or true/false for true/false questions
    answers: dict[str, bool | str]


class QuestionResultOut(BaseModel):
    question_id: str
    chosen: str | None
    correct: str
    is_correct: bool
    points_awarded: int
    explanation: str


class AttemptOut(BaseModel):
    attempt_id: str
    score_percent: float
    passed: bool
    correct_count: int
    total_questions: int
    submitted_at: int


class TestResultOut(AttemptOut):
    results: list[QuestionResultOut]
    progress: ProgressOut


def _attempt_out(attempt: TestAttempt) -> AttemptOut:
    return AttemptOut(
        attempt_id=attempt.id,
        score_percent=attempt.total_score_percent,
        passed=attempt.passed,
        correct_count=attempt.correct_count,
        total_questions=len(attempt.sampled_question_ids),
        submitted_at=attempt.submitted_at,
    )


@router.post("", response_model=TestStartOut, status_code=status.HTTP_201_CREATED)
async def start_test(
    module_id: str,
    actor: Annotated[Actor, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
) -> TestStartOut:
    module = catalog.get_module(module_id)
    snapshot = await AssessmentService(stores).start_test(actor, module_id)
    return TestStartOut(
        attempt_token=snapshot.token,
        module_id=module_id,
        pass_threshold_percent=module.pass_threshold_percent,
        expires_in=SETTINGS.attempt_ttl_seconds,
        questions=[
            QuestionOut(
                id=q.id,
                prompt=q.prompt,
                options=dict(q.option_set),
                kind=q.kind,
                points=q.points,
            )
            for q in snapshot.questions
        ],
    )


@router.get("/attempts", response_model=list[AttemptOut])
async def recent_attempts(
    module_id: str,
    actor: Annotated[Actor, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
) -> list[AttemptOut]:
    attempts = await AssessmentService(stores).recent_attempts(actor, module_id)
    return [_attempt_out(a) for a in attempts]


@router.post("/{attempt_token}", response_model=TestResultOut)
async def submit_test(
    module_id: str,
    attempt_token: str,
    body: TestSubmissionIn,
    actor: Annotated[Actor, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
    client: Annotated[ClientMetadata, Depends(client_metadata)],
) -> TestResultOut:
    attempt = await AssessmentService(stores).submit_test(
        actor, module_id, attempt_token, body.answers, client
    )
    return TestResultOut(
        **_attempt_out(attempt).model_dump(),
        results=[
            QuestionResultOut(
                question_id=qid,
                chosen=result.chosen,
                correct=result.correct,
                is_correct=result.is_correct,
                points_awarded=result.points_awarded,
                explanation=result.explanation,
            )
            for qid, result in attempt.per_question_result.items()
        ],
        progress=await current_progress(stores, actor, module_id),
    )
