from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from portal.api.dependencies import (
    client_metadata,
    get_session_context,
    get_stores,
    require_user,
)
from portal.api.modules import ProgressOut, SubmissionOut, current_progress, submission_out
from portal.models.principal import Actor
from portal.models.submission import ClientMetadata
from portal.repos.stores import Stores
from portal.services import catalog
from portal.services.access_gate import AccessGate, Resource
from portal.services.exercise_service import ExerciseService
from portal.services.session_cache import SessionContext

router = APIRouter(prefix="/v1/modules/{module_id}/exercises", tags=["exercises"])


class ExerciseAnswerIn(BaseModel):
    # choice key or code text, or statement id -> true/false
    answer: str | dict[str, bool]


class ExerciseResultOut(BaseModel):
    exercise_id: str
    kind: str
    is_correct: bool | None
    score: float | None
    max_score: float | None
    feedback: str
    progress: ProgressOut


@router.post("/{exercise_id}", response_model=ExerciseResultOut)
async def submit_exercise(
    module_id: str,
    exercise_id: str,
    body: ExerciseAnswerIn,
    actor: Annotated[Actor, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
    session: Annotated[SessionContext, Depends(get_session_context)],
    client: Annotated[ClientMetadata, Depends(client_metadata)],
) -> ExerciseResultOut:
    catalog.get_exercise(module_id, exercise_id)
    await AccessGate(stores).require(actor, Resource.content(module_id))
    outcome = await ExerciseService(stores, session).submit(
        actor, module_id, exercise_id, body.answer, client
    )
    return ExerciseResultOut(
        exercise_id=exercise_id,
        kind=outcome.exercise.kind,
        is_correct=outcome.grading.is_correct,
        score=outcome.grading.score,
        max_score=outcome.grading.max_score,
        feedback=outcome.feedback,
        progress=await current_progress(stores, actor, module_id),
    )


@router.get("/{exercise_id}", response_model=SubmissionOut | None)
async def latest_submission(
    module_id: str,
    exercise_id: str,
    actor: Annotated[Actor, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
    session: Annotated[SessionContext, Depends(get_session_context)],
) -> SubmissionOut | None:
    catalog.get_exercise(module_id, exercise_id)
    await AccessGate(stores).require(actor, Resource.content(module_id))
    submission = await ExerciseService(stores, session).latest(actor, module_id, exercise_id)
    return submission_out(submission) if submission is not None else None


@router.delete("/{exercise_id}", response_model=ProgressOut)
async def reset_exercise(
    module_id: str,
    exercise_id: str,
    actor: Annotated[Actor, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
    session: Annotated[SessionContext, Depends(get_session_context)],
) -> ProgressOut:
    catalog.get_exercise(module_id, exercise_id)
    await AccessGate(stores).require(actor, Resource.content(module_id))
    await ExerciseService(stores, session).reset_exercise(actor, module_id, exercise_id)
    return await current_progress(stores, actor, module_id)
