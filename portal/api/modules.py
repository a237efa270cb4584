"""Module content pages and section-level progress.

GET /v1/modules/{module_id} is the page-state endpoint: it passes the
content gate, then assembles durable progress, the latest stored answer
for every exercise, and the session mirror's in-flight answers.  The
rendering collaborator turns that into markup.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from portal.api.dependencies import get_session_context, get_stores, require_user
from portal.models.course import ModuleConfig
from portal.models.principal import Actor
from portal.models.progress import ModuleProgress
from portal.models.submission import ExerciseSubmission
from portal.repos.stores import Stores
from portal.services import catalog
from portal.services.access_gate import AccessGate, Resource
from portal.services.exercise_service import ExerciseService
from portal.services.progress_service import ProgressService
from portal.services.session_cache import CachedAnswer, SessionContext
from portal.services.submission_service import SubmissionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/modules", tags=["modules"])


class ModuleSummaryOut(BaseModel):
    module_id: str
    title: str
    section_count: int


class ProgressOut(BaseModel):
    module_id: str
    section_progress: dict[int, float]
    overall_progress: float
    completed: bool
    test_unlocked: bool


class SubmissionOut(BaseModel):
    exercise_id: str
    exercise_type: str
    answer: Any
    is_correct: bool | None
    score: float | None
    max_score: float | None
    submitted_at: int


class CachedAnswerOut(BaseModel):
    answer: Any
    completed: bool
    durable: bool


class ExerciseStateOut(BaseModel):
    exercise_id: str
    kind: str
    prompt: str
    options: list[str]
    statements: list[str]
    max_score: float | None
    submitted: SubmissionOut | None
    cached: CachedAnswerOut | None


class SectionOut(BaseModel):
    section: int
    progress: float
    exercises: list[ExerciseStateOut]


class ModulePageOut(BaseModel):
    module_id: str
    title: str
    display_name: str
    role: str
    progress: ProgressOut
    sections: list[SectionOut]


def progress_out(module: ModuleConfig, progress: ModuleProgress, actor: Actor) -> ProgressOut:
    return ProgressOut(
        module_id=module.module_id,
        section_progress={s: progress.section(s) for s in range(1, module.section_count + 1)},
        overall_progress=progress.overall_progress,
        completed=progress.is_completed,
        test_unlocked=actor.bypasses_gate()
        or progress.overall_progress >= module.required_progress_percent,
    )


def submission_out(submission: ExerciseSubmission) -> SubmissionOut:
    return SubmissionOut(
        exercise_id=submission.exercise_id,
        exercise_type=submission.exercise_type,
        answer=json.loads(submission.answer_payload),
        is_correct=submission.is_correct,
        score=submission.score,
        max_score=submission.max_score,
        submitted_at=submission.submitted_at,
    )


def _cached_out(entry: CachedAnswer | None) -> CachedAnswerOut | None:
    if entry is None:
        return None
    return CachedAnswerOut(answer=entry.answer, completed=entry.completed, durable=entry.durable)


async def current_progress(stores: Stores, actor: Actor, module_id: str) -> ProgressOut:
    module = catalog.get_module(module_id)
    progress = await ProgressService(stores).get(actor.user_id, module_id)
    return progress_out(module, progress, actor)


@router.get("", response_model=list[ModuleSummaryOut])
async def list_modules(
    actor: Annotated[Actor, Depends(require_user)],
) -> list[ModuleSummaryOut]:
    return [
        ModuleSummaryOut(module_id=m.module_id, title=m.title, section_count=m.section_count)
        for m in catalog.list_modules()
    ]


@router.get("/{module_id}", response_model=ModulePageOut)
async def module_page(
    module_id: str,
    actor: Annotated[Actor, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
    session: Annotated[SessionContext, Depends(get_session_context)],
) -> ModulePageOut:
    module = catalog.get_module(module_id)
    await AccessGate(stores).require(actor, Resource.content(module_id))

    progress = await ProgressService(stores).get(actor.user_id, module_id)
    stored = {
        s.exercise_id: s
        for s in await SubmissionService(stores).answers_for_module(actor.user_id, module_id)
    }
    in_flight = (await session.mirror()).for_module(module_id)

    sections = []
    for number in range(1, module.section_count + 1):
        exercises = [
            ExerciseStateOut(
                exercise_id=ex.id,
                kind=ex.kind,
                prompt=ex.prompt,
                options=list(ex.options),
                statements=list(ex.statement_keys),
                max_score=ex.max_score,
                submitted=submission_out(stored[ex.id]) if ex.id in stored else None,
                cached=_cached_out(in_flight.get(ex.id)),
            )
            for ex in module.exercises_for(number)
        ]
        sections.append(
            SectionOut(section=number, progress=progress.section(number), exercises=exercises)
        )

    return ModulePageOut(
        module_id=module.module_id,
        title=module.title,
        display_name=actor.display_name,
        role=actor.role,
        progress=progress_out(module, progress, actor),
        sections=sections,
    )


@router.post("/{module_id}/sections/{section}/complete", response_model=ProgressOut)
async def complete_section(
    module_id: str,
    section: int,
    actor: Annotated[Actor, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
    session: Annotated[SessionContext, Depends(get_session_context)],
) -> ProgressOut:
    catalog.get_section(module_id, section)
    await AccessGate(stores).require(actor, Resource.content(module_id))
    await ExerciseService(stores, session).complete_section(actor, module_id, section)
    return await current_progress(stores, actor, module_id)


@router.post("/{module_id}/sections/{section}/reset", response_model=ProgressOut)
async def reset_section(
    module_id: str,
    section: int,
    actor: Annotated[Actor, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
    session: Annotated[SessionContext, Depends(get_session_context)],
) -> ProgressOut:
    catalog.get_section(module_id, section)
    await AccessGate(stores).require(actor, Resource.content(module_id))
    await ExerciseService(stores, session).reset_section(actor, module_id, section)
    return await current_progress(stores, actor, module_id)
