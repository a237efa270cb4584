"""Formative exercises: validate, grade, record, and mirror.

Grading here is deterministic key comparison; only the module test uses
the sampler.  Code exercises are stored for human review and never
auto-graded.

Write ordering on submit:

  1. cache the answer in the session mirror as non-durable
  2. upsert the submission and mark the section complete (one commit)
  3. promote the cached entry to durable

If step 2 does not acknowledge, PersistenceUnavailable propagates and
the cached entry stays non-durable.  Reset runs the other way round:
progress is reset first, then the cached answer and its completion flag
are cleared, so the two layers never disagree about a finished section.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from portal.core.errors import InvalidAnswer
from portal.models.course import ExerciseDef
from portal.models.principal import Actor
from portal.models.progress import ModuleProgress
from portal.models.submission import UNGRADED, ClientMetadata, ExerciseSubmission, Grading
from portal.repos.stores import Stores
from portal.services import catalog
from portal.services.persistence import acknowledged
from portal.services.progress_service import ProgressService
from portal.services.session_cache import ClearScope, SessionContext, SessionDelta
from portal.services.submission_service import SubmissionService

logger = logging.getLogger(__name__)

TRUE_FALSE_PASS_PERCENT = 70.0


def normalize_answer(exercise: ExerciseDef, raw: object) -> object:
    """Coerce a raw form value to the exercise's answer shape.

    Raises InvalidAnswer when it cannot be.
    """
    if exercise.kind in ("multiple_choice", "code_analysis"):
        if not isinstance(raw, str):
            raise InvalidAnswer(f"{exercise.id}: expected a choice key")
        choice = raw.strip().lower()
        if choice not in exercise.options:
            raise InvalidAnswer(f"{exercise.id}: {raw!r} is not one of {list(exercise.options)}")
        return choice

    if exercise.kind == "true_false":
        if not isinstance(raw, Mapping):
            raise InvalidAnswer(f"{exercise.id}: expected statement -> true/false mapping")
        answers: dict[str, bool] = {}
        for statement, value in raw.items():
            if statement not in exercise.statement_keys:
                raise InvalidAnswer(f"{exercise.id}: unknown statement {statement!r}")
            if not isinstance(value, bool):
                raise InvalidAnswer(f"{exercise.id}: {statement} must be true or false")
            answers[statement] = value
        return answers

    if exercise.kind == "python_code":
        if not isinstance(raw, str):
            raise InvalidAnswer(f"{exercise.id}: expected source text")
        return raw

    raise InvalidAnswer(f"{exercise.id}: unsupported exercise kind {exercise.kind!r}")


def grade_exercise(exercise: ExerciseDef, answer: object) -> Grading:
    """Grade a normalized answer.  Code exercises come back ungraded."""
    if exercise.kind in ("multiple_choice", "code_analysis"):
        is_correct = answer == exercise.answer_key
        return Grading(
            is_correct=is_correct,
            score=exercise.points if is_correct else 0,
            max_score=exercise.max_score,
        )

    if exercise.kind == "true_false":
        chosen = answer if isinstance(answer, Mapping) else {}
        correct = sum(
            1 for statement, key in exercise.statement_keys.items() if chosen.get(statement) is key
        )
        total = len(exercise.statement_keys)
        percent = 100.0 * correct / total if total else 0.0
        return Grading(
            is_correct=percent >= TRUE_FALSE_PASS_PERCENT,
            score=exercise.points * correct,
            max_score=exercise.max_score,
        )

    return UNGRADED


@dataclass(frozen=True, slots=True)
class ExerciseOutcome:
    exercise: ExerciseDef
    submission: ExerciseSubmission
    grading: Grading
    progress: ModuleProgress | None
    feedback: str = ""


class ExerciseService:
    def __init__(self, stores: Stores, session: SessionContext) -> None:
        self._stores = stores
        self._session = session
        self._progress = ProgressService(stores)
        self._submissions = SubmissionService(stores)

    async def submit(
        self,
        actor: Actor,
        module_id: str,
        exercise_id: str,
        raw_answer: object,
        client: ClientMetadata | None = None,
    ) -> ExerciseOutcome:
        _, exercise = catalog.get_exercise(module_id, exercise_id)
        answer = normalize_answer(exercise, raw_answer)
        grading = grade_exercise(exercise, answer)

        await self._session.commit(
            SessionDelta(module_id=module_id, exercise_id=exercise_id, answer=answer)
        )

        progress = None
        async with acknowledged(
            self._stores,
            operation="submit_exercise",
            user_id=actor.user_id,
            module_id=module_id,
        ):
            submission = await self._submissions.record_answer(
                actor.user_id,
                module_id,
                exercise.kind,
                exercise_id,
                answer,
                grading,
                client,
                commit=False,
            )
            if actor.is_student():
                progress = await self._progress.mark_section_complete(
                    actor.user_id, module_id, exercise.section, commit=False
                )

        await self._session.promote(module_id, exercise_id)
        return ExerciseOutcome(
            exercise=exercise,
            submission=submission,
            grading=grading,
            progress=progress,
            feedback=exercise.feedback if exercise.auto_graded else "",
        )

    async def latest(
        self, actor: Actor, module_id: str, exercise_id: str
    ) -> ExerciseSubmission | None:
        _, exercise = catalog.get_exercise(module_id, exercise_id)
        return await self._submissions.latest_answer(
            actor.user_id, module_id, exercise.kind, exercise_id
        )

    async def reset_exercise(
        self, actor: Actor, module_id: str, exercise_id: str
    ) -> ModuleProgress | None:
        _, exercise = catalog.get_exercise(module_id, exercise_id)
        progress = None
        if actor.is_student():
            progress = await self._progress.mark_section_reset(
                actor.user_id, module_id, exercise.section
            )
        await self._session.clear(ClearScope.exercise(module_id, exercise_id))
        logger.info(
            "Exercise reset user=%s module=%s exercise=%s",
            actor.user_id,
            module_id,
            exercise_id,
        )
        return progress

    async def complete_section(
        self, actor: Actor, module_id: str, section: int
    ) -> ModuleProgress | None:
        catalog.get_section(module_id, section)
        if not actor.is_student():
            return None
        return await self._progress.mark_section_complete(actor.user_id, module_id, section)

    async def reset_section(
        self, actor: Actor, module_id: str, section: int
    ) -> ModuleProgress | None:
        module = catalog.get_section(module_id, section)
        progress = None
        if actor.is_student():
            progress = await self._progress.mark_section_reset(
                actor.user_id, module_id, section
            )
        await self._session.clear(
            ClearScope.section(module_id, (ex.id for ex in module.exercises_for(section)))
        )
        return progress
