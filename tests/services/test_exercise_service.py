from __future__ import annotations

import asyncio
import json

import pytest

from portal.core.errors import InvalidAnswer, PersistenceUnavailable, UnknownExercise
from portal.models.principal import Actor
from portal.repos.stores import in_memory_stores, progress_repo, submission_repo
from portal.services import catalog
from portal.services.cache import CacheService, InMemoryCacheService
from portal.services.exercise_service import (
    ExerciseService,
    grade_exercise,
    normalize_answer,
)
from portal.services.session_cache import SessionContext
from tests.conftest import UnreachableCache

MODULE_ID = "python-essentials-1-m1"
STUDENT = Actor(user_id="s1", role="student")
ADMIN = Actor(user_id="a1", role="admin")


def _exercise(exercise_id: str):
    return catalog.get_exercise(MODULE_ID, exercise_id)[1]


def _service(actor: Actor = STUDENT, cache: CacheService | None = None) -> ExerciseService:
    session = SessionContext("sid-1", actor.user_id, cache or InMemoryCacheService(), ttl_seconds=60)
    return ExerciseService(in_memory_stores(), session)


# ---- grading ----


def test_multiple_choice_all_or_nothing() -> None:
    mcq = _exercise("mcq1")
    right = grade_exercise(mcq, "b")
    wrong = grade_exercise(mcq, "a")
    assert (right.is_correct, right.score, right.max_score) == (True, 5, 5)
    assert (wrong.is_correct, wrong.score, wrong.max_score) == (False, 0, 5)


def test_code_analysis_graded_like_multiple_choice() -> None:
    ex = _exercise("section3_code_analysis")
    assert grade_exercise(ex, "b").score == 10
    assert grade_exercise(ex, "c").score == 0


def test_true_false_scores_per_statement() -> None:
    tf = _exercise("tf1")
    all_right = grade_exercise(tf, {"q1": True, "q2": False, "q3": True})
    two_right = grade_exercise(tf, {"q1": True, "q2": False, "q3": False})
    assert (all_right.score, all_right.max_score, all_right.is_correct) == (6, 6, True)
    # 2/3 = 66.7% is under 70
    assert (two_right.score, two_right.is_correct) == (4, False)


def test_true_false_fractional_points() -> None:
    tf = _exercise("section2_tf1")
    grading = grade_exercise(tf, {"q1": True, "q2": False, "q3": True, "q4": False})
    assert grading.score == 4.5
    assert grading.max_score == 6.0
    assert grading.is_correct is True  # 3/4 = 75%


def test_true_false_missing_statements_count_wrong() -> None:
    grading = grade_exercise(_exercise("tf1"), {"q1": True})
    assert grading.score == 2
    assert grading.is_correct is False


def test_python_code_is_never_auto_graded() -> None:
    grading = grade_exercise(_exercise("py1"), "print('Hello, World!')")
    assert grading.is_correct is None
    assert grading.score is None
    assert grading.max_score is None


@pytest.mark.parametrize(
    "exercise_id,raw",
    [
        ("mcq1", "e"),
        ("mcq1", True),
        ("tf1", "true"),
        ("tf1", {"q9": True}),
        ("tf1", {"q1": "yes"}),
        ("py1", {"code": "print()"}),
    ],
)
def test_normalize_rejects_wrong_shape(exercise_id: str, raw: object) -> None:
    with pytest.raises(InvalidAnswer):
        normalize_answer(_exercise(exercise_id), raw)


def test_normalize_lowercases_choice() -> None:
    assert normalize_answer(_exercise("mcq1"), " B ") == "b"


# ---- submit / reset ----


def test_submit_records_answer_and_completes_section() -> None:
    outcome = asyncio.run(_service().submit(STUDENT, MODULE_ID, "mcq1", "b"))
    assert outcome.grading.is_correct is True
    assert outcome.feedback
    assert outcome.progress is not None
    assert outcome.progress.section(1) == 100.0
    assert outcome.progress.overall_progress == 25.0

    stored = submission_repo._latest[("s1", MODULE_ID, "multiple_choice", "mcq1")]
    assert json.loads(stored.answer_payload) == "b"
    assert stored.score == 5


def test_submit_wrong_answer_still_completes_section() -> None:
    outcome = asyncio.run(_service().submit(STUDENT, MODULE_ID, "mcq1", "a"))
    assert outcome.grading.is_correct is False
    assert outcome.progress.section(1) == 100.0


def test_submit_overwrites_previous_answer() -> None:
    service = _service()

    async def scenario() -> None:
        await service.submit(STUDENT, MODULE_ID, "mcq1", "a")
        await service.submit(STUDENT, MODULE_ID, "mcq1", "b")

    asyncio.run(scenario())
    latest = asyncio.run(service.latest(STUDENT, MODULE_ID, "mcq1"))
    assert json.loads(latest.answer_payload) == "b"
    assert latest.is_correct is True
    assert len(submission_repo._latest) == 1


def test_code_submission_stored_ungraded() -> None:
    outcome = asyncio.run(_service().submit(STUDENT, MODULE_ID, "py1", "print('hi')"))
    assert outcome.grading.score is None
    assert outcome.feedback == ""
    stored = submission_repo._latest[("s1", MODULE_ID, "python_code", "py1")]
    assert stored.is_correct is None
    assert json.loads(stored.answer_payload) == "print('hi')"


def test_submit_promotes_session_entry_to_durable() -> None:
    cache = InMemoryCacheService()
    service = _service(cache=cache)
    asyncio.run(service.submit(STUDENT, MODULE_ID, "mcq1", "b"))
    state = asyncio.run(SessionContext("sid-1", "s1", cache, ttl_seconds=60).mirror())
    entry = state.answer_for(MODULE_ID, "mcq1")
    assert entry is not None
    assert entry.answer == "b"
    assert entry.completed and entry.durable


def test_failed_write_leaves_session_entry_non_durable(monkeypatch: pytest.MonkeyPatch) -> None:
    from sqlalchemy.exc import OperationalError

    async def broken_upsert(submission) -> None:
        raise OperationalError("INSERT", {}, Exception("connection refused"))

    monkeypatch.setattr(submission_repo, "upsert", broken_upsert)
    cache = InMemoryCacheService()
    service = _service(cache=cache)

    with pytest.raises(PersistenceUnavailable) as exc_info:
        asyncio.run(service.submit(STUDENT, MODULE_ID, "mcq1", "b"))
    assert exc_info.value.operation == "submit_exercise"

    entry = asyncio.run(SessionContext("sid-1", "s1", cache, ttl_seconds=60).mirror()).answer_for(
        MODULE_ID, "mcq1"
    )
    assert entry is not None
    assert entry.durable is False


def test_reset_exercise_resets_section_and_clears_cache() -> None:
    cache = InMemoryCacheService()
    service = _service(cache=cache)

    async def scenario():
        await service.submit(STUDENT, MODULE_ID, "mcq1", "b")
        return await service.reset_exercise(STUDENT, MODULE_ID, "mcq1")

    progress = asyncio.run(scenario())
    assert progress.section(1) == 0.0
    assert progress.overall_progress == 0.0
    state = asyncio.run(SessionContext("sid-1", "s1", cache, ttl_seconds=60).mirror())
    assert state.answer_for(MODULE_ID, "mcq1") is None


def test_reset_section_clears_every_exercise_in_it() -> None:
    cache = InMemoryCacheService()
    service = _service(cache=cache)

    async def scenario():
        await service.submit(STUDENT, MODULE_ID, "mcq1", "b")
        await service.submit(STUDENT, MODULE_ID, "py1", "x = 1")
        await service.submit(STUDENT, MODULE_ID, "section2_mcq1", "a")
        return await service.reset_section(STUDENT, MODULE_ID, 1)

    progress = asyncio.run(scenario())
    assert progress.section(1) == 0.0
    assert progress.section(2) == 100.0
    state = asyncio.run(SessionContext("sid-1", "s1", cache, ttl_seconds=60).mirror())
    assert set(state.for_module(MODULE_ID)) == {"section2_mcq1"}


def test_admin_submissions_do_not_track_progress() -> None:
    outcome = asyncio.run(_service(ADMIN).submit(ADMIN, MODULE_ID, "mcq1", "b"))
    assert outcome.progress is None
    assert ("a1", MODULE_ID, "multiple_choice", "mcq1") in submission_repo._latest
    assert progress_repo._store == {}


def test_unknown_exercise() -> None:
    with pytest.raises(UnknownExercise):
        asyncio.run(_service().submit(STUDENT, MODULE_ID, "nope", "a"))


# ---- session cache outage ----


def test_submit_saves_durably_when_session_cache_is_down() -> None:
    service = _service(cache=UnreachableCache())
    outcome = asyncio.run(service.submit(STUDENT, MODULE_ID, "mcq1", "b"))

    assert outcome.grading.is_correct is True
    assert outcome.progress is not None
    assert outcome.progress.section(1) == 100.0
    stored = submission_repo._latest[("s1", MODULE_ID, "multiple_choice", "mcq1")]
    assert json.loads(stored.answer_payload) == "b"


def test_resets_complete_when_session_cache_is_down() -> None:
    async def scenario() -> tuple[float, float]:
        await _service().submit(STUDENT, MODULE_ID, "mcq1", "b")
        await _service().submit(STUDENT, MODULE_ID, "section2_mcq1", "a")
        down = _service(cache=UnreachableCache())
        after_exercise = await down.reset_exercise(STUDENT, MODULE_ID, "mcq1")
        after_section = await down.reset_section(STUDENT, MODULE_ID, 2)
        return after_exercise.section(1), after_section.section(2)

    assert asyncio.run(scenario()) == (0.0, 0.0)
