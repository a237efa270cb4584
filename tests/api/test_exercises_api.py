from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from portal.repos.stores import progress_repo, submission_repo
from portal.services import session_cache
from tests.conftest import MODULE_ID, UnreachableCache, auth, enroll, mint_token

_BASE = f"/v1/modules/{MODULE_ID}"


@pytest.fixture
def student(client: TestClient) -> dict[str, str]:
    enroll("test-student")
    return auth(mint_token())


def test_submit_multiple_choice(client: TestClient, student: dict[str, str]) -> None:
    resp = client.post(f"{_BASE}/exercises/mcq1", json={"answer": "b"}, headers=student)
    assert resp.status_code == 200
    body = resp.json()
    assert body["is_correct"] is True
    assert body["score"] == 5
    assert body["max_score"] == 5
    assert "machine language" in body["feedback"]
    assert body["progress"]["section_progress"]["1"] == 100.0
    assert body["progress"]["overall_progress"] == 25.0


def test_submit_true_false(client: TestClient, student: dict[str, str]) -> None:
    resp = client.post(
        f"{_BASE}/exercises/tf1",
        json={"answer": {"q1": True, "q2": False, "q3": True}},
        headers=student,
    )
    assert resp.status_code == 200
    assert resp.json()["score"] == 6
    assert resp.json()["is_correct"] is True


def test_submit_code_is_stored_ungraded(client: TestClient, student: dict[str, str]) -> None:
    resp = client.post(
        f"{_BASE}/exercises/py1", json={"answer": "print('Hello, World!')"}, headers=student
    )
    assert resp.status_code == 200
    assert resp.json()["is_correct"] is None
    assert resp.json()["score"] is None

    latest = client.get(f"{_BASE}/exercises/py1", headers=student).json()
    assert latest["answer"] == "print('Hello, World!')"
    assert latest["is_correct"] is None


def test_latest_answer_overwrites(client: TestClient, student: dict[str, str]) -> None:
    client.post(f"{_BASE}/exercises/mcq1", json={"answer": "a"}, headers=student)
    client.post(f"{_BASE}/exercises/mcq1", json={"answer": "b"}, headers=student)
    latest = client.get(f"{_BASE}/exercises/mcq1", headers=student).json()
    assert latest["answer"] == "b"
    assert latest["is_correct"] is True


def test_latest_is_null_before_any_submission(client: TestClient, student: dict[str, str]) -> None:
    resp = client.get(f"{_BASE}/exercises/mcq1", headers=student)
    assert resp.status_code == 200
    assert resp.json() is None


def test_invalid_answer_is_422(client: TestClient, student: dict[str, str]) -> None:
    resp = client.post(f"{_BASE}/exercises/mcq1", json={"answer": "z"}, headers=student)
    assert resp.status_code == 422
    assert submission_repo._latest == {}


def test_unknown_exercise_is_404(client: TestClient, student: dict[str, str]) -> None:
    resp = client.post(f"{_BASE}/exercises/nope", json={"answer": "a"}, headers=student)
    assert resp.status_code == 404


def test_page_shows_stored_and_cached_answers(client: TestClient, student: dict[str, str]) -> None:
    client.post(f"{_BASE}/exercises/mcq1", json={"answer": "b"}, headers=student)
    page = client.get(_BASE, headers=student).json()
    section1 = page["sections"][0]
    mcq = next(ex for ex in section1["exercises"] if ex["exercise_id"] == "mcq1")
    assert section1["progress"] == 100.0
    assert mcq["submitted"]["answer"] == "b"
    assert mcq["cached"] == {"answer": "b", "completed": True, "durable": True}


def test_session_cookie_issued_once(client: TestClient, student: dict[str, str]) -> None:
    first = client.get(_BASE, headers=student)
    assert "portal_sid" in first.cookies
    second = client.get(_BASE, headers=student)
    assert "portal_sid" not in second.cookies


def test_reset_exercise_clears_cache_and_section(client: TestClient, student: dict[str, str]) -> None:
    client.post(f"{_BASE}/exercises/mcq1", json={"answer": "b"}, headers=student)
    resp = client.delete(f"{_BASE}/exercises/mcq1", headers=student)
    assert resp.status_code == 200
    assert resp.json()["section_progress"]["1"] == 0.0

    page = client.get(_BASE, headers=student).json()
    mcq = next(ex for ex in page["sections"][0]["exercises"] if ex["exercise_id"] == "mcq1")
    assert mcq["cached"] is None


def test_exercises_require_enrollment(client: TestClient) -> None:
    resp = client.post(
        f"{_BASE}/exercises/mcq1", json={"answer": "b"}, headers=auth(mint_token(username="stranger"))
    )
    assert resp.status_code == 403
    assert submission_repo._latest == {}


def test_store_outage_reports_not_saved(
    client: TestClient, student: dict[str, str], monkeypatch: pytest.MonkeyPatch
) -> None:
    async def broken(*args, **kwargs):
        raise OperationalError("UPDATE module_progress", {}, Exception("server closed the connection"))

    # Error responses carry no Set-Cookie, so open the session first.
    client.get(_BASE, headers=student)
    monkeypatch.setattr(progress_repo, "apply", broken)
    resp = client.post(f"{_BASE}/exercises/mcq1", json={"answer": "b"}, headers=student)
    assert resp.status_code == 503
    assert resp.json() == {"detail": "not saved"}

    monkeypatch.undo()
    page = client.get(_BASE, headers=student).json()
    mcq = next(ex for ex in page["sections"][0]["exercises"] if ex["exercise_id"] == "mcq1")
    assert mcq["cached"]["durable"] is False


def test_staff_submissions_leave_no_progress(client: TestClient) -> None:
    headers = auth(mint_token(username="staff", roles=["instructor"]))
    resp = client.post(f"{_BASE}/exercises/mcq1", json={"answer": "b"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["progress"]["overall_progress"] == 0.0
    assert progress_repo._store == {}


def test_session_cache_outage_still_saves(
    client: TestClient, student: dict[str, str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(session_cache, "cache_service", UnreachableCache())

    resp = client.post(f"{_BASE}/exercises/mcq1", json={"answer": "b"}, headers=student)
    assert resp.status_code == 200
    assert resp.json()["progress"]["section_progress"]["1"] == 100.0

    latest = client.get(f"{_BASE}/exercises/mcq1", headers=student).json()
    assert latest["answer"] == "b"

    page = client.get(_BASE, headers=student).json()
    mcq = next(ex for ex in page["sections"][0]["exercises"] if ex["exercise_id"] == "mcq1")
    assert mcq["submitted"]["answer"] == "b"
    assert mcq["cached"] is None

    reset = client.delete(f"{_BASE}/exercises/mcq1", headers=student)
    assert reset.status_code == 200
    assert reset.json()["section_progress"]["1"] == 0.0
