"""End-to-end walk through one learner's module.

No enrollment -> denied.  Enrolled -> content page.  Three of four
sections done -> 75% and the test unlocks.  6/10 fails and leaves
progress alone; 8/10 passes and forces the module to 100%.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from portal.services import catalog
from portal.services.assessment_service import attempt_snapshots
from tests.conftest import MODULE_ID, UnreachableCache, auth, enroll, mint_token

_BASE = f"/v1/modules/{MODULE_ID}"


def _answers(questions: list[dict], correct: int) -> dict[str, str]:
    bank = {q.id: q for q in catalog.get_module(MODULE_ID).questions}
    answers = {}
    for i, q in enumerate(questions):
        key = bank[q["id"]].correct_choice
        answers[q["id"]] = key if i < correct else next(k for k in q["options"] if k != key)
    return answers


def _take_test(client: TestClient, headers: dict[str, str], correct: int) -> dict:
    start = client.post(f"{_BASE}/test", headers=headers)
    assert start.status_code == 201
    body = start.json()
    resp = client.post(
        f"{_BASE}/test/{body['attempt_token']}",
        json={"answers": _answers(body["questions"], correct)},
        headers=headers,
    )
    assert resp.status_code == 200
    return resp.json()


def test_full_learner_journey(client: TestClient) -> None:
    headers = auth(mint_token(username="learner-1", name="Lee"))

    denied = client.get(_BASE, headers=headers)
    assert denied.status_code == 403
    assert denied.json()["reason"] == "not_enrolled"

    enroll("learner-1")
    page = client.get(_BASE, headers=headers)
    assert page.status_code == 200
    assert page.json()["display_name"] == "Lee"
    assert page.json()["progress"]["overall_progress"] == 0.0

    for section in (1, 2, 3):
        resp = client.post(f"{_BASE}/sections/{section}/complete", headers=headers)
        assert resp.status_code == 200
    progress = resp.json()
    assert progress["overall_progress"] == 75.0
    assert progress["test_unlocked"] is True

    failed = _take_test(client, headers, correct=6)
    assert failed["passed"] is False
    assert failed["score_percent"] == 60.0
    assert failed["progress"]["overall_progress"] == 75.0

    passed = _take_test(client, headers, correct=8)
    assert passed["passed"] is True
    assert passed["score_percent"] == 80.0
    assert passed["progress"]["overall_progress"] == 100.0
    assert passed["progress"]["completed"] is True

    attempts = client.get(f"{_BASE}/test/attempts", headers=headers).json()
    assert [a["passed"] for a in attempts] == [True, False]


def test_test_start_denied_below_threshold(client: TestClient) -> None:
    headers = auth(mint_token(username="learner-2"))
    enroll("learner-2")
    client.post(f"{_BASE}/sections/1/complete", headers=headers)
    client.post(f"{_BASE}/sections/2/complete", headers=headers)

    resp = client.post(f"{_BASE}/test", headers=headers)
    assert resp.status_code == 403
    body = resp.json()
    assert body["reason"] == "insufficient_progress"
    assert body["role"] == "student"
    assert body["user_id"] == "learner-2"
    assert body["back_to"] == "/v1/modules"


def test_denial_body_carries_no_resource_data(client: TestClient) -> None:
    headers = auth(mint_token(username="outsider"))
    resp = client.get(_BASE, headers=headers)
    assert resp.status_code == 403
    assert set(resp.json()) == {"detail", "reason", "role", "user_id", "back_to"}


def test_started_test_hides_answer_keys(client: TestClient) -> None:
    headers = auth(mint_token(username="staff", roles=["instructor"]))
    body = client.post(f"{_BASE}/test", headers=headers).json()
    assert len(body["questions"]) == 10
    assert len({q["id"] for q in body["questions"]}) == 10
    for q in body["questions"]:
        assert set(q) == {"id", "prompt", "options", "kind", "points"}
    assert body["pass_threshold_percent"] == 70.0


def test_attempt_token_grades_once(client: TestClient) -> None:
    headers = auth(mint_token(username="staff", roles=["admin"]))
    token = client.post(f"{_BASE}/test", headers=headers).json()["attempt_token"]
    first = client.post(f"{_BASE}/test/{token}", json={"answers": {}}, headers=headers)
    assert first.status_code == 200
    again = client.post(f"{_BASE}/test/{token}", json={"answers": {}}, headers=headers)
    assert again.status_code == 404


def test_attempt_token_is_bound_to_user(client: TestClient) -> None:
    owner = auth(mint_token(username="staff-a", roles=["admin"]))
    other = auth(mint_token(username="staff-b", roles=["admin"]))
    token = client.post(f"{_BASE}/test", headers=owner).json()["attempt_token"]
    assert client.post(f"{_BASE}/test/{token}", json={"answers": {}}, headers=other).status_code == 404
    assert client.post(f"{_BASE}/test/{token}", json={"answers": {}}, headers=owner).status_code == 200


def test_completed_module_stays_complete_after_reset(client: TestClient) -> None:
    headers = auth(mint_token(username="learner-3"))
    enroll("learner-3")
    for section in (1, 2, 3):
        client.post(f"{_BASE}/sections/{section}/complete", headers=headers)
    _take_test(client, headers, correct=10)

    resp = client.post(f"{_BASE}/sections/2/reset", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["overall_progress"] == 100.0
    assert resp.json()["section_progress"]["2"] == 100.0


def test_instructor_and_admin_bypass_gates(client: TestClient) -> None:
    for role in ("instructor", "admin"):
        headers = auth(mint_token(username=f"staff-{role}", roles=[role]))
        assert client.get(_BASE, headers=headers).status_code == 200
        assert client.post(f"{_BASE}/test", headers=headers).status_code == 201


def test_list_modules(client: TestClient) -> None:
    resp = client.get("/v1/modules", headers=auth(mint_token()))
    assert resp.status_code == 200
    assert resp.json() == [
        {
            "module_id": MODULE_ID,
            "title": catalog.get_module(MODULE_ID).title,
            "section_count": 4,
        }
    ]


def test_unknown_module_and_section_are_404(client: TestClient) -> None:
    headers = auth(mint_token(roles=["admin"]))
    assert client.get("/v1/modules/nope", headers=headers).status_code == 404
    assert client.post(f"{_BASE}/sections/9/complete", headers=headers).status_code == 404
    assert client.post("/v1/modules/nope/test", headers=headers).status_code == 404


def test_test_start_with_cache_down_is_not_saved(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(attempt_snapshots, "_cache", UnreachableCache())
    headers = auth(mint_token(username="staff", roles=["instructor"]))

    start = client.post(f"{_BASE}/test", headers=headers)
    assert start.status_code == 503
    assert start.json() == {"detail": "not saved"}

    submit = client.post(f"{_BASE}/test/some-token", json={"answers": {}}, headers=headers)
    assert submit.status_code == 503
