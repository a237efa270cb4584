from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from portal.services import token_service
from tests.conftest import MODULE_ID, auth, mint_token

_PROTECTED = [
    ("GET", "/v1/modules"),
    ("GET", f"/v1/modules/{MODULE_ID}"),
    ("POST", f"/v1/modules/{MODULE_ID}/sections/1/complete"),
    ("POST", f"/v1/modules/{MODULE_ID}/test"),
    ("GET", f"/v1/modules/{MODULE_ID}/test/attempts"),
    ("DELETE", f"/v1/modules/{MODULE_ID}/exercises/mcq1"),
]


@pytest.mark.parametrize("method,path", _PROTECTED)
def test_missing_token_is_401_with_login_url(client: TestClient, method: str, path: str) -> None:
    resp = client.request(method, path)
    assert resp.status_code == 401
    assert resp.json()["login_url"] == f"/login?next={path}"
    assert resp.headers["www-authenticate"] == "Bearer"


def test_garbage_token_is_401(client: TestClient) -> None:
    resp = client.get("/v1/modules", headers=auth("not-a-jwt"))
    assert resp.status_code == 401
    assert resp.json()["detail"] == "invalid token"


def test_expired_token_is_401(client: TestClient) -> None:
    token = token_service.create_access_token(sub="s1", ttl_minutes=-5)
    resp = client.get("/v1/modules", headers=auth(token))
    assert resp.status_code == 401
    assert resp.json()["detail"] == "token expired"


def test_token_without_portal_role_is_401(client: TestClient) -> None:
    resp = client.get("/v1/modules", headers=auth(mint_token(roles=["guest"])))
    assert resp.status_code == 401
    assert resp.json()["detail"] == "no portal role"


def test_strongest_role_wins(client: TestClient) -> None:
    # student + instructor claims: instructor bypasses the content gate
    token = mint_token(username="ta", roles=["student", "instructor"])
    resp = client.get(f"/v1/modules/{MODULE_ID}", headers=auth(token))
    assert resp.status_code == 200
    assert resp.json()["role"] == "instructor"
