from __future__ import annotations

import sys
from collections.abc import Iterator, Mapping
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from portal.main import app
from portal.models.enrollment import Enrollment
from portal.repos.stores import enrollment_repo, progress_repo, submission_repo
from portal.services import catalog, token_service
from portal.services.cache import cache_service

# Ensure repo root is on sys.path so `import portal` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

MODULE_ID = "python-essentials-1-m1"


@pytest.fixture(autouse=True)
def reset_stores() -> None:
    """Clear the in-memory progress, submission and enrollment stores."""
    progress_repo._store.clear()
    submission_repo._latest.clear()
    submission_repo._attempts.clear()
    enrollment_repo._store.clear()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear session mirrors and attempt snapshots between tests."""
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]
        cache_service._hashes.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_catalog() -> Iterator[None]:
    """Drop modules registered by a test; keep the seeded one."""
    seeded = catalog.get_module(MODULE_ID)
    yield
    catalog._MODULES.clear()
    catalog._MODULES[MODULE_ID] = seeded


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "test-student",
    roles: list[str] | None = None,
    name: str = "",
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles, name=name)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def enroll(student_id: str, course_title: str = "Python Essentials 1", status: str = "active") -> None:
    enrollment_repo._store[(student_id, "class-1")] = Enrollment(
        student_id=student_id,
        class_id="class-1",
        status=status,
        course_title=course_title,
    )


@pytest.fixture
def token() -> str:
    """Token with the default role (student)."""
    return mint_token()


@pytest.fixture
def instructor_token() -> str:
    return mint_token(username="test-instructor", roles=["instructor"])


@pytest.fixture
def admin_token() -> str:
    return mint_token(username="test-admin", roles=["admin"])


class UnreachableCache:
    """Cache backend whose every call fails like redis-py with the server down."""

    @staticmethod
    def _down() -> RedisConnectionError:
        return RedisConnectionError("Error 111 connecting to redis:6379. Connection refused.")

    async def get(self, key: str) -> str | None:
        raise self._down()

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        raise self._down()

    async def delete(self, key: str) -> None:
        raise self._down()

    async def pop(self, key: str) -> str | None:
        raise self._down()

    async def hgetall(self, key: str) -> dict[str, str]:
        raise self._down()

    async def hget(self, key: str, field: str) -> str | None:
        raise self._down()

    async def hset(self, key: str, fields: Mapping[str, str], ttl_seconds: int) -> None:
        raise self._down()

    async def hdel(self, key: str, *fields: str) -> None:
        raise self._down()
