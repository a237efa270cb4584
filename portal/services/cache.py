"""Key-value cache backend for ephemeral engine state.

Two consumers sit on top of this:

  - the session cache (per-browser mirror of in-flight answers), kept
    as one hash per session with one field per exercise, and
  - the attempt snapshot store (the exact questions drawn for one test).

Neither is a source of truth.  Every entry carries a TTL so abandoned
sessions and never-submitted tests disappear on their own, and explicit
deletes keep the common case fresh.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from redis.exceptions import RedisError

from portal.db.redis import redis_pool

# Errors a cache backend raises when Redis is unreachable or times out.
CACHE_ERRORS = (RedisError,)


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with a TTL (time to live)."""
        ...

    async def delete(self, key: str) -> None:
        """Explicitly invalidate a cached entry."""
        ...

    async def pop(self, key: str) -> str | None:
        """Fetch and delete in one step.  At most one caller gets the value."""
        ...

    async def hgetall(self, key: str) -> dict[str, str]:
        """All fields of a hash.  Empty dict on cache miss."""
        ...

    async def hget(self, key: str, field: str) -> str | None:
        ...

    async def hset(self, key: str, fields: Mapping[str, str], ttl_seconds: int) -> None:
        """Set hash fields and refresh the TTL of the whole hash."""
        ...

    async def hdel(self, key: str, *fields: str) -> None:
        ...


class InMemoryCacheService:
    """In-memory cache for dev and tests; TTLs are not enforced.

    The autouse fixture in conftest.py clears the store between tests.
    """

    def __init__(self) -> None:
        self._store: dict[str, str] = {}
        self._hashes: dict[str, dict[str, str]] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)
        self._hashes.pop(key, None)

    async def pop(self, key: str) -> str | None:
        return self._store.pop(key, None)

    async def hgetall(self, key: str) -> dict[str, str]:
        return dict(self._hashes.get(key, {}))

    async def hget(self, key: str, field: str) -> str | None:
        return self._hashes.get(key, {}).get(field)

    async def hset(self, key: str, fields: Mapping[str, str], ttl_seconds: int) -> None:
        self._hashes.setdefault(key, {}).update(fields)

    async def hdel(self, key: str, *fields: str) -> None:
        stored = self._hashes.get(key)
        if stored is None:
            return
        for field in fields:
            stored.pop(field, None)
        if not stored:
            del self._hashes[key]


class RedisCacheService:
    """Redis-backed cache, shared across all API instances."""

    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")

    async def pop(self, key: str) -> str | None:
        # GETDEL is atomic, so two concurrent submissions of the same
        # attempt token cannot both be graded.
        return await self._redis.getdel(f"{self._PREFIX}{key}")

    async def hgetall(self, key: str) -> dict[str, str]:
        return await self._redis.hgetall(f"{self._PREFIX}{key}")

    async def hget(self, key: str, field: str) -> str | None:
        return await self._redis.hget(f"{self._PREFIX}{key}", field)

    async def hset(self, key: str, fields: Mapping[str, str], ttl_seconds: int) -> None:
        # HSET touches only the named fields, so concurrent writers to
        # different exercises of one session do not overwrite each other.
        name = f"{self._PREFIX}{key}"
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.hset(name, mapping=dict(fields))
            pipe.expire(name, ttl_seconds)
            await pipe.execute()

    async def hdel(self, key: str, *fields: str) -> None:
        if fields:
            await self._redis.hdel(f"{self._PREFIX}{key}", *fields)


if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
