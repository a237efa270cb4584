"""Per-browser-session mirror of in-flight answers.

A SessionContext is built once per request from the ``portal_sid`` cookie
and the authenticated user, then passed explicitly into every engine
call that needs it.  It lets a page re-display the last entered answer
(chosen option, typed code) before or without a durable round trip.

The mirror is advisory.  Completion flags and percentages shown on a page
always come from the Progress and Submission stores; entries here are
only ``durable`` once the matching store write was acknowledged.  When
the cache backend is unreachable every operation logs a warning and
degrades to an empty mirror, and the durable write goes ahead.

Storage: one hash per session under ``session:{sid}``:

    _owner               -> user id
    <module>/<exercise>  -> {"answer": ..., "completed": ..., "durable": ...}

Writes touch single fields, so two requests from one browser working on
different exercises never drop each other's entries.  Two writes to the
same exercise race and the last one wins.

A hash whose owner is not the current user reads as empty, so a shared
browser never shows one learner another learner's answers.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from portal.core.config import SETTINGS
from portal.core.metrics import CACHE_OPERATIONS
from portal.services.cache import CACHE_ERRORS, CacheService, cache_service

logger = logging.getLogger(__name__)

_OWNER_FIELD = "_owner"


def _entry_key(module_id: str, exercise_id: str) -> str:
    return f"{module_id}/{exercise_id}"


@dataclass(frozen=True, slots=True)
class CachedAnswer:
    answer: object
    completed: bool = False
    durable: bool = False


@dataclass(frozen=True, slots=True)
class InFlightState:
    user_id: str
    entries: Mapping[str, CachedAnswer] = field(default_factory=dict)

    def answer_for(self, module_id: str, exercise_id: str) -> CachedAnswer | None:
        return self.entries.get(_entry_key(module_id, exercise_id))

    def for_module(self, module_id: str) -> dict[str, CachedAnswer]:
        """Entries for one module, keyed by bare exercise id."""
        prefix = f"{module_id}/"
        return {
            key[len(prefix):]: entry
            for key, entry in self.entries.items()
            if key.startswith(prefix)
        }


@dataclass(frozen=True, slots=True)
class SessionDelta:
    module_id: str
    exercise_id: str
    answer: object
    completed: bool = True
    durable: bool = False


@dataclass(frozen=True, slots=True)
class ClearScope:
    module_id: str
    exercise_ids: tuple[str, ...]

    @staticmethod
    def exercise(module_id: str, exercise_id: str) -> ClearScope:
        return ClearScope(module_id=module_id, exercise_ids=(exercise_id,))

    @staticmethod
    def section(module_id: str, exercise_ids: Iterable[str]) -> ClearScope:
        return ClearScope(module_id=module_id, exercise_ids=tuple(exercise_ids))


def _encode(entry: CachedAnswer) -> str:
    return json.dumps(
        {"answer": entry.answer, "completed": entry.completed, "durable": entry.durable}
    )


def _decode(raw: str) -> CachedAnswer | None:
    try:
        value = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(value, dict):
        return None
    return CachedAnswer(
        answer=value.get("answer"),
        completed=bool(value.get("completed", False)),
        durable=bool(value.get("durable", False)),
    )


class SessionContext:
    def __init__(
        self,
        session_id: str,
        user_id: str,
        cache: CacheService | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        self.session_id = session_id
        self.user_id = user_id
        self._cache = cache if cache is not None else cache_service
        self._ttl = ttl_seconds if ttl_seconds is not None else SETTINGS.session_ttl_seconds

    @property
    def _key(self) -> str:
        return f"session:{self.session_id}"

    async def mirror(self) -> InFlightState:
        try:
            fields = await self._cache.hgetall(self._key)
        except CACHE_ERRORS:
            self._unavailable("mirror")
            return InFlightState(user_id=self.user_id)
        if not fields or fields.get(_OWNER_FIELD) != self.user_id:
            CACHE_OPERATIONS.labels(operation="miss").inc()
            return InFlightState(user_id=self.user_id)
        CACHE_OPERATIONS.labels(operation="hit").inc()

        entries = {}
        for key, raw in fields.items():
            if key == _OWNER_FIELD:
                continue
            entry = _decode(raw)
            if entry is None:
                logger.warning(
                    "Discarding unreadable session entry sid=%s key=%s", self.session_id, key
                )
                continue
            entries[key] = entry
        return InFlightState(user_id=self.user_id, entries=entries)

    async def commit(self, delta: SessionDelta) -> None:
        entry = CachedAnswer(answer=delta.answer, completed=delta.completed, durable=delta.durable)
        try:
            owner = await self._cache.hget(self._key, _OWNER_FIELD)
            if owner is not None and owner != self.user_id:
                # Another learner left this browser; start a fresh mirror.
                await self._cache.delete(self._key)
            await self._cache.hset(
                self._key,
                {
                    _OWNER_FIELD: self.user_id,
                    _entry_key(delta.module_id, delta.exercise_id): _encode(entry),
                },
                self._ttl,
            )
        except CACHE_ERRORS:
            self._unavailable("commit", delta.module_id)

    async def promote(self, module_id: str, exercise_id: str) -> None:
        """Mark a cached entry durable once its store write was acknowledged."""
        key = _entry_key(module_id, exercise_id)
        try:
            if await self._cache.hget(self._key, _OWNER_FIELD) != self.user_id:
                return
            raw = await self._cache.hget(self._key, key)
            entry = _decode(raw) if raw is not None else None
            if entry is None:
                return
            durable = CachedAnswer(answer=entry.answer, completed=entry.completed, durable=True)
            await self._cache.hset(self._key, {key: _encode(durable)}, self._ttl)
        except CACHE_ERRORS:
            self._unavailable("promote", module_id)

    async def clear(self, scope: ClearScope) -> None:
        """Drop cached answers and completion flags for the scope."""
        try:
            if await self._cache.hget(self._key, _OWNER_FIELD) != self.user_id:
                return
            await self._cache.hdel(
                self._key, *(_entry_key(scope.module_id, ex_id) for ex_id in scope.exercise_ids)
            )
        except CACHE_ERRORS:
            self._unavailable("clear", scope.module_id)

    def _unavailable(self, operation: str, module_id: str = "") -> None:
        CACHE_OPERATIONS.labels(operation="error").inc()
        logger.warning(
            "Session cache unavailable: operation=%s user=%s module=%s sid=%s",
            operation,
            self.user_id,
            module_id,
            self.session_id,
            exc_info=True,
            extra={
                "user_id": self.user_id,
                "module_id": module_id,
                "operation": f"session_{operation}",
            },
        )
