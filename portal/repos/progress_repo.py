from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from portal.models.progress import ModuleProgress

ProgressTransform = Callable[[ModuleProgress], ModuleProgress]


class ProgressRepo(Protocol):
    async def get(
        self, user_id: str, module_id: str, section_count: int
    ) -> ModuleProgress | None: ...

    async def apply(
        self,
        user_id: str,
        module_id: str,
        section_count: int,
        transform: ProgressTransform,
    ) -> ModuleProgress:
        """Read the current row (or zero state), transform it, and upsert
        the result as one atomic read-modify-write."""
        ...


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, str], ModuleProgress] = {}

    async def get(
        self, user_id: str, module_id: str, section_count: int
    ) -> ModuleProgress | None:
        return self._store.get((user_id, module_id))

    async def apply(
        self,
        user_id: str,
        module_id: str,
        section_count: int,
        transform: ProgressTransform,
    ) -> ModuleProgress:
        # No await between read and write: atomic on the event loop.
        key = (user_id, module_id)
        current = self._store.get(key) or ModuleProgress.zero(
            user_id=user_id, module_id=module_id, section_count=section_count
        )
        updated = transform(current)
        self._store[key] = updated
        return updated
