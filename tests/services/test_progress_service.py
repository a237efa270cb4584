from __future__ import annotations

import asyncio
import itertools

import pytest

from portal.core.errors import UnknownModule, UnknownSection
from portal.models.progress import ModuleProgress, overall_from_sections
from portal.repos.stores import in_memory_stores, progress_repo
from portal.services.progress_service import ProgressService

MODULE_ID = "python-essentials-1-m1"


def _service() -> ProgressService:
    return ProgressService(in_memory_stores())


def test_get_returns_zero_record_when_absent() -> None:
    progress = asyncio.run(_service().get("s1", MODULE_ID))
    assert progress.overall_progress == 0.0
    assert progress.section_progress == {1: 0.0, 2: 0.0, 3: 0.0, 4: 0.0}
    assert not progress.is_completed
    # Reading does not create a row
    assert progress_repo._store == {}


def test_mark_section_complete_recomputes_overall() -> None:
    service = _service()
    progress = asyncio.run(service.mark_section_complete("s1", MODULE_ID, 2))
    assert progress.section(2) == 100.0
    assert progress.overall_progress == 25.0


def test_three_of_four_sections_is_75() -> None:
    service = _service()

    async def scenario() -> ModuleProgress:
        for section in (1, 2, 3):
            await service.mark_section_complete("s1", MODULE_ID, section)
        return await service.get("s1", MODULE_ID)

    assert asyncio.run(scenario()).overall_progress == 75.0


def test_mark_section_reset_recomputes_overall() -> None:
    service = _service()

    async def scenario() -> ModuleProgress:
        await service.mark_section_complete("s1", MODULE_ID, 1)
        await service.mark_section_complete("s1", MODULE_ID, 2)
        return await service.mark_section_reset("s1", MODULE_ID, 1)

    progress = asyncio.run(scenario())
    assert progress.section(1) == 0.0
    assert progress.overall_progress == 25.0


def test_reset_without_row_creates_zero_row() -> None:
    progress = asyncio.run(_service().mark_section_reset("s1", MODULE_ID, 3))
    assert progress.overall_progress == 0.0
    assert ("s1", MODULE_ID) in progress_repo._store


@pytest.mark.parametrize(
    "calls",
    [
        [("complete", 1), ("complete", 3), ("reset", 2)],
        [("reset", 2), ("complete", 3), ("complete", 1), ("complete", 1)],
        [("complete", 2), ("complete", 3), ("complete", 1), ("reset", 2)],
    ],
)
def test_overall_depends_only_on_final_section_vector(calls: list[tuple[str, int]]) -> None:
    service = _service()

    async def scenario() -> ModuleProgress:
        progress = await service.get("s1", MODULE_ID)
        for op, section in calls:
            if op == "complete":
                progress = await service.mark_section_complete("s1", MODULE_ID, section)
            else:
                progress = await service.mark_section_reset("s1", MODULE_ID, section)
        return progress

    progress = asyncio.run(scenario())
    assert progress.section(1) == 100.0
    assert progress.section(2) == 0.0
    assert progress.section(3) == 100.0
    assert progress.overall_progress == 50.0


def test_every_ordering_of_all_sections_reaches_100() -> None:
    for order in itertools.permutations((1, 2, 3, 4)):
        progress_repo._store.clear()
        service = _service()

        async def scenario(order: tuple[int, ...] = order) -> ModuleProgress:
            for section in order:
                await service.mark_section_complete("s1", MODULE_ID, section)
            return await service.get("s1", MODULE_ID)

        assert asyncio.run(scenario()).overall_progress == 100.0


def test_concurrent_section_completions_converge() -> None:
    service = _service()

    async def scenario() -> ModuleProgress:
        await asyncio.gather(
            *(service.mark_section_complete("s1", MODULE_ID, s) for s in (1, 2, 3))
        )
        return await service.get("s1", MODULE_ID)

    assert asyncio.run(scenario()).overall_progress == 75.0


def test_mark_module_complete_forces_everything_to_100() -> None:
    service = _service()

    async def scenario() -> ModuleProgress:
        await service.mark_section_complete("s1", MODULE_ID, 1)
        return await service.mark_module_complete("s1", MODULE_ID)

    progress = asyncio.run(scenario())
    assert progress.overall_progress == 100.0
    assert all(progress.section(s) == 100.0 for s in (1, 2, 3, 4))
    assert progress.is_completed


def test_completed_module_ignores_section_resets() -> None:
    service = _service()

    async def scenario() -> ModuleProgress:
        await service.mark_module_complete("s1", MODULE_ID)
        await service.mark_section_reset("s1", MODULE_ID, 2)
        await service.mark_section_reset("s1", MODULE_ID, 4)
        return await service.get("s1", MODULE_ID)

    progress = asyncio.run(scenario())
    assert progress.overall_progress == 100.0
    assert progress.section(2) == 100.0


def test_progress_is_per_user() -> None:
    service = _service()

    async def scenario() -> tuple[ModuleProgress, ModuleProgress]:
        await service.mark_section_complete("s1", MODULE_ID, 1)
        return await service.get("s1", MODULE_ID), await service.get("s2", MODULE_ID)

    mine, theirs = asyncio.run(scenario())
    assert mine.overall_progress == 25.0
    assert theirs.overall_progress == 0.0


def test_unknown_module_and_section_raise() -> None:
    service = _service()
    with pytest.raises(UnknownModule):
        asyncio.run(service.get("s1", "no-such-module"))
    with pytest.raises(UnknownSection):
        asyncio.run(service.mark_section_complete("s1", MODULE_ID, 5))
    with pytest.raises(UnknownSection):
        asyncio.run(service.mark_section_reset("s1", MODULE_ID, 0))


def test_overall_from_sections_uses_configured_total() -> None:
    # Sections missing from the mapping count as not started
    assert overall_from_sections({1: 100.0}, 4) == 25.0
    assert overall_from_sections({1: 100.0, 2: 100.0, 3: 100.0}, 3) == 100.0
    assert overall_from_sections({1: 100.0}, 3) == 33.33
    assert overall_from_sections({}, 0) == 0.0
