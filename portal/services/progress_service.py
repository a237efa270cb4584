"""Per-(user, module) completion tracking.

Every mutation goes through ProgressRepo.apply: the current row (or the
zero state) is read, one section is set to 100 or 0, the overall
percentage is recomputed from the full section vector, and the result is
upserted.  Recomputing from the whole row rather than applying a delta
is what keeps concurrent writers convergent.

A completed module is terminal.  Section resets after completion leave
the row untouched; there is no reopen operation.
"""

from __future__ import annotations

import logging

from portal.models.progress import COMPLETE, NOT_STARTED, ModuleProgress
from portal.repos.stores import Stores
from portal.services import catalog
from portal.services.persistence import acknowledged, epoch_now, guarded_read

logger = logging.getLogger(__name__)


class ProgressService:
    def __init__(self, stores: Stores) -> None:
        self._stores = stores

    async def get(self, user_id: str, module_id: str) -> ModuleProgress:
        """Current progress; a zero-valued record when no row exists yet."""
        module = catalog.get_module(module_id)
        async with guarded_read(
            operation="get_progress", user_id=user_id, module_id=module_id
        ):
            progress = await self._stores.progress.get(
                user_id, module_id, module.section_count
            )
        if progress is None:
            return ModuleProgress.zero(
                user_id=user_id, module_id=module_id, section_count=module.section_count
            )
        return progress

    async def mark_section_complete(
        self, user_id: str, module_id: str, section: int, *, commit: bool = True
    ) -> ModuleProgress:
        return await self._set_section(
            user_id, module_id, section, COMPLETE, "mark_section_complete", commit
        )

    async def mark_section_reset(
        self, user_id: str, module_id: str, section: int, *, commit: bool = True
    ) -> ModuleProgress:
        return await self._set_section(
            user_id, module_id, section, NOT_STARTED, "mark_section_reset", commit
        )

    async def mark_module_complete(
        self, user_id: str, module_id: str, *, commit: bool = True
    ) -> ModuleProgress:
        """Terminal transition: all sections and overall forced to 100."""
        module = catalog.get_module(module_id)
        now = epoch_now()
        async with acknowledged(
            self._stores,
            operation="mark_module_complete",
            user_id=user_id,
            module_id=module_id,
            commit=commit,
        ):
            progress = await self._stores.progress.apply(
                user_id,
                module_id,
                module.section_count,
                lambda current: current.completed(now=now),
            )
        logger.info("Module completed user=%s module=%s", user_id, module_id)
        return progress

    async def _set_section(
        self,
        user_id: str,
        module_id: str,
        section: int,
        percent: float,
        operation: str,
        commit: bool,
    ) -> ModuleProgress:
        module = catalog.get_section(module_id, section)
        now = epoch_now()

        def transform(current: ModuleProgress) -> ModuleProgress:
            if current.is_completed:
                if percent < COMPLETE:
                    logger.info(
                        "Ignoring section reset on completed module "
                        "user=%s module=%s section=%d",
                        user_id,
                        module_id,
                        section,
                    )
                return current
            return current.with_section(section, percent, now=now)

        async with acknowledged(
            self._stores,
            operation=operation,
            user_id=user_id,
            module_id=module_id,
            commit=commit,
        ):
            progress = await self._stores.progress.apply(
                user_id, module_id, module.section_count, transform
            )
        logger.debug(
            "%s user=%s module=%s section=%d overall=%.2f",
            operation,
            user_id,
            module_id,
            section,
            progress.overall_progress,
        )
        return progress
