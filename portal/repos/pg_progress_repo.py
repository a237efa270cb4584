"""PostgreSQL implementation of ProgressRepo."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from portal.db.tables import ModuleProgressRow
from portal.models.progress import NOT_STARTED, ModuleProgress
from portal.repos.progress_repo import ProgressTransform


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(
        self, user_id: str, module_id: str, section_count: int
    ) -> ModuleProgress | None:
        stmt = select(ModuleProgressRow).where(
            ModuleProgressRow.user_id == user_id,
            ModuleProgressRow.module_id == module_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_progress(row, section_count)

    async def apply(
        self,
        user_id: str,
        module_id: str,
        section_count: int,
        transform: ProgressTransform,
    ) -> ModuleProgress:
        # Make sure the row exists, then lock it for the rest of the
        # transaction so a concurrent writer waits for our recompute.
        zero = ModuleProgress.zero(
            user_id=user_id, module_id=module_id, section_count=section_count
        )
        await self._session.execute(
            pg_insert(ModuleProgressRow)
            .values(
                user_id=user_id,
                module_id=module_id,
                section_progress=_dump_sections(zero.section_progress),
                overall_progress=NOT_STARTED,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "module_id"])
        )

        stmt = (
            select(ModuleProgressRow)
            .where(
                ModuleProgressRow.user_id == user_id,
                ModuleProgressRow.module_id == module_id,
            )
            .with_for_update()
        )
        row = (await self._session.execute(stmt)).scalar_one()

        updated = transform(_row_to_progress(row, section_count))

        row.section_progress = _dump_sections(updated.section_progress)
        row.overall_progress = updated.overall_progress
        row.completed_at = updated.completed_at
        row.last_accessed = updated.last_accessed
        await self._session.flush()
        return updated


def _dump_sections(sections) -> dict[str, float]:
    return {str(k): float(v) for k, v in sections.items()}


def _row_to_progress(row: ModuleProgressRow, section_count: int) -> ModuleProgress:
    stored = row.section_progress or {}
    sections = {
        s: float(stored.get(str(s), NOT_STARTED)) for s in range(1, section_count + 1)
    }
    return ModuleProgress(
        user_id=row.user_id,
        module_id=row.module_id,
        section_count=section_count,
        section_progress=sections,
        overall_progress=row.overall_progress,
        completed_at=row.completed_at,
        last_accessed=row.last_accessed,
    )
