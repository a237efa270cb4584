from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

COMPLETE = 100.0
NOT_STARTED = 0.0


def overall_from_sections(
    section_progress: Mapping[int, float], section_count: int
) -> float:
    """Derived overall percentage: share of sections at 100%.

    section_count comes from module configuration, never from the data,
    so a partially populated mapping still divides by the real total.
    """
    if section_count <= 0:
        return NOT_STARTED
    completed = sum(
        1
        for section in range(1, section_count + 1)
        if section_progress.get(section, NOT_STARTED) >= COMPLETE
    )
    return round(COMPLETE * completed / section_count, 2)


@dataclass(frozen=True, slots=True)
class ModuleProgress:
    """One row per (user, module).

    overall_progress is always recomputed from section_progress at write
    time.  The only exception is the terminal module-completed
    transition, which forces every section and the overall value to 100
    and stamps completed_at.
    """

    user_id: str
    module_id: str
    section_count: int
    section_progress: Mapping[int, float] = field(default_factory=dict)
    overall_progress: float = NOT_STARTED
    completed_at: int | None = None
    last_accessed: int | None = None

    @staticmethod
    def zero(*, user_id: str, module_id: str, section_count: int) -> ModuleProgress:
        """Initial state for a (user, module) pair with no row yet."""
        return ModuleProgress(
            user_id=user_id,
            module_id=module_id,
            section_count=section_count,
            section_progress={s: NOT_STARTED for s in range(1, section_count + 1)},
        )

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def section(self, section: int) -> float:
        return self.section_progress.get(section, NOT_STARTED)

    def with_section(self, section: int, percent: float, *, now: int) -> ModuleProgress:
        sections = {
            s: self.section_progress.get(s, NOT_STARTED)
            for s in range(1, self.section_count + 1)
        }
        sections[section] = percent
        return ModuleProgress(
            user_id=self.user_id,
            module_id=self.module_id,
            section_count=self.section_count,
            section_progress=sections,
            overall_progress=overall_from_sections(sections, self.section_count),
            completed_at=self.completed_at,
            last_accessed=now,
        )

    def completed(self, *, now: int) -> ModuleProgress:
        return ModuleProgress(
            user_id=self.user_id,
            module_id=self.module_id,
            section_count=self.section_count,
            section_progress={s: COMPLETE for s in range(1, self.section_count + 1)},
            overall_progress=COMPLETE,
            completed_at=self.completed_at or now,
            last_accessed=now,
        )
