from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from portal.models.enrollment import Enrollment


class EnrollmentRepo(Protocol):
    async def count_active(
        self, student_id: str, course_patterns: Sequence[str]
    ) -> int:
        """Active-or-completed enrollments whose course title or program
        name contains any of the patterns (case-insensitive)."""
        ...

    async def add(self, enrollment: Enrollment) -> None: ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, str], Enrollment] = {}

    async def count_active(
        self, student_id: str, course_patterns: Sequence[str]
    ) -> int:
        return sum(
            1
            for e in self._store.values()
            if e.student_id == student_id
            and e.grants_access()
            and any(e.matches(p) for p in course_patterns)
        )

    async def add(self, enrollment: Enrollment) -> None:
        # Re-enrolling in the same class replaces the previous status.
        self._store[(enrollment.student_id, enrollment.class_id)] = enrollment
