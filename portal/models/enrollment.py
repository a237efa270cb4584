from __future__ import annotations

from dataclasses import dataclass

# Statuses that grant access to course content.
ACCESS_STATUSES = frozenset({"active", "completed"})


@dataclass(frozen=True, slots=True)
class Enrollment:
    """Student-to-class enrollment, with the joined course and program
    names denormalized for text-match eligibility checks.

    Read-only to the engine.
    """

    student_id: str
    class_id: str
    status: str  # active|completed|withdrawn|...
    course_title: str = ""
    program_name: str = ""

    def grants_access(self) -> bool:
        return self.status in ACCESS_STATUSES

    def matches(self, pattern: str) -> bool:
        needle = pattern.lower()
        return needle in self.course_title.lower() or needle in self.program_name.lower()
