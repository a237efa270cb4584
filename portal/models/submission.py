from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ClientMetadata:
    """Advisory request details kept for abuse forensics; never used in grading."""

    ip_address: str = ""
    user_agent: str = ""


@dataclass(frozen=True, slots=True)
class Grading:
    is_correct: bool | None
    score: float | None
    max_score: float | None


UNGRADED = Grading(is_correct=None, score=None, max_score=None)


@dataclass(frozen=True, slots=True)
class ExerciseSubmission:
    """Latest answer for (user, module, exercise_type, exercise_id).

    A second submission with the same identity replaces this record;
    earlier answers are not retained.
    """

    user_id: str
    module_id: str
    exercise_type: str
    exercise_id: str
    answer_payload: str  # JSON-serialized answer
    is_correct: bool | None = None
    score: float | None = None
    max_score: float | None = None
    submitted_at: int = 0
    ip_address: str = ""
    user_agent: str = ""

    @property
    def identity(self) -> tuple[str, str, str, str]:
        return (self.user_id, self.module_id, self.exercise_type, self.exercise_id)
