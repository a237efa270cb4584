from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from uuid import uuid4

# Answer shapes accepted by a module test: a choice key ("a".."d") for
# multiple choice, a boolean for true/false questions.
TestAnswer = str | bool


@dataclass(frozen=True, slots=True)
class Question:
    """Immutable question-bank record."""

    id: str
    prompt: str
    option_set: Mapping[str, str]
    correct_choice: str
    points: int = 10
    domain_tag: str = ""
    explanation: str = ""
    kind: str = "multiple_choice"  # multiple_choice|true_false

    def to_snapshot(self) -> dict:
        """Full record, including the answer key, for server-side storage."""
        return {
            "id": self.id,
            "prompt": self.prompt,
            "option_set": dict(self.option_set),
            "correct_choice": self.correct_choice,
            "points": self.points,
            "domain_tag": self.domain_tag,
            "explanation": self.explanation,
            "kind": self.kind,
        }

    @staticmethod
    def from_snapshot(data: Mapping) -> Question:
        return Question(
            id=str(data["id"]),
            prompt=data["prompt"],
            option_set=dict(data["option_set"]),
            correct_choice=data["correct_choice"],
            points=int(data.get("points", 10)),
            domain_tag=data.get("domain_tag", ""),
            explanation=data.get("explanation", ""),
            kind=data.get("kind", "multiple_choice"),
        )


@dataclass(frozen=True, slots=True)
class QuestionResult:
    chosen: str | None
    correct: str
    is_correct: bool
    points_awarded: int
    explanation: str = ""


@dataclass(frozen=True, slots=True)
class TestAttempt:
    """One graded module-test submission.  Created once, never mutated."""

    __test__ = False  # not a pytest class

    id: str
    user_id: str
    module_id: str
    sampled_question_ids: tuple[str, ...]
    per_question_result: Mapping[str, QuestionResult]
    total_score_percent: float
    passed: bool
    submitted_at: int = 0
    ip_address: str = ""
    user_agent: str = ""

    @property
    def correct_count(self) -> int:
        return sum(1 for r in self.per_question_result.values() if r.is_correct)

    @staticmethod
    def new(
        *,
        user_id: str,
        module_id: str,
        sampled_question_ids: tuple[str, ...],
        per_question_result: Mapping[str, QuestionResult],
        total_score_percent: float,
        passed: bool,
    ) -> TestAttempt:
        return TestAttempt(
            id=uuid4().hex,
            user_id=user_id,
            module_id=module_id,
            sampled_question_ids=sampled_question_ids,
            per_question_result=per_question_result,
            total_score_percent=total_score_percent,
            passed=passed,
        )


@dataclass(frozen=True, slots=True)
class AttemptSnapshot:
    """The exact question set presented for one drawn test."""

    token: str
    user_id: str
    module_id: str
    questions: tuple[Question, ...] = field(default_factory=tuple)
    issued_at: int = 0
