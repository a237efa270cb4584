from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from portal.models.assessment import Question

# Formative exercise kinds.  Only python_code is never auto-graded.
EXERCISE_KINDS = ("multiple_choice", "true_false", "code_analysis", "python_code")


@dataclass(frozen=True, slots=True)
class ExerciseDef:
    """A formative exercise embedded in a module section.

    multiple_choice / code_analysis: answer_key is the correct choice key,
        points is awarded all-or-nothing.
    true_false: statement_keys maps statement id to the correct boolean,
        points is awarded per correct statement.
    python_code: stored for human review; no key, no points.
    """

    id: str
    section: int
    kind: str
    prompt: str = ""
    options: tuple[str, ...] = ()
    answer_key: str | None = None
    statement_keys: Mapping[str, bool] = field(default_factory=dict)
    points: float = 0
    feedback: str = ""

    @property
    def auto_graded(self) -> bool:
        return self.kind != "python_code"

    @property
    def max_score(self) -> float | None:
        if self.kind == "true_false":
            return self.points * len(self.statement_keys)
        if self.kind == "python_code":
            return None
        return self.points


@dataclass(frozen=True, slots=True)
class ModuleConfig:
    """Per-module configuration: everything the engine needs about one module.

    course_patterns are matched case-insensitively as substrings against
    the enrolled course title or program name.
    """

    module_id: str
    title: str
    course_patterns: tuple[str, ...]
    section_count: int
    questions: tuple[Question, ...] = ()
    exercises: tuple[ExerciseDef, ...] = ()
    required_progress_percent: float = 70.0
    pass_threshold_percent: float = 70.0
    test_sample_size: int = 10

    def has_section(self, section: int) -> bool:
        return 1 <= section <= self.section_count

    def exercise(self, exercise_id: str) -> ExerciseDef | None:
        for ex in self.exercises:
            if ex.id == exercise_id:
                return ex
        return None

    def exercises_for(self, section: int) -> list[ExerciseDef]:
        return [ex for ex in self.exercises if ex.section == section]
