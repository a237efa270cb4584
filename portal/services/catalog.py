"""Module catalog: per-module configuration, looked up by module id.

Each module page used to hard-code its own section count, course-title
patterns and thresholds.  Here they are data, and every engine call takes
the module id and reads the rest from this registry.
"""

from __future__ import annotations

from portal.core.errors import UnknownExercise, UnknownModule, UnknownSection
from portal.models.course import ExerciseDef, ModuleConfig
from portal.services.question_bank import PYTHON_ESSENTIALS_1_MODULE_1

_MODULES: dict[str, ModuleConfig] = {}


def register(module: ModuleConfig) -> None:
    if module.section_count <= 0:
        raise ValueError("section_count must be positive")
    if module.test_sample_size > len(module.questions):
        raise ValueError(
            f"test_sample_size {module.test_sample_size} exceeds pool of "
            f"{len(module.questions)} for module {module.module_id!r}"
        )
    for ex in module.exercises:
        if not module.has_section(ex.section):
            raise ValueError(f"exercise {ex.id!r} points at missing section {ex.section}")
    _MODULES[module.module_id] = module


def list_modules() -> list[ModuleConfig]:
    return list(_MODULES.values())


def get_module(module_id: str) -> ModuleConfig:
    module = _MODULES.get(module_id)
    if module is None:
        raise UnknownModule(module_id)
    return module


def get_section(module_id: str, section: int) -> ModuleConfig:
    module = get_module(module_id)
    if not module.has_section(section):
        raise UnknownSection(module_id, section)
    return module


def get_exercise(module_id: str, exercise_id: str) -> tuple[ModuleConfig, ExerciseDef]:
    module = get_module(module_id)
    exercise = module.exercise(exercise_id)
    if exercise is None:
        raise UnknownExercise(module_id, exercise_id)
    return module, exercise


_CHOICES = ("a", "b", "c", "d")


def seed_catalog() -> None:
    """Seed the Python Essentials 1 / Module 1 configuration."""
    if _MODULES:
        return
    register(
        ModuleConfig(
            module_id="python-essentials-1-m1",
            title="Python Essentials 1 - Module 1: Introduction to Programming",
            course_patterns=(
                "Python Essentials 1",
                "Python Programming",
            ),
            section_count=4,
            questions=PYTHON_ESSENTIALS_1_MODULE_1,
            exercises=(
                ExerciseDef(
                    id="mcq1",
                    section=1,
                    kind="multiple_choice",
                    prompt="Which language can the CPU understand directly?",
                    options=_CHOICES,
                    answer_key="b",
                    points=5,
                    feedback="The CPU can only understand machine language (binary code).",
                ),
                ExerciseDef(
                    id="tf1",
                    section=1,
                    kind="true_false",
                    statement_keys={"q1": True, "q2": False, "q3": True},
                    points=2,
                ),
                ExerciseDef(id="py1", section=1, kind="python_code"),
                ExerciseDef(
                    id="section2_mcq1",
                    section=2,
                    kind="multiple_choice",
                    prompt="Which Python version should a new project use?",
                    options=_CHOICES,
                    answer_key="a",
                    points=5,
                    feedback="Python 3: Python 2 is no longer actively developed.",
                ),
                ExerciseDef(
                    id="section2_tf1",
                    section=2,
                    kind="true_false",
                    statement_keys={"q1": True, "q2": False, "q3": True, "q4": True},
                    points=1.5,
                ),
                ExerciseDef(id="section2_py1", section=2, kind="python_code"),
                ExerciseDef(
                    id="section3_mcq1",
                    section=3,
                    kind="multiple_choice",
                    prompt="Which users most probably have Python already installed?",
                    options=_CHOICES,
                    answer_key="b",
                    points=5,
                    feedback="Linux distributions usually ship with Python.",
                ),
                ExerciseDef(
                    id="section3_mcq2",
                    section=3,
                    kind="multiple_choice",
                    prompt="What does IDLE stand for?",
                    options=_CHOICES,
                    answer_key="c",
                    points=5,
                    feedback="IDLE is the Integrated Development and Learning Environment.",
                ),
                ExerciseDef(
                    id="section3_code_analysis",
                    section=3,
                    kind="code_analysis",
                    prompt="What is wrong with this snippet?",
                    options=_CHOICES,
                    answer_key="b",
                    points=10,
                    feedback="The call is missing its closing parenthesis.",
                ),
                ExerciseDef(id="section3_py1", section=3, kind="python_code"),
            ),
        )
    )


seed_catalog()
