"""Rule-based complexity scoring for tasks.

The score is a weighted sum over four fixed factors. The factor list returned
with every score documents the method; it does not carry per-task values.
"""

from __future__ import annotations

from dataclasses import replace
from typing import List

from .models import (
    ComplexityFactor,
    ComplexityLevel,
    ComplexityScore,
    ComplexitySource,
    Task,
)

DEFAULT_COMPLEXITY_FACTORS: tuple[ComplexityFactor, ...] = (
    ComplexityFactor(
        name="dependencyCount",
        weight=0.5,
        description="Number of dependencies the task has",
    ),
    ComplexityFactor(
        name="subtaskCount",
        weight=0.7,
        description="Number of subtasks the task has been broken into",
    ),
    ComplexityFactor(
        name="priority",
        weight=1.0,
        description="Priority level of the task",
    ),
    ComplexityFactor(
        name="descriptionLength",
        weight=0.3,
        description="Length and detail of the task description",
    ),
)

DESCRIPTION_CHARS_PER_POINT = 50
MAX_DESCRIPTION_POINTS = 5


def description_points(description: str) -> int:
    return min(MAX_DESCRIPTION_POINTS, len(description) // DESCRIPTION_CHARS_PER_POINT)


def complexity_level_for(score: float) -> ComplexityLevel:
    """Map a total score onto a complexity level."""
    if score > 10:
        return ComplexityLevel.VERY_COMPLEX
    if score > 7:
        return ComplexityLevel.COMPLEX
    if score > 4:
        return ComplexityLevel.MODERATE
    return ComplexityLevel.SIMPLE


def assess_task_complexity(task: Task) -> ComplexityScore:
    """Calculate a complexity score for ``task``. Pure and deterministic."""
    dependency_factor, subtask_factor, priority_factor, description_factor = DEFAULT_COMPLEXITY_FACTORS

    total_score = 0.0
    total_score += len(task.dependencies) * dependency_factor.weight
    total_score += len(task.subtasks) * subtask_factor.weight
    total_score += task.priority_weight * priority_factor.weight
    total_score += description_points(task.description) * description_factor.weight

    return ComplexityScore(
        level=complexity_level_for(total_score),
        score=total_score,
        factors=[replace(factor) for factor in DEFAULT_COMPLEXITY_FACTORS],
        source=ComplexitySource.RULE,
    )


def update_task_with_complexity(task: Task) -> Task:
    """Return a copy of ``task`` carrying a fresh rule-based score."""
    return replace(task, complexity=assess_task_complexity(task))


def rescore_unless_overridden(task: Task) -> Task:
    """Re-score ``task`` unless its complexity was supplied manually or by the assistant."""
    if task.complexity is not None and task.complexity.is_supplied:
        return task
    return update_task_with_complexity(task)


def assess_all_tasks_complexity(tasks: List[Task]) -> List[Task]:
    return [update_task_with_complexity(task) for task in tasks]


def get_tasks_sorted_by_complexity(tasks: List[Task]) -> List[Task]:
    """Tasks ordered by complexity score, highest first.

    Tasks without a complexity are scored on the fly for the ordering.
    """
    scored = [task if task.complexity else update_task_with_complexity(task) for task in tasks]
    return sorted(scored, key=lambda t: t.complexity.score, reverse=True)


def get_average_complexity(tasks: List[Task]) -> float:
    if not tasks:
        return 0.0
    scored = [task if task.complexity else update_task_with_complexity(task) for task in tasks]
    return sum(task.complexity.score for task in scored) / len(tasks)
