"""Unit tests for rule-based complexity scoring."""

import pytest

from taskpilot.complexity import (
    DEFAULT_COMPLEXITY_FACTORS,
    assess_all_tasks_complexity,
    assess_task_complexity,
    complexity_level_for,
    description_points,
    get_average_complexity,
    get_tasks_sorted_by_complexity,
    rescore_unless_overridden,
    update_task_with_complexity,
)
from taskpilot.models import (
    ComplexityLevel,
    ComplexityScore,
    ComplexitySource,
    SubTask,
    Task,
    TaskPriority,
)


def make_task(task_id=1, *, deps=0, subtasks=0, priority=TaskPriority.MEDIUM, description=""):
    return Task(
        id=task_id,
        title=f"Task {task_id}",
        description=description,
        priority=priority,
        dependencies=list(range(100, 100 + deps)),
        subtasks=[SubTask(id=n, parent_id=task_id, title=f"Sub {n}") for n in range(1, subtasks + 1)],
    )


class TestDescriptionPoints:
    """Test cases for the description length factor."""

    @pytest.mark.parametrize(
        "length, expected",
        [(0, 0), (49, 0), (50, 1), (99, 1), (120, 2), (249, 4), (250, 5), (1000, 5)],
    )
    def test_points(self, length, expected):
        assert description_points("x" * length) == expected


class TestComplexityLevelFor:
    """Test cases for the score to level mapping."""

    @pytest.mark.parametrize(
        "score, level",
        [
            (1.0, ComplexityLevel.SIMPLE),
            (4.0, ComplexityLevel.SIMPLE),
            (4.1, ComplexityLevel.MODERATE),
            (7.0, ComplexityLevel.MODERATE),
            (7.5, ComplexityLevel.COMPLEX),
            (10.0, ComplexityLevel.COMPLEX),
            (10.1, ComplexityLevel.VERY_COMPLEX),
        ],
    )
    def test_thresholds_are_exclusive(self, score, level):
        assert complexity_level_for(score) is level


class TestAssessTaskComplexity:
    """Test cases for assess_task_complexity."""

    def test_bare_medium_task(self):
        complexity = assess_task_complexity(make_task())

        assert complexity.score == pytest.approx(2.0)
        assert complexity.level is ComplexityLevel.SIMPLE
        assert complexity.source is ComplexitySource.RULE

    def test_weighted_sum(self):
        task = make_task(deps=2, subtasks=3, priority=TaskPriority.HIGH, description="d" * 120)

        complexity = assess_task_complexity(task)

        # 2*0.5 + 3*0.7 + 3*1.0 + 2*0.3
        assert complexity.score == pytest.approx(6.7)
        assert complexity.level is ComplexityLevel.MODERATE

    def test_each_dependency_adds_half_a_point(self):
        base = assess_task_complexity(make_task(deps=1)).score
        more = assess_task_complexity(make_task(deps=2)).score

        assert more - base == pytest.approx(0.5)

    def test_very_complex(self):
        task = make_task(deps=4, subtasks=6, priority=TaskPriority.HIGH, description="d" * 300)

        complexity = assess_task_complexity(task)

        assert complexity.score == pytest.approx(2.0 + 4.2 + 3.0 + 1.5)
        assert complexity.level is ComplexityLevel.VERY_COMPLEX

    def test_factor_list_is_a_copy(self):
        """Test that every score carries its own copy of the factor descriptors."""
        complexity = assess_task_complexity(make_task())
        complexity.factors[0].weight = 99.0

        assert [f.name for f in complexity.factors] == [
            "dependencyCount",
            "subtaskCount",
            "priority",
            "descriptionLength",
        ]
        assert DEFAULT_COMPLEXITY_FACTORS[0].weight == 0.5

    def test_deterministic_and_pure(self):
        task = make_task(deps=1, subtasks=1)

        first = assess_task_complexity(task)
        second = assess_task_complexity(task)

        assert first == second
        assert task.complexity is None


class TestRescoring:
    """Test cases for the helpers that attach scores to tasks."""

    def test_update_task_with_complexity_returns_copy(self):
        task = make_task()

        scored = update_task_with_complexity(task)

        assert scored is not task
        assert scored.complexity.score == pytest.approx(2.0)
        assert task.complexity is None

    def test_rescore_replaces_rule_score(self):
        stale = ComplexityScore(ComplexityLevel.COMPLEX, 9.0, source=ComplexitySource.RULE)
        task = make_task(deps=1)
        task.complexity = stale

        rescored = rescore_unless_overridden(task)

        assert rescored.complexity.score == pytest.approx(2.5)

    @pytest.mark.parametrize("source", [ComplexitySource.MANUAL, ComplexitySource.ASSISTANT])
    def test_rescore_keeps_supplied_score(self, source):
        supplied = ComplexityScore(ComplexityLevel.COMPLEX, 4.0, source=source)
        task = make_task(deps=3)
        task.complexity = supplied

        assert rescore_unless_overridden(task).complexity is supplied

    def test_assess_all_overwrites_supplied(self):
        task = make_task()
        task.complexity = ComplexityScore(ComplexityLevel.COMPLEX, 4.0, source=ComplexitySource.MANUAL)

        [rescored] = assess_all_tasks_complexity([task])

        assert rescored.complexity.source is ComplexitySource.RULE
        assert rescored.complexity.score == pytest.approx(2.0)


class TestComplexityQueries:
    """Test cases for sorting and averaging helpers."""

    def test_sorted_highest_first(self):
        tasks = [
            make_task(1, priority=TaskPriority.LOW),
            make_task(2, priority=TaskPriority.HIGH),
            make_task(3),
        ]

        ordered = get_tasks_sorted_by_complexity(tasks)

        assert [t.id for t in ordered] == [2, 3, 1]

    def test_average(self):
        tasks = [make_task(1, priority=TaskPriority.LOW), make_task(2, priority=TaskPriority.HIGH)]

        assert get_average_complexity(tasks) == pytest.approx(2.0)

    def test_average_of_nothing(self):
        assert get_average_complexity([]) == 0.0
