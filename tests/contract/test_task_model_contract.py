"""
Contract tests for the task dependency and readiness model:
the complexity formula, the readiness rule, next-task ordering, subtask
numbering and the no-partial-write guarantee of the task store.
"""

import json
from dataclasses import replace

import pytest

from taskpilot.complexity import assess_task_complexity
from taskpilot.models import (
    ComplexityLevel,
    ComplexityScore,
    SubTask,
    SubTaskDraft,
    Task,
    TaskPriority,
    TaskStatus,
)
from taskpilot.readiness import ready_tasks, select_next
from taskpilot.store import TaskStore


class TestComplexityContract:
    """Contract: the score is the weighted sum of the four factors."""

    def test_high_priority_task_with_two_dependencies(self):
        """
        Given: task 5, high priority, dependencies [1, 2], no subtasks, 60 character description
        When: it is scored
        Then: score = 2*0.5 + 0*0.7 + 3*1.0 + 1*0.3 = 4.3, which is above 4 and therefore moderate
        """
        task = Task(
            id=5,
            title="Payments",
            description="d" * 60,
            priority=TaskPriority.HIGH,
            dependencies=[1, 2],
        )

        complexity = assess_task_complexity(task)

        assert complexity.score == pytest.approx(4.3)
        assert complexity.level is ComplexityLevel.MODERATE

    @pytest.mark.parametrize("deps", [0, 1, 2, 5])
    def test_each_dependency_adds_half_a_point(self, deps):
        base = Task(id=1, title="t", description="")
        with_deps = replace(base, dependencies=list(range(10, 10 + deps)))

        delta = assess_task_complexity(with_deps).score - assess_task_complexity(base).score

        assert delta == pytest.approx(0.5 * deps)

    def test_score_is_never_negative(self):
        assert assess_task_complexity(Task(id=1, title="t", description="")).score >= 0


class TestReadinessContract:
    """Contract: only pending/in-progress tasks whose dependencies are all done are ready."""

    def test_done_dependency_unblocks(self):
        """Given A done and B pending on A, readiness returns exactly [B]."""
        a = Task(id=1, title="A", description="", status=TaskStatus.DONE)
        b = Task(id=2, title="B", description="", dependencies=[a.id])

        assert ready_tasks([a, b]) == [b]

    def test_missing_dependency_blocks(self):
        """Given A pending on id 99 which does not exist, A is not ready."""
        a = Task(id=1, title="A", description="", dependencies=[99])

        assert a not in ready_tasks([a])

    @pytest.mark.parametrize("status", [TaskStatus.DONE, TaskStatus.DEFERRED])
    def test_finished_tasks_never_ready(self, status):
        task = Task(id=1, title="A", description="", status=status)

        assert ready_tasks([task]) == []

    @pytest.mark.parametrize("dep_status", [TaskStatus.PENDING, TaskStatus.IN_PROGRESS, TaskStatus.DEFERRED])
    def test_unfinished_dependency_blocks(self, dep_status):
        dep = Task(id=1, title="dep", description="", status=dep_status)
        task = Task(id=2, title="A", description="", dependencies=[1])

        assert task not in ready_tasks([dep, task])


class TestSelectionContract:
    """Contract: in-progress first, then priority, then lower complexity, then id."""

    def test_in_progress_wins_over_lower_complexity(self):
        """
        Given: X pending, low priority, score 2 and Y in-progress, low priority, score 5
        Then: Y is selected
        """
        x = Task(id=1, title="X", description="", priority=TaskPriority.LOW,
                 complexity=ComplexityScore(ComplexityLevel.SIMPLE, 2.0))
        y = Task(id=2, title="Y", description="", priority=TaskPriority.LOW, status=TaskStatus.IN_PROGRESS,
                 complexity=ComplexityScore(ComplexityLevel.MODERATE, 5.0))

        assert select_next([x, y]) is y

    @pytest.mark.parametrize("priority", list(TaskPriority))
    def test_in_progress_wins_regardless_of_priority(self, priority):
        pending = Task(id=1, title="P", description="", priority=TaskPriority.HIGH)
        started = Task(id=2, title="S", description="", priority=priority, status=TaskStatus.IN_PROGRESS)

        assert select_next([pending, started]) is started

    def test_empty_ready_set(self):
        assert select_next([]) is None


class TestStoreContract:
    """Contract: id assignment and failed writes."""

    def test_new_subtasks_numbered_after_existing(self, store, write_tasks):
        """Given subtask ids [1, 2], adding two subtasks yields ids [3, 4]."""
        parent = Task(
            id=1,
            title="Parent",
            description="",
            subtasks=[SubTask(1, 1, "a"), SubTask(2, 1, "b")],
        )
        write_tasks([parent.to_dict()])

        added = store.add_subtasks_to_task(1, [SubTaskDraft("c"), SubTaskDraft("d")])

        assert [s.id for s in added] == [3, 4]
        stored = json.loads(store.tasks_file_path.read_text())[0]["subtasks"]
        assert [s["id"] for s in stored] == [1, 2, 3, 4]
        assert {s["parentId"] for s in stored} == {1}

    def test_failed_update_leaves_file_byte_for_byte(self, store):
        store.add_task(title="A", description="")
        before = store.tasks_file_path.read_bytes()

        assert store.update_task_preserving_complexity(Task(id=77, title="Nope", description="")) is False

        assert store.tasks_file_path.read_bytes() == before

    def test_task_ids_are_max_plus_one(self, store, write_tasks):
        write_tasks([Task(id=4, title="Four", description="").to_dict()])

        assert store.add_task(title="Next", description="").id == 5

    def test_missing_file_is_a_failure_not_an_empty_collection(self, config):
        store = TaskStore(config)

        assert store.read_tasks() is None
        assert store.add_task(title="A", description="") is None
