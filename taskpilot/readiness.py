"""Dependency readiness and next-task selection.

Both functions work on read-only snapshots of the task collection and never
raise for unresolved dependency ids: a missing dependency simply blocks.
"""

from __future__ import annotations

from functools import cmp_to_key
from typing import Dict, Iterable, List, Optional

from .models import STATUS_ORDER, SubTask, Task, TaskStatus


def find_task(tasks: Iterable[Task], task_id: int) -> Optional[Task]:
    for task in tasks:
        if task.id == task_id:
            return task
    return None


def find_subtask(task: Task, subtask_id: int) -> Optional[SubTask]:
    for subtask in task.subtasks:
        if subtask.id == subtask_id:
            return subtask
    return None


def _index_by_id(tasks: Iterable[Task]) -> Dict[int, Task]:
    return {task.id: task for task in tasks}


def unmet_dependencies(task: Task, all_tasks: Iterable[Task]) -> List[int]:
    """Dependency ids of ``task`` that are missing or not done."""
    by_id = _index_by_id(all_tasks)
    unmet = []
    for dep_id in task.dependencies:
        dependency = by_id.get(dep_id)
        if dependency is None or dependency.status != TaskStatus.DONE:
            unmet.append(dep_id)
    return unmet


def ready_tasks(all_tasks: Iterable[Task]) -> List[Task]:
    """Tasks that can be worked on now, in collection order.

    A task is ready when it is pending or in progress and every dependency
    resolves to a task that is done.
    """
    tasks = list(all_tasks)
    by_id = _index_by_id(tasks)

    def satisfied(dep_id: int) -> bool:
        dependency = by_id.get(dep_id)
        return dependency is not None and dependency.status == TaskStatus.DONE

    return [
        task for task in tasks
        if task.is_workable() and all(satisfied(dep_id) for dep_id in task.dependencies)
    ]


def blocked_tasks(all_tasks: Iterable[Task]) -> List[Task]:
    """Pending or in-progress tasks with at least one unsatisfied dependency."""
    tasks = list(all_tasks)
    ready_ids = {task.id for task in ready_tasks(tasks)}
    return [task for task in tasks if task.is_workable() and task.id not in ready_ids]


def compare_tasks(a: Task, b: Task) -> int:
    """Order two ready tasks; negative means ``a`` should be worked on first."""
    if a.status != b.status:
        return STATUS_ORDER[a.status] - STATUS_ORDER[b.status]

    if a.priority != b.priority:
        return b.priority_weight - a.priority_weight

    # Complexity only counts when both sides have one.
    if a.complexity is not None and b.complexity is not None:
        if a.complexity.score < b.complexity.score:
            return -1
        if a.complexity.score > b.complexity.score:
            return 1

    return a.id - b.id


def rank_tasks(ready: Iterable[Task]) -> List[Task]:
    return sorted(ready, key=cmp_to_key(compare_tasks))


def select_next(ready: Iterable[Task]) -> Optional[Task]:
    """Recommend the task to work on next, or None when nothing is ready."""
    ranked = rank_tasks(ready)
    return ranked[0] if ranked else None
