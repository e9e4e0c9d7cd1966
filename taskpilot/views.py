"""Plain-text and markdown renderings of the task collection."""

from __future__ import annotations

from typing import Dict, List

from .models import SubTask, Task, TaskStatus

STATUS_GROUP_ORDER = (
    TaskStatus.IN_PROGRESS,
    TaskStatus.PENDING,
    TaskStatus.DONE,
    TaskStatus.DEFERRED,
)

STATUS_GROUP_TITLES: Dict[TaskStatus, str] = {
    TaskStatus.IN_PROGRESS: "In Progress",
    TaskStatus.PENDING: "Pending",
    TaskStatus.DONE: "Done",
    TaskStatus.DEFERRED: "Deferred",
}

HIGH_COMPLEXITY_MARKER = "!"
INDENT = "  "


def group_tasks_by_status(tasks: List[Task]) -> Dict[TaskStatus, List[Task]]:
    """Group tasks by status in display order, leaving out empty groups."""
    groups: Dict[TaskStatus, List[Task]] = {status: [] for status in STATUS_GROUP_ORDER}
    for task in tasks:
        groups[task.status].append(task)
    return {status: members for status, members in groups.items() if members}


def complexity_badge(task: Task, complexity_threshold: float) -> str:
    if task.complexity is None:
        return ""
    badge = f"{task.complexity.level.value} ({task.complexity.score:.1f})"
    if task.complexity.score >= complexity_threshold:
        badge += f" {HIGH_COMPLEXITY_MARKER}"
    return badge


def format_task_line(task: Task, complexity_threshold: float) -> str:
    line = f"{task.id}: {task.title} [{task.status.value} | Priority: {task.priority.value}]"
    badge = complexity_badge(task, complexity_threshold)
    return f"{line} {badge}" if badge else line


def format_subtask_line(subtask: SubTask) -> str:
    return f"{subtask.id}: {subtask.title} [{subtask.status.value}]"


def render_task_tree(tasks: List[Task], complexity_threshold: float) -> str:
    """Render the status-grouped task tree.

    Each group starts with a heading line; tasks are indented one level and
    their subtasks two levels. A task whose complexity score reaches
    ``complexity_threshold`` gets a trailing ``!``.
    """
    groups = group_tasks_by_status(tasks)
    if not groups:
        return "No tasks found."

    lines: List[str] = []
    for status, members in groups.items():
        lines.append(f"{STATUS_GROUP_TITLES[status]} ({len(members)})")
        for task in members:
            lines.append(INDENT + format_task_line(task, complexity_threshold))
            for subtask in task.subtasks:
                lines.append(INDENT * 2 + format_subtask_line(subtask))
    return "\n".join(lines)


def render_task_details(task: Task) -> str:
    """Render a markdown document describing one task."""
    lines = [
        f"# Task {task.id}: {task.title}",
        "",
        f"**Status:** {task.status.value}",
        f"**Priority:** {task.priority.value}",
    ]
    if task.complexity is not None:
        lines.append(f"**Complexity:** {task.complexity.level.value} ({task.complexity.score:.1f})")

    lines.extend(["", "## Description", task.description or "_No description_"])

    if task.details:
        lines.extend(["", "## Details", task.details])
    if task.test_strategy:
        lines.extend(["", "## Test Strategy", task.test_strategy])
    if task.dependencies:
        lines.extend(["", "## Dependencies", ", ".join(str(dep) for dep in task.dependencies)])
    if task.subtasks:
        lines.extend(["", "## Subtasks"])
        lines.extend(f"- {sub.id}: {sub.title} ({sub.status.value})" for sub in task.subtasks)

    return "\n".join(lines) + "\n"
