"""MCP server exposing TaskPilot task management tools."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from taskpilot import TaskManager, TaskPilotConfig
from taskpilot.taskpilot_logging import setup_logging

mcp = FastMCP("taskpilot")

PROJECT_ROOT_ENV = "TASKPILOT_PROJECT_ROOT"


def _locate_workspace_root(tasks_file: str) -> Optional[Path]:
    cwd = Path.cwd().resolve()
    for base in (cwd, *cwd.parents):
        if (base / tasks_file).is_file():
            return base
    return None


def _resolve_root(root: Optional[str], *, allow_cwd: bool = False) -> Path:
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided root '{root}' does not exist.")
        return resolved

    env_root = os.getenv(PROJECT_ROOT_ENV)
    if env_root:
        env_path = Path(env_root).expanduser().resolve()
        if not env_path.exists():
            raise ValueError(
                f"Environment variable {PROJECT_ROOT_ENV} points to '{env_root}', which does not exist."
            )
        return env_path

    tasks_file = TaskPilotConfig.from_env(Path.cwd()).tasks_file
    detected_root = _locate_workspace_root(tasks_file)
    if detected_root:
        return detected_root

    if allow_cwd:
        return Path.cwd().resolve()

    raise ValueError(
        f"Unable to find {tasks_file} in the current directory or its parents. Provide the 'root' argument, "
        f"set the {PROJECT_ROOT_ENV} environment variable, or run init_tasks first."
    )


def _manager(root: Optional[str], *, allow_cwd: bool = False) -> TaskManager:
    return TaskManager(TaskPilotConfig.from_env(_resolve_root(root, allow_cwd=allow_cwd)))


@mcp.tool()
def init_tasks(overwrite: bool = False, root: Optional[str] = None) -> Dict[str, Any]:
    """STEP 1: Create an empty tasks.json and the generated tasks directory.
    Uses the current directory when no root is given and no tasks file exists yet."""

    return _manager(root, allow_cwd=True).init_tasks(overwrite=overwrite)


@mcp.tool()
def list_tasks(status: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """List all tasks, optionally filtered by status (pending, in-progress, done, deferred)."""

    return _manager(root).list_tasks(status=status)


@mcp.tool()
def get_task(task_id: int, root: Optional[str] = None) -> Dict[str, Any]:
    """Return one task record by id."""

    return _manager(root).get_task(task_id)


@mcp.tool()
def show_task_details(task_id: int, root: Optional[str] = None) -> Dict[str, Any]:
    """Render a markdown document describing a task, its dependencies and subtasks."""

    return _manager(root).show_task_details(task_id)


@mcp.tool()
def task_tree(root: Optional[str] = None) -> Dict[str, Any]:
    """Render all tasks grouped by status with complexity badges."""

    return _manager(root).task_tree()


@mcp.tool()
def add_task(
    title: str,
    description: str = "",
    priority: str = "medium",
    dependencies: Optional[List[int]] = None,
    details: Optional[str] = None,
    test_strategy: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Add a task manually. It receives the next free id and a rule-based complexity score.
    A task cannot depend on itself; dependencies on ids that do not exist yet keep it blocked."""

    return _manager(root).add_task(
        title=title,
        description=description,
        priority=priority,
        dependencies=dependencies,
        details=details,
        test_strategy=test_strategy,
    )


@mcp.tool()
def set_task_status(
    task_id: int,
    status: str,
    cascade_subtasks: bool = False,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Change a task's status. With cascade_subtasks=True and status 'done', all subtasks are marked done too."""

    return _manager(root).set_task_status(task_id, status, cascade_subtasks=cascade_subtasks)


@mcp.tool()
def set_dependencies(task_id: int, dependencies: List[int], root: Optional[str] = None) -> Dict[str, Any]:
    """Replace the dependency list of a task."""

    return _manager(root).set_dependencies(task_id, dependencies)


@mcp.tool()
def next_task(start: bool = False, root: Optional[str] = None) -> Dict[str, Any]:
    """Recommend the next task to work on: in-progress before pending, then higher priority,
    then lower complexity, then lower id. With start=True a pending task is set to in-progress."""

    return _manager(root).next_task(start=start)


@mcp.tool()
def ready_tasks(root: Optional[str] = None) -> Dict[str, Any]:
    """List tasks whose dependencies are all done, in recommendation order, plus blocked tasks."""

    return _manager(root).ready_tasks()


@mcp.tool()
def assess_task_complexity(task_id: int, root: Optional[str] = None) -> Dict[str, Any]:
    """Re-score one task with the rule-based complexity scorer."""

    return _manager(root).assess_task_complexity(task_id)


@mcp.tool()
def assess_all_tasks_complexity(root: Optional[str] = None) -> Dict[str, Any]:
    """Re-score every task with the rule-based complexity scorer and rank them."""

    return _manager(root).assess_all_tasks_complexity()


@mcp.tool()
def update_task_complexity(task_id: int, level: str, score: float, root: Optional[str] = None) -> Dict[str, Any]:
    """Manually set a task's complexity level (simple, moderate, complex, veryComplex) and score (1-5).
    Manual values are kept when the task is later edited."""

    return _manager(root).update_task_complexity(task_id, level, score)


@mcp.tool()
async def parse_prd(prd_text: str, prd_name: str = "PRD", root: Optional[str] = None) -> Dict[str, Any]:
    """Use the configured assistant to break a PRD into tasks and append them to tasks.json."""

    return await _manager(root).parse_prd(prd_text, prd_name=prd_name)


@mcp.tool()
async def expand_task(task_id: int, num_subtasks: int = 3, root: Optional[str] = None) -> Dict[str, Any]:
    """Use the configured assistant to break a task into 1-10 subtasks."""

    return await _manager(root).expand_task(task_id, num_subtasks=num_subtasks)


@mcp.tool()
async def add_task_with_ai(description: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Use the configured assistant to turn a free-text description into a new task."""

    return await _manager(root).add_task_with_ai(description)


@mcp.tool()
async def assess_task_complexity_with_ai(task_id: int, root: Optional[str] = None) -> Dict[str, Any]:
    """Use the configured assistant to assess a task's complexity. The result is kept on later edits."""

    return await _manager(root).assess_task_complexity_with_ai(task_id)


@mcp.resource("taskpilot://tasks")
def resource_tasks() -> str:
    """Resource view exposing the status-grouped task tree."""

    try:
        manager = _manager(None)
    except ValueError:
        return f"No tasks file detected. Run init_tasks or set {PROJECT_ROOT_ENV}."

    result = manager.task_tree()
    if not result["success"]:
        return result["message"]
    return "TaskPilot Tasks\n\n" + result["tree"]


if __name__ == "__main__":
    setup_logging(os.getenv("TASKPILOT_LOG_LEVEL", "INFO").upper(), os.getenv("TASKPILOT_LOG_FILE") or None)
    mcp.run(transport="stdio")
