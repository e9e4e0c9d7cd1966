"""Parse structured data out of assistant responses.

The assistant answers in free text that should contain one fenced JSON code
block. The first block wins; without one the whole text is tried as JSON.
Every parser raises ``ValidationError`` on a bad shape so that callers can
abort before touching the store.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from .errors import ValidationError
from .models import (
    ComplexityFactor,
    ComplexityLevel,
    ComplexityScore,
    ComplexitySource,
    SubTask,
    SubTaskDraft,
    Task,
    TaskPriority,
    TaskStatus,
)

logger = logging.getLogger("taskpilot.parsing")

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def extract_json_from_markdown(text: str) -> Any:
    """Return the JSON value embedded in ``text``."""
    match = _FENCED_JSON.search(text)
    if match and match.group(1):
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError as e:
            raise ValidationError(f"Failed to parse JSON code block: {e}") from e

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError("No valid JSON found in assistant response") from e


def _require_str(data: Dict[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{where}: '{key}' must be a non-empty string")
    return value.strip()


def _optional_str(data: Dict[str, Any], key: str, where: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{where}: '{key}' must be a string")
    return value


def _enum_value(enum_cls, data: Dict[str, Any], key: str, default, where: str):
    raw = data.get(key, default.value)
    try:
        return enum_cls(raw)
    except ValueError:
        raise ValidationError(f"{where}: invalid {key} {raw!r}") from None


def _dependency_ids(data: Dict[str, Any], where: str) -> List[int]:
    raw = data.get("dependencies", [])
    if not isinstance(raw, list):
        raise ValidationError(f"{where}: 'dependencies' must be an array of task IDs")
    ids = []
    for dep in raw:
        # bool is an int subclass; reject it explicitly
        if isinstance(dep, bool) or not isinstance(dep, int):
            raise ValidationError(f"{where}: dependency {dep!r} is not a task ID")
        ids.append(dep)
    return ids


def _subtask_draft(data: Any, where: str) -> SubTaskDraft:
    if not isinstance(data, dict):
        raise ValidationError(f"{where}: expected an object")
    return SubTaskDraft(
        title=_require_str(data, "title", where),
        status=_enum_value(TaskStatus, data, "status", TaskStatus.PENDING, where),
    )


def _task_fields(data: Dict[str, Any], where: str) -> Dict[str, Any]:
    return {
        "title": _require_str(data, "title", where),
        "description": _optional_str(data, "description", where) or "",
        "status": _enum_value(TaskStatus, data, "status", TaskStatus.PENDING, where),
        "priority": _enum_value(TaskPriority, data, "priority", TaskPriority.MEDIUM, where),
        "dependencies": _dependency_ids(data, where),
        "details": _optional_str(data, "details", where),
        "test_strategy": _optional_str(data, "testStrategy", where),
    }


def parse_task_list(text: str) -> List[Task]:
    """Parse a PRD breakdown: an array of task objects with numeric ids.

    Subtasks listed by the assistant are kept as pending entries; any
    complexity it volunteers is dropped since the store scores new tasks.
    """
    data = extract_json_from_markdown(text)
    if not isinstance(data, list):
        raise ValidationError("Assistant did not return a JSON array of tasks")

    tasks = []
    for position, item in enumerate(data, start=1):
        where = f"task #{position}"
        if not isinstance(item, dict):
            raise ValidationError(f"{where}: expected an object")
        task_id = item.get("id")
        if isinstance(task_id, bool) or not isinstance(task_id, int):
            raise ValidationError(f"{where}: 'id' must be a number")

        raw_subtasks = item.get("subtasks", [])
        if not isinstance(raw_subtasks, list):
            raise ValidationError(f"{where}: 'subtasks' must be an array")
        drafts = [_subtask_draft(s, f"{where} subtask #{n}") for n, s in enumerate(raw_subtasks, start=1)]

        task = Task(id=task_id, **_task_fields(item, where))
        task.subtasks = [
            _draft_to_subtask(draft, task.id, number) for number, draft in enumerate(drafts, start=1)
        ]
        tasks.append(task)

    logger.debug(f"Parsed {len(tasks)} tasks from assistant response")
    return tasks


def _draft_to_subtask(draft: SubTaskDraft, parent_id: int, number: int) -> SubTask:
    return SubTask(id=number, parent_id=parent_id, title=draft.title, status=draft.status)


def parse_subtask_list(text: str) -> List[SubTaskDraft]:
    """Parse a task expansion: an array of subtask objects without ids."""
    data = extract_json_from_markdown(text)
    if not isinstance(data, list):
        raise ValidationError("Assistant did not return a JSON array of subtasks")
    return [_subtask_draft(item, f"subtask #{n}") for n, item in enumerate(data, start=1)]


def parse_task_draft(text: str) -> Dict[str, Any]:
    """Parse a single task object without id or complexity.

    Returns keyword arguments suitable for ``TaskStore.add_task``.
    """
    data = extract_json_from_markdown(text)
    if not isinstance(data, dict):
        raise ValidationError("Assistant did not return a valid task object")
    return _task_fields(data, "task")


def parse_complexity_response(text: str) -> ComplexityScore:
    """Parse ``{"complexity": {...}}`` into an assistant-sourced score."""
    data = extract_json_from_markdown(text)
    if not isinstance(data, dict) or not isinstance(data.get("complexity"), dict):
        raise ValidationError("Invalid response format: missing complexity object")

    complexity = data["complexity"]
    level = complexity.get("level")
    if not isinstance(level, str):
        raise ValidationError("Invalid response format: complexity.level is not a string")
    try:
        level = ComplexityLevel(level)
    except ValueError:
        raise ValidationError(f"Invalid response format: unknown complexity level {level!r}") from None

    score = complexity.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ValidationError("Invalid response format: complexity.score is not a number")
    if score < 0:
        raise ValidationError("Invalid response format: complexity.score is negative")

    factors = complexity.get("factors")
    if not isinstance(factors, list):
        raise ValidationError("Invalid response format: complexity.factors is not an array")

    parsed_factors = []
    for n, factor in enumerate(factors, start=1):
        if not isinstance(factor, dict) or not isinstance(factor.get("name"), str):
            raise ValidationError(f"Invalid response format: factor #{n} has no name")
        weight = factor.get("weight", 0)
        if isinstance(weight, bool) or not isinstance(weight, (int, float)):
            raise ValidationError(f"Invalid response format: factor #{n} weight is not a number")
        parsed_factors.append(
            ComplexityFactor(
                name=factor["name"],
                weight=float(weight),
                description=str(factor.get("description", "")),
            )
        )

    return ComplexityScore(
        level=level,
        score=float(score),
        factors=parsed_factors,
        source=ComplexitySource.ASSISTANT,
    )
