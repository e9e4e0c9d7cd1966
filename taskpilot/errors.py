"""Error types raised inside TaskPilot.

Every error carries a ``kind`` so the operation boundary can report it to the
user without inspecting class names.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TaskPilotError(Exception):
    """Base class for all TaskPilot failures."""

    kind = "TaskPilotError"
    suggestion = "Check your input parameters"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": str(self), "error_kind": self.kind}


class TaskNotFoundError(TaskPilotError):
    kind = "NotFound"
    suggestion = "Use list_tasks to see the available task IDs"

    def __init__(self, task_id: int):
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class ValidationError(TaskPilotError):
    """Malformed input: bad assistant response shape, missing field, wrong type."""

    kind = "ValidationFailure"
    suggestion = "Check the task data and try again"


class PersistenceError(TaskPilotError):
    """The tasks file could not be read or written."""

    kind = "PersistenceFailure"
    suggestion = "Run init_tasks to create the tasks file, or check file permissions"


class NoCandidateError(TaskPilotError):
    kind = "NoCandidate"
    suggestion = "Create new tasks or complete the tasks that block the pending ones"


class AssistantError(TaskPilotError):
    """The external assistant call failed; ``code`` is kept when the SDK reports one."""

    kind = "AssistantFailure"
    suggestion = "Check the assistant configuration (API key, model, base URL) and retry"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(f"{message} ({code})" if code else message)
        self.code = code

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["error_code"] = self.code
        return data
