"""TaskPilot MCP Server - task dependency, readiness and complexity package."""

from .config import TaskPilotConfig
from .errors import (
    AssistantError,
    NoCandidateError,
    PersistenceError,
    TaskNotFoundError,
    TaskPilotError,
    ValidationError,
)
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
from .store import TaskStore
from .workflow import TaskManager

__all__ = [
    "AssistantError",
    "ComplexityFactor",
    "ComplexityLevel",
    "ComplexityScore",
    "ComplexitySource",
    "NoCandidateError",
    "PersistenceError",
    "SubTask",
    "SubTaskDraft",
    "Task",
    "TaskManager",
    "TaskNotFoundError",
    "TaskPilotConfig",
    "TaskPilotError",
    "TaskPriority",
    "TaskStatus",
    "TaskStore",
    "ValidationError",
]
