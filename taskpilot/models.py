"""Data models for TaskPilot task management.

This module contains the core data structures used throughout TaskPilot:
tasks, subtasks, complexity scores and the enumerations with their ordinal
lookup tables. Serialization uses the camelCase keys of ``tasks.json``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Dict, List, Optional


class TaskStatus(StrEnum):
    """Lifecycle status shared by tasks and subtasks."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    DEFERRED = "deferred"


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ComplexityLevel(StrEnum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    VERY_COMPLEX = "veryComplex"


class ComplexitySource(StrEnum):
    """Where a complexity value came from.

    Only ``rule`` values are produced by the scorer; the others were supplied
    from outside and survive implicit re-scoring.
    """

    RULE = "rule"
    MANUAL = "manual"
    ASSISTANT = "assistant"


PRIORITY_WEIGHTS: Dict[TaskPriority, int] = {
    TaskPriority.LOW: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.HIGH: 3,
}

# Lower sorts first when choosing what to work on.
STATUS_ORDER: Dict[TaskStatus, int] = {
    TaskStatus.IN_PROGRESS: 0,
    TaskStatus.PENDING: 1,
    TaskStatus.DONE: 2,
    TaskStatus.DEFERRED: 3,
}

COMPLEXITY_LEVEL_VALUES: Dict[ComplexityLevel, int] = {
    ComplexityLevel.SIMPLE: 1,
    ComplexityLevel.MODERATE: 2,
    ComplexityLevel.COMPLEX: 3,
    ComplexityLevel.VERY_COMPLEX: 5,
}

WORKABLE_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS})


def _coerce_enum(enum_cls, raw: Any, field_name: str):
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"Invalid {field_name} '{raw}' (expected one of: {allowed})") from None


def _int_value(raw: Any, field_name: str) -> int:
    # bool is an int subclass; a stored true/false is never an id
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise TypeError(f"{field_name} must be an integer, got {raw!r}")
    return raw


def _str_value(raw: Any, field_name: str) -> str:
    if not isinstance(raw, str):
        raise TypeError(f"{field_name} must be a string, got {raw!r}")
    return raw


def _optional_str_value(raw: Any, field_name: str) -> Optional[str]:
    return None if raw is None else _str_value(raw, field_name)


def _list_value(raw: Any, field_name: str) -> List[Any]:
    if not isinstance(raw, list):
        raise TypeError(f"{field_name} must be an array, got {raw!r}")
    return raw


@dataclass(slots=True)
class ComplexityFactor:
    """A contributing factor to a task's complexity score."""

    name: str
    weight: float
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "weight": self.weight, "description": self.description}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComplexityFactor":
        return cls(
            name=str(data["name"]),
            weight=float(data.get("weight", 0.0)),
            description=str(data.get("description", "")),
        )


@dataclass(slots=True)
class ComplexityScore:
    """Complexity assessment for a task.

    ``level`` and ``score`` are independently settable; only the scorer's own
    output keeps them consistent with each other.
    """

    level: ComplexityLevel
    score: float
    factors: List[ComplexityFactor] = field(default_factory=list)
    source: ComplexitySource = ComplexitySource.RULE

    @property
    def is_supplied(self) -> bool:
        """True when the value came from a manual override or the assistant."""
        return self.source != ComplexitySource.RULE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "score": self.score,
            "factors": [factor.to_dict() for factor in self.factors],
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComplexityScore":
        return cls(
            level=_coerce_enum(ComplexityLevel, data["level"], "complexity level"),
            score=float(data["score"]),
            factors=[ComplexityFactor.from_dict(f) for f in data.get("factors", [])],
            source=_coerce_enum(ComplexitySource, data.get("source", "rule"), "complexity source"),
        )

    def validate(self) -> List[str]:
        issues = []
        if self.score < 0:
            issues.append("Complexity score must be non-negative")
        return issues


@dataclass(slots=True)
class SubTask:
    """A subtask; ``id`` is only unique within its parent's subtask list."""

    id: int
    parent_id: int
    title: str
    status: TaskStatus = TaskStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "parentId": self.parent_id,
            "title": self.title,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubTask":
        return cls(
            id=_int_value(data["id"], "subtask id"),
            parent_id=_int_value(data["parentId"], "subtask parentId"),
            title=_str_value(data["title"], "subtask title"),
            status=_coerce_enum(TaskStatus, data.get("status", "pending"), "status"),
        )


@dataclass(slots=True)
class SubTaskDraft:
    """A subtask before the store assigns its id and parent."""

    title: str
    status: TaskStatus = TaskStatus.PENDING


@dataclass(slots=True)
class Task:
    """A unit of work with dependencies, subtasks and an optional complexity."""

    id: int
    title: str
    description: str
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    dependencies: List[int] = field(default_factory=list)
    subtasks: List[SubTask] = field(default_factory=list)
    complexity: Optional[ComplexityScore] = None
    details: Optional[str] = None
    test_strategy: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the ``tasks.json`` record layout."""
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "dependencies": list(self.dependencies),
            "priority": self.priority.value,
        }
        if self.details is not None:
            data["details"] = self.details
        if self.test_strategy is not None:
            data["testStrategy"] = self.test_strategy
        data["subtasks"] = [subtask.to_dict() for subtask in self.subtasks]
        if self.complexity is not None:
            data["complexity"] = self.complexity.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Create from a ``tasks.json`` record."""
        complexity = data.get("complexity")
        dependencies = _list_value(data.get("dependencies", []), "dependencies")
        subtasks = _list_value(data.get("subtasks", []), "subtasks")
        return cls(
            id=_int_value(data["id"], "task id"),
            title=_str_value(data["title"], "title"),
            description=_optional_str_value(data.get("description"), "description") or "",
            status=_coerce_enum(TaskStatus, data.get("status", "pending"), "status"),
            priority=_coerce_enum(TaskPriority, data.get("priority", "medium"), "priority"),
            dependencies=[_int_value(dep, "dependency") for dep in dependencies],
            subtasks=[SubTask.from_dict(s) for s in subtasks],
            complexity=ComplexityScore.from_dict(complexity) if complexity else None,
            details=_optional_str_value(data.get("details"), "details"),
            test_strategy=_optional_str_value(data.get("testStrategy"), "testStrategy"),
        )

    @property
    def priority_weight(self) -> int:
        return PRIORITY_WEIGHTS[self.priority]

    def max_subtask_id(self) -> int:
        return max((subtask.id for subtask in self.subtasks), default=0)

    def is_workable(self) -> bool:
        """Check if the status allows work (pending or in-progress)."""
        return self.status in WORKABLE_STATUSES

    def validate(self) -> List[str]:
        """Validate task data and return any issues."""
        issues = []

        if self.id < 1:
            issues.append(f"Task ID must be a positive integer, got: {self.id}")
        if not self.title or not self.title.strip():
            issues.append("Title is required")
        if self.id in self.dependencies:
            issues.append(f"Task {self.id} cannot depend on itself")

        seen: set[int] = set()
        for subtask in self.subtasks:
            if subtask.id in seen:
                issues.append(f"Duplicate subtask ID {subtask.id} in task {self.id}")
            seen.add(subtask.id)
            if subtask.parent_id != self.id:
                issues.append(
                    f"Subtask {subtask.id} points to parent {subtask.parent_id}, expected {self.id}"
                )

        if self.complexity is not None:
            issues.extend(self.complexity.validate())

        return issues
