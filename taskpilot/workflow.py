"""Task management workflow for TaskPilot.

``TaskManager`` is the operation boundary: every user command goes through
one of its methods, which load the task collection through the store, run
the readiness and complexity logic, and report the outcome as a plain
dictionary. TaskPilot errors never escape from here; they are logged and
returned with a suggestion for what to try next.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, TypeVar

from .assistant import AssistantClient, OpenAIAssistantClient
from .complexity import (
    get_average_complexity,
    get_tasks_sorted_by_complexity,
    update_task_with_complexity,
)
from .config import TaskPilotConfig
from .errors import (
    NoCandidateError,
    PersistenceError,
    TaskNotFoundError,
    TaskPilotError,
    ValidationError,
)
from .models import (
    ComplexityLevel,
    ComplexityScore,
    ComplexitySource,
    Task,
    TaskPriority,
    TaskStatus,
)
from .parsing import (
    parse_complexity_response,
    parse_subtask_list,
    parse_task_draft,
    parse_task_list,
)
from .prompts import (
    generate_add_task_prompt,
    generate_complexity_assessment_prompt,
    generate_expand_task_prompt,
    generate_parse_prd_prompt,
)
from .readiness import (
    blocked_tasks,
    find_task,
    rank_tasks,
    ready_tasks,
    select_next,
    unmet_dependencies,
)
from .store import TaskStore
from .taskpilot_logging import log_error_with_context, log_operation, log_performance
from .views import render_task_details, render_task_tree

logger = logging.getLogger("taskpilot.workflow")

T = TypeVar("T")

MIN_SUBTASKS = 1
MAX_SUBTASKS = 10
MIN_MANUAL_SCORE = 1.0
MAX_MANUAL_SCORE = 5.0


def _parse_enum(enum_cls, raw: Any, field_name: str):
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field_name} '{raw}'. Expected one of: {allowed}") from None


def _dependency_list(dependencies: Optional[Iterable[Any]]) -> List[int]:
    ids: List[int] = []
    for dep in dependencies or []:
        try:
            dep_id = int(dep)
        except (TypeError, ValueError):
            raise ValidationError(f"Dependency '{dep}' is not a task ID") from None
        if dep_id not in ids:
            ids.append(dep_id)
    return ids


class TaskManager:
    """Runs TaskPilot commands against one workspace."""

    def __init__(self, config: TaskPilotConfig, assistant: Optional[AssistantClient] = None):
        self.config = config
        self.store = TaskStore(config)
        self._assistant = assistant

    @property
    def assistant(self) -> AssistantClient:
        if self._assistant is None:
            self._assistant = OpenAIAssistantClient(self.config)
        return self._assistant

    # ------------------------------------------------------------------
    # Result helpers
    # ------------------------------------------------------------------

    def _failure(self, error: TaskPilotError, operation: str, **context: Any) -> Dict[str, Any]:
        # store failures were already logged by the store
        if error is not self.store.last_error:
            log_error_with_context(error, {"operation": operation, **context})
        result = {
            "success": False,
            **error.to_dict(),
            "suggestion": error.suggestion,
            "message": f"Error: {error}",
        }
        if isinstance(error, PersistenceError):
            result["next_suggested_action"] = "init_tasks"
            result["workflow_tip"] = "Create the tasks file with init_tasks before running other commands"
        elif isinstance(error, TaskNotFoundError):
            result["next_suggested_action"] = "list_tasks"
            result["workflow_tip"] = "Use list_tasks or task_tree to find valid task IDs"
        elif isinstance(error, NoCandidateError):
            result["next_suggested_action"] = "ready_tasks"
            result["workflow_tip"] = "Use ready_tasks to see which dependencies block the pending tasks"
        return result

    def _expect(self, value: Optional[T]) -> T:
        """Turn a negative store result back into the error the store recorded."""
        if value is None or value is False:
            raise self.store.last_error or PersistenceError("Task store operation failed")
        return value

    def _load(self) -> List[Task]:
        return self._expect(self.store.read_tasks())

    def _task(self, task_id: int) -> Task:
        task = find_task(self._load(), task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    # ------------------------------------------------------------------
    # Workspace setup and queries
    # ------------------------------------------------------------------

    def init_tasks(self, overwrite: bool = False) -> Dict[str, Any]:
        """Create an empty tasks file and the generated tasks directory."""
        try:
            if self.store.tasks_file_exists() and not overwrite:
                raise ValidationError(
                    f"Tasks file already exists at {self.store.tasks_file_path}. "
                    "Pass overwrite=True to replace it with an empty task list"
                )
            with log_operation("init_tasks", overwrite=overwrite):
                self._expect(self.store.init_tasks_file())

            return {
                "success": True,
                "tasks_file": str(self.store.tasks_file_path),
                "tasks_dir": str(self.store.tasks_dir_path),
                "next_suggested_action": "parse_prd",
                "workflow_tip": "Next: break a PRD into tasks with parse_prd, or add tasks with add_task",
                "message": f"TaskPilot initialized at {self.store.tasks_file_path}",
            }
        except TaskPilotError as e:
            return self._failure(e, "init_tasks", overwrite=overwrite)

    def list_tasks(self, status: Optional[str] = None) -> Dict[str, Any]:
        try:
            wanted = _parse_enum(TaskStatus, status, "status") if status else None
            tasks = self._load()
            if wanted is not None:
                tasks = [task for task in tasks if task.status == wanted]
            return {
                "success": True,
                "tasks": [task.to_dict() for task in tasks],
                "count": len(tasks),
                "message": f"Found {len(tasks)} tasks" + (f" with status '{wanted.value}'" if wanted else ""),
            }
        except TaskPilotError as e:
            return self._failure(e, "list_tasks", status=status)

    def get_task(self, task_id: int) -> Dict[str, Any]:
        try:
            task = self._task(task_id)
            return {
                "success": True,
                "task": task.to_dict(),
                "message": f"Task {task.id}: {task.title}",
            }
        except TaskPilotError as e:
            return self._failure(e, "get_task", task_id=task_id)

    def show_task_details(self, task_id: int) -> Dict[str, Any]:
        try:
            task = self._task(task_id)
            all_tasks = self.store.tasks
            return {
                "success": True,
                "task_id": task.id,
                "content": render_task_details(task),
                "unmet_dependencies": unmet_dependencies(task, all_tasks),
                "message": f"Details for task {task.id}",
            }
        except TaskPilotError as e:
            return self._failure(e, "show_task_details", task_id=task_id)

    def task_tree(self) -> Dict[str, Any]:
        try:
            tasks = self._load()
            return {
                "success": True,
                "tree": render_task_tree(tasks, self.config.complexity_threshold),
                "count": len(tasks),
                "message": f"Rendered {len(tasks)} tasks",
            }
        except TaskPilotError as e:
            return self._failure(e, "task_tree")

    # ------------------------------------------------------------------
    # Task mutations
    # ------------------------------------------------------------------

    @log_performance("workflow_add_task")
    def add_task(
        self,
        title: str,
        description: str = "",
        priority: str = "medium",
        dependencies: Optional[List[int]] = None,
        details: Optional[str] = None,
        test_strategy: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Add a task by hand; it gets the next free id and a rule-based score."""
        try:
            if not title or not title.strip():
                raise ValidationError("Task title cannot be empty")
            task = self._expect(
                self.store.add_task(
                    title=title.strip(),
                    description=description or "",
                    priority=_parse_enum(TaskPriority, priority, "priority"),
                    dependencies=_dependency_list(dependencies),
                    details=details,
                    test_strategy=test_strategy,
                )
            )
            return {
                "success": True,
                "task": task.to_dict(),
                "next_suggested_action": "expand_task",
                "workflow_tip": f"Break task {task.id} into subtasks with expand_task if it is large",
                "message": f"Task {task.id} added: {task.title}",
            }
        except TaskPilotError as e:
            return self._failure(e, "add_task", title=title)

    @log_performance("workflow_set_task_status")
    def set_task_status(self, task_id: int, status: str, cascade_subtasks: bool = False) -> Dict[str, Any]:
        """Change a task's status.

        With ``cascade_subtasks`` and a new status of ``done`` every subtask is
        marked done as well.
        """
        try:
            new_status = _parse_enum(TaskStatus, status, "status")
            task = self._task(task_id)
            previous = task.status

            subtasks = task.subtasks
            cascaded = cascade_subtasks and new_status == TaskStatus.DONE and bool(subtasks)
            if cascaded:
                subtasks = [replace(subtask, status=TaskStatus.DONE) for subtask in subtasks]

            self._expect(
                self.store.update_task_rescoring(replace(task, status=new_status, subtasks=subtasks))
            )

            result: Dict[str, Any] = {
                "success": True,
                "task_id": task.id,
                "previous_status": previous.value,
                "status": new_status.value,
                "subtasks_updated": len(subtasks) if cascaded else 0,
                "message": f"Status updated: Task {task.id} is now {new_status.value}",
            }
            if new_status == TaskStatus.DONE:
                result["next_suggested_action"] = "next_task"
                result["workflow_tip"] = "Use next_task to pick up the next available task"
            return result
        except TaskPilotError as e:
            return self._failure(e, "set_task_status", task_id=task_id, status=status)

    def set_dependencies(self, task_id: int, dependencies: List[int]) -> Dict[str, Any]:
        """Replace a task's dependency list.

        Ids that do not exist yet are accepted; they keep the task blocked.
        """
        try:
            dep_ids = _dependency_list(dependencies)
            task = self._task(task_id)
            known_ids = {t.id for t in self.store.tasks}

            self._expect(self.store.update_task_rescoring(replace(task, dependencies=dep_ids)))

            unknown = [dep_id for dep_id in dep_ids if dep_id not in known_ids]
            result = {
                "success": True,
                "task_id": task.id,
                "dependencies": dep_ids,
                "unknown_dependencies": unknown,
                "message": f"Dependencies updated for task {task.id}",
            }
            if unknown:
                result["workflow_tip"] = (
                    f"Tasks {unknown} do not exist; task {task.id} stays blocked until they are added and done"
                )
            return result
        except TaskPilotError as e:
            return self._failure(e, "set_dependencies", task_id=task_id)

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    def next_task(self, start: bool = False) -> Dict[str, Any]:
        """Recommend the next task; with ``start`` a pending pick is moved to in-progress."""
        try:
            tasks = self._load()
            chosen = select_next(ready_tasks(tasks))
            if chosen is None:
                raise NoCandidateError("No available tasks found. All tasks are either done or blocked by dependencies")

            started = False
            if start and chosen.status != TaskStatus.IN_PROGRESS:
                chosen = replace(chosen, status=TaskStatus.IN_PROGRESS)
                self._expect(self.store.update_task_rescoring(chosen))
                chosen = self._expect(self.store.get_task_by_id(chosen.id))
                started = True

            return {
                "success": True,
                "task": chosen.to_dict(),
                "content": render_task_details(chosen),
                "started": started,
                "next_suggested_action": "set_task_status",
                "workflow_tip": f"Mark task {chosen.id} done with set_task_status when finished",
                "message": f"Next task: {chosen.id}: {chosen.title} ({chosen.status.value}, {chosen.priority.value})",
            }
        except TaskPilotError as e:
            return self._failure(e, "next_task", start=start)

    def ready_tasks(self) -> Dict[str, Any]:
        """List ready tasks in recommendation order, plus what blocks the rest."""
        try:
            tasks = self._load()
            ranked = rank_tasks(ready_tasks(tasks))
            blocked = [
                {"id": task.id, "title": task.title, "unmet_dependencies": unmet_dependencies(task, tasks)}
                for task in blocked_tasks(tasks)
            ]
            return {
                "success": True,
                "ready": [task.to_dict() for task in ranked],
                "blocked": blocked,
                "message": f"{len(ranked)} tasks ready, {len(blocked)} blocked",
            }
        except TaskPilotError as e:
            return self._failure(e, "ready_tasks")

    # ------------------------------------------------------------------
    # Complexity
    # ------------------------------------------------------------------

    def assess_task_complexity(self, task_id: int) -> Dict[str, Any]:
        """Re-score one task with the rule-based scorer, replacing any supplied value."""
        try:
            task = update_task_with_complexity(self._task(task_id))
            self._expect(self.store.update_task_preserving_complexity(task))
            return {
                "success": True,
                "task_id": task.id,
                "complexity": task.complexity.to_dict(),
                "message": (
                    f"Complexity for task {task.id}: {task.complexity.level.value} "
                    f"({task.complexity.score:.1f})"
                ),
            }
        except TaskPilotError as e:
            return self._failure(e, "assess_task_complexity", task_id=task_id)

    def assess_all_tasks_complexity(self) -> Dict[str, Any]:
        try:
            self._expect(self.store.update_all_tasks_complexity())
            tasks = self.store.tasks
            ranking = [
                {"id": task.id, "title": task.title, **task.complexity.to_dict()}
                for task in get_tasks_sorted_by_complexity(tasks)
            ]
            return {
                "success": True,
                "count": len(tasks),
                "average_score": round(get_average_complexity(tasks), 2),
                "tasks_by_complexity": ranking,
                "message": f"Complexity assessment completed for {len(tasks)} tasks",
            }
        except TaskPilotError as e:
            return self._failure(e, "assess_all_tasks_complexity")

    def update_task_complexity(self, task_id: int, level: str, score: float) -> Dict[str, Any]:
        """Manually override a task's complexity. Existing factors are kept."""
        try:
            new_level = _parse_enum(ComplexityLevel, level, "complexity level")
            try:
                new_score = float(score)
            except (TypeError, ValueError):
                raise ValidationError(f"Complexity score '{score}' is not a number") from None
            if not MIN_MANUAL_SCORE <= new_score <= MAX_MANUAL_SCORE:
                raise ValidationError(
                    f"Complexity score must be between {MIN_MANUAL_SCORE:g} and {MAX_MANUAL_SCORE:g}, got {new_score:g}"
                )

            task = self._task(task_id)
            factors = list(task.complexity.factors) if task.complexity else []
            complexity = ComplexityScore(
                level=new_level,
                score=new_score,
                factors=factors,
                source=ComplexitySource.MANUAL,
            )
            self._expect(self.store.update_task_preserving_complexity(replace(task, complexity=complexity)))
            return {
                "success": True,
                "task_id": task.id,
                "complexity": complexity.to_dict(),
                "message": f"Complexity for task {task.id} set to {new_level.value} ({new_score:.1f})",
            }
        except TaskPilotError as e:
            return self._failure(e, "update_task_complexity", task_id=task_id, level=level)

    # ------------------------------------------------------------------
    # Assistant commands
    # ------------------------------------------------------------------

    async def parse_prd(self, prd_text: str, prd_name: str = "PRD") -> Dict[str, Any]:
        """Ask the assistant to break a PRD into tasks and append them."""
        try:
            if not prd_text or not prd_text.strip():
                raise ValidationError("PRD text cannot be empty")
            existing = self._load()

            response = await self.assistant.complete(generate_parse_prd_prompt(prd_name, prd_text, existing))
            new_tasks = parse_task_list(response)
            if not new_tasks:
                raise ValidationError("Assistant returned no tasks for the PRD")

            added = self._expect(self.store.append_tasks(new_tasks))
            return {
                "success": True,
                "task_ids": [task.id for task in added],
                "tasks": [task.to_dict() for task in added],
                "next_suggested_action": "next_task",
                "workflow_tip": "Review dependencies with set_dependencies, then use next_task to start",
                "message": f"PRD parsing complete. {len(added)} new tasks added.",
            }
        except TaskPilotError as e:
            return self._failure(e, "parse_prd", prd_name=prd_name)

    async def expand_task(self, task_id: int, num_subtasks: int = 3) -> Dict[str, Any]:
        """Ask the assistant to break a task into subtasks."""
        try:
            if not MIN_SUBTASKS <= num_subtasks <= MAX_SUBTASKS:
                raise ValidationError(
                    f"Number of subtasks must be between {MIN_SUBTASKS} and {MAX_SUBTASKS}, got {num_subtasks}"
                )
            task = self._task(task_id)

            response = await self.assistant.complete(generate_expand_task_prompt(task, num_subtasks))
            drafts = parse_subtask_list(response)
            if not drafts:
                raise ValidationError("Assistant returned no subtasks")

            added = self._expect(self.store.add_subtasks_to_task(task.id, drafts))
            return {
                "success": True,
                "task_id": task.id,
                "subtasks": [subtask.to_dict() for subtask in added],
                "message": f"Task expansion complete. {len(added)} subtasks added.",
            }
        except TaskPilotError as e:
            return self._failure(e, "expand_task", task_id=task_id, num_subtasks=num_subtasks)

    async def add_task_with_ai(self, description: str) -> Dict[str, Any]:
        """Ask the assistant to turn a free-text description into a task."""
        try:
            if not description or not description.strip():
                raise ValidationError("Task description cannot be empty")
            existing = self._load()

            response = await self.assistant.complete(generate_add_task_prompt(description, existing))
            draft = parse_task_draft(response)

            task = self._expect(self.store.add_task(**draft))
            return {
                "success": True,
                "task": task.to_dict(),
                "message": f"Task {task.id} added: {task.title}",
            }
        except TaskPilotError as e:
            return self._failure(e, "add_task_with_ai")

    async def assess_task_complexity_with_ai(self, task_id: int) -> Dict[str, Any]:
        """Ask the assistant for a complexity assessment and store it as supplied."""
        try:
            task = self._task(task_id)

            response = await self.assistant.complete(generate_complexity_assessment_prompt(task))
            complexity = parse_complexity_response(response)

            self._expect(self.store.update_task_preserving_complexity(replace(task, complexity=complexity)))
            return {
                "success": True,
                "task_id": task.id,
                "complexity": complexity.to_dict(),
                "message": (
                    f"Assistant assessed task {task.id} as {complexity.level.value} ({complexity.score:.1f})"
                ),
            }
        except TaskPilotError as e:
            return self._failure(e, "assess_task_complexity_with_ai", task_id=task_id)
