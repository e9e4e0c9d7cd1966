"""Task store for TaskPilot.

The store owns the task collection persisted in ``tasks.json``. Every
mutation is a full read-modify-write cycle: load the whole file, apply the
change, re-score the affected tasks, and overwrite the file. Mirror copies
of touched tasks are written to the generated tasks directory on a
best-effort basis.

Public methods never raise for TaskPilot errors. They log the failure, keep
it in ``last_error`` and return a negative result (``None`` or ``False``).
The in-memory ``tasks`` list is not rolled back after a failed write.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from .complexity import (
    assess_all_tasks_complexity,
    rescore_unless_overridden,
    update_task_with_complexity,
)
from .config import TaskPilotConfig
from .errors import PersistenceError, TaskNotFoundError, TaskPilotError, ValidationError
from .models import SubTask, SubTaskDraft, Task, TaskPriority, TaskStatus
from .taskpilot_logging import (
    log_error_with_context,
    log_performance,
    log_subtasks_added,
    log_task_added,
    log_task_updated,
    log_tasks_appended,
)

logger = logging.getLogger("taskpilot.store")

T = TypeVar("T")


class TaskStore:
    """Read-modify-write access to the task collection of one workspace."""

    MIRROR_FILE_TEMPLATE = "task-{task_id}.json"

    def __init__(self, config: TaskPilotConfig):
        self.config = config
        self.tasks: List[Task] = []
        self.last_error: Optional[TaskPilotError] = None

    @property
    def tasks_file_path(self) -> Path:
        return self.config.tasks_file_path

    @property
    def tasks_dir_path(self) -> Path:
        return self.config.tasks_dir_path

    # ------------------------------------------------------------------
    # File management
    # ------------------------------------------------------------------

    def tasks_file_exists(self) -> bool:
        return self.tasks_file_path.exists()

    def ensure_tasks_directory_exists(self) -> bool:
        """Create the generated tasks directory if needed."""
        try:
            self.tasks_dir_path.mkdir(parents=True, exist_ok=True)
            return True
        except OSError as e:
            logger.error(f"Failed to create tasks directory {self.tasks_dir_path}: {e}")
            return False

    def init_tasks_file(self) -> bool:
        """Create an empty tasks file (overwriting any existing one)."""
        def operation() -> bool:
            self.ensure_tasks_directory_exists()
            self._write_tasks([])
            self.tasks = []
            logger.info(f"Initialized tasks file at {self.tasks_file_path}")
            return True

        return self._guard("init_tasks_file", operation, False)

    def read_tasks(self) -> Optional[List[Task]]:
        """Load the full collection, or None when the file is missing or unreadable."""
        return self._guard("read_tasks", self._load_tasks, None)

    def get_task_by_id(self, task_id: int) -> Optional[Task]:
        def operation() -> Task:
            return self._find(self._load_tasks(), task_id)[1]

        return self._guard("get_task_by_id", operation, None, task_id=task_id)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @log_performance("add_task")
    def add_task(
        self,
        *,
        title: str,
        description: str,
        priority: TaskPriority = TaskPriority.MEDIUM,
        status: TaskStatus = TaskStatus.PENDING,
        dependencies: Optional[Iterable[int]] = None,
        details: Optional[str] = None,
        test_strategy: Optional[str] = None,
    ) -> Optional[Task]:
        """Add a task with the next free id and a fresh complexity score."""
        def operation() -> Task:
            tasks = self._load_tasks()
            task = Task(
                id=self._max_task_id(tasks) + 1,
                title=title,
                description=description,
                status=status,
                priority=priority,
                dependencies=_unique(dependencies or []),
                details=details,
                test_strategy=test_strategy,
            )
            task = update_task_with_complexity(task)
            self._check(task)

            tasks.append(task)
            self._commit(tasks, [task])
            logger.info(f"Added task {task.id}: {task.title}")
            log_task_added(task.id, task.title)
            return task

        return self._guard("add_task", operation, None, title=title)

    @log_performance("append_tasks")
    def append_tasks(self, new_tasks: Sequence[Task]) -> Optional[List[Task]]:
        """Append a batch of tasks (e.g. parsed from a PRD) and score each one.

        Incoming ids are kept when they are unique and all above the current
        max id. Otherwise the batch is renumbered from max+1 and references
        between batch members are remapped. Returns the stored batch.
        """
        def operation() -> List[Task]:
            tasks = self._load_tasks()
            batch = self._number_batch(tasks, new_tasks)
            batch = [update_task_with_complexity(task) for task in batch]
            for task in batch:
                self._check(task)

            tasks.extend(batch)
            self._commit(tasks, batch)
            task_ids = [task.id for task in batch]
            logger.info(f"Appended {len(batch)} tasks: {task_ids}")
            log_tasks_appended(task_ids)
            return batch

        return self._guard("append_tasks", operation, None, count=len(new_tasks))

    @log_performance("update_task")
    def update_task_rescoring(self, updated_task: Task) -> bool:
        """Replace the task with the same id and re-score it.

        A complexity supplied manually or by the assistant is left in place.
        """
        return self._update(updated_task, rescore=True)

    @log_performance("update_task")
    def update_task_preserving_complexity(self, updated_task: Task) -> bool:
        """Replace the task with the same id, keeping its complexity exactly as given."""
        return self._update(updated_task, rescore=False)

    @log_performance("add_subtasks")
    def add_subtasks_to_task(
        self, task_id: int, drafts: Sequence[SubTaskDraft]
    ) -> Optional[List[SubTask]]:
        """Append subtasks to a task, numbering them after its current max subtask id."""
        def operation() -> List[SubTask]:
            tasks = self._load_tasks()
            index, task = self._find(tasks, task_id)

            start = task.max_subtask_id()
            added = [
                SubTask(id=start + offset, parent_id=task.id, title=draft.title, status=draft.status)
                for offset, draft in enumerate(drafts, start=1)
            ]
            task = rescore_unless_overridden(replace(task, subtasks=[*task.subtasks, *added]))
            self._check(task)

            tasks[index] = task
            self._commit(tasks, [task])
            subtask_ids = [subtask.id for subtask in added]
            logger.info(f"Added subtasks {subtask_ids} to task {task_id}")
            log_subtasks_added(task_id, subtask_ids)
            return added

        return self._guard("add_subtasks_to_task", operation, None, task_id=task_id)

    @log_performance("update_all_tasks_complexity")
    def update_all_tasks_complexity(self) -> bool:
        """Re-score every task with the rule-based scorer.

        This is an explicit reassessment, so supplied values are replaced too.
        """
        def operation() -> bool:
            tasks = assess_all_tasks_complexity(self._load_tasks())
            self._commit(tasks, [])
            logger.info(f"Re-assessed complexity for {len(tasks)} tasks")
            return True

        return self._guard("update_all_tasks_complexity", operation, False)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _update(self, updated_task: Task, *, rescore: bool) -> bool:
        def operation() -> bool:
            tasks = self._load_tasks()
            index, _ = self._find(tasks, updated_task.id)

            task = rescore_unless_overridden(updated_task) if rescore else updated_task
            self._check(task)

            tasks[index] = task
            self._commit(tasks, [task])
            logger.info(f"Updated task {task.id} (rescored={rescore})")
            log_task_updated(task.id, rescore)
            return True

        return self._guard("update_task", operation, False, task_id=updated_task.id, rescore=rescore)

    def _guard(self, operation_name: str, operation: Callable[[], T], failure: T, **context: Any) -> T:
        self.last_error = None
        try:
            return operation()
        except TaskPilotError as e:
            self.last_error = e
            log_error_with_context(e, {"operation": operation_name, **context})
            return failure

    def _load_tasks(self) -> List[Task]:
        path = self.tasks_file_path
        if not path.exists():
            raise PersistenceError(f"Tasks file not found at {path}")

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Could not read tasks file {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Tasks file {path} is not valid JSON: {e}") from e

        if not isinstance(data, list):
            raise PersistenceError(f"Tasks file {path} must contain a JSON array of tasks")

        try:
            tasks = [Task.from_dict(record) for record in data]
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Tasks file {path} contains a malformed task: {e}") from e

        seen_ids = set()
        for task in tasks:
            if task.id in seen_ids:
                raise PersistenceError(f"Tasks file {path} contains task ID {task.id} more than once")
            seen_ids.add(task.id)

        self.tasks = tasks
        return list(tasks)

    def _write_tasks(self, tasks: List[Task]) -> None:
        path = self.tasks_file_path
        payload = json.dumps([task.to_dict() for task in tasks], indent=2)
        temp_path = path.with_name(f"{path.name}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(payload, encoding="utf-8")
            os.replace(temp_path, path)
        except OSError as e:
            raise PersistenceError(f"Could not write tasks file {path}: {e}") from e

    def _commit(self, tasks: List[Task], touched: List[Task]) -> None:
        self.tasks = tasks
        self._write_tasks(tasks)
        self._save_tasks_to_directory(touched)

    def _save_tasks_to_directory(self, tasks: List[Task]) -> None:
        """Write one mirror file per task; failures are logged and ignored."""
        if not tasks:
            return
        if not self.ensure_tasks_directory_exists():
            logger.warning("Tasks directory not available; skipping task mirror files")
            return

        for task in tasks:
            mirror_path = self.tasks_dir_path / self.MIRROR_FILE_TEMPLATE.format(task_id=task.id)
            try:
                mirror_path.write_text(json.dumps(task.to_dict(), indent=2), encoding="utf-8")
            except OSError as e:
                logger.warning(f"Failed to save task {task.id} to {mirror_path}: {e}")

    @staticmethod
    def _find(tasks: List[Task], task_id: int) -> tuple[int, Task]:
        for index, task in enumerate(tasks):
            if task.id == task_id:
                return index, task
        raise TaskNotFoundError(task_id)

    @staticmethod
    def _check(task: Task) -> None:
        issues = task.validate()
        if issues:
            raise ValidationError(f"Invalid task {task.id}: {'; '.join(issues)}")

    @staticmethod
    def _max_task_id(tasks: Iterable[Task]) -> int:
        return max((task.id for task in tasks), default=0)

    def _number_batch(self, existing: List[Task], batch: Sequence[Task]) -> List[Task]:
        start = self._max_task_id(existing)
        incoming_ids = [task.id for task in batch]
        keep_ids = (
            all(task_id > start for task_id in incoming_ids)
            and len(set(incoming_ids)) == len(incoming_ids)
        )
        if keep_ids:
            return [_reparent_subtasks(task) for task in batch]

        mapping: Dict[int, int] = {}
        for offset, task in enumerate(batch, start=1):
            mapping.setdefault(task.id, start + offset)

        logger.warning(f"Renumbering appended tasks: {mapping}")
        renumbered = []
        for offset, task in enumerate(batch, start=1):
            new_id = start + offset
            dependencies = _unique(mapping.get(dep_id, dep_id) for dep_id in task.dependencies)
            renumbered.append(_reparent_subtasks(replace(task, id=new_id, dependencies=dependencies)))
        return renumbered


def _unique(ids: Iterable[int]) -> List[int]:
    seen: Dict[int, None] = {}
    for task_id in ids:
        seen.setdefault(int(task_id), None)
    return list(seen)


def _reparent_subtasks(task: Task) -> Task:
    if all(subtask.parent_id == task.id for subtask in task.subtasks):
        return task
    return replace(task, subtasks=[replace(subtask, parent_id=task.id) for subtask in task.subtasks])
