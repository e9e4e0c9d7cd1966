"""Logging and observability utilities for TaskPilot.

Structured JSON log files, duration metrics for store and workflow
operations, and callbacks fired when tasks change.
"""

from __future__ import annotations

import json
import time
import logging as std_logging
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

LOGGER_NAME = "taskpilot"
CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(module)s:%(lineno)d) %(message)s"
CONSOLE_DATEFMT = "%H:%M:%S"


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def setup_logging(log_level: Union[str, int] = std_logging.INFO, log_file: Optional[Path] = None) -> None:
    """Configure the ``taskpilot`` logger tree.

    Human-readable lines go to stderr, since stdout carries the MCP stdio
    transport. When ``log_file`` is given every record down to DEBUG is
    also appended there as one JSON object per line.
    """
    package_logger = std_logging.getLogger(LOGGER_NAME)
    package_logger.setLevel(log_level)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    stderr_handler = std_logging.StreamHandler()
    stderr_handler.setLevel(log_level)
    stderr_handler.setFormatter(std_logging.Formatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATEFMT))
    package_logger.addHandler(stderr_handler)

    if log_file is not None:
        json_handler = std_logging.FileHandler(Path(log_file), encoding="utf-8")
        json_handler.setLevel(std_logging.DEBUG)
        json_handler.setFormatter(JsonFormatter())
        package_logger.addHandler(json_handler)

    package_logger.debug("Logging configured at %s", std_logging.getLevelName(package_logger.level))


class JsonFormatter(std_logging.Formatter):
    """Render a record as a single JSON line.

    Fields passed as ``extra={"extra_fields": {...}}`` are merged into the
    top level of the object.
    """

    def format(self, record: std_logging.LogRecord) -> str:
        payload: Dict[str, Any] = dict(
            timestamp=datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            level=record.levelname,
            logger=record.name,
            module=record.module,
            function=record.funcName,
            line=record.lineno,
            message=record.getMessage(),
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        payload.update(getattr(record, "extra_fields", None) or {})
        return json.dumps(payload, default=str)


class PerformanceMonitor:
    """In-memory store of named metric samples."""

    def __init__(self):
        self.metrics: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self._logger = std_logging.getLogger(f"{LOGGER_NAME}.performance")

    def record_metric(self, name: str, value: Any, tags: Optional[Dict[str, str]] = None) -> None:
        sample = dict(timestamp=_utcnow(), name=name, value=value, tags=dict(tags or {}))
        self.metrics[name].append(sample)
        self._logger.debug("%s=%s %s", name, value, sample["tags"], extra={"extra_fields": sample})

    def get_metrics(self, name: Optional[str] = None) -> Dict[str, List[Dict[str, Any]]]:
        """Samples for ``name``, or for every metric when no name is given."""
        if name is not None:
            return {name: list(self.metrics.get(name, ()))}
        return {key: list(samples) for key, samples in self.metrics.items()}

    def clear(self) -> None:
        self.metrics.clear()


performance_monitor = PerformanceMonitor()


def log_performance(operation_name: str):
    """Record ``<operation_name>_duration`` for every call of the wrapped function.

    Samples are tagged with ``status`` and, on failure, the exception type.
    Exceptions are re-raised unchanged.
    """
    metric_name = f"{operation_name}_duration"
    logger = std_logging.getLogger(f"{LOGGER_NAME}.performance")

    def decorate(func):
        @wraps(func)
        def timed(*args, **kwargs):
            began = time.perf_counter()
            try:
                outcome = func(*args, **kwargs)
            except Exception as exc:
                elapsed = time.perf_counter() - began
                tags = {"status": "error", "error_type": type(exc).__name__}
                performance_monitor.record_metric(metric_name, elapsed, tags)
                logger.warning("%s raised %s after %.3fs", operation_name, tags["error_type"], elapsed,
                               extra={"extra_fields": {"operation": operation_name, "duration": elapsed, **tags}})
                raise
            elapsed = time.perf_counter() - began
            performance_monitor.record_metric(metric_name, elapsed, {"status": "success"})
            return outcome

        return timed

    return decorate


@contextmanager
def log_operation(operation_name: str, **extra_fields) -> Iterator[None]:
    """Log the start and the outcome of a block of work."""
    logger = std_logging.getLogger(f"{LOGGER_NAME}.operations")
    fields = {"operation": operation_name, **extra_fields}
    began = time.perf_counter()
    logger.info("%s started", operation_name, extra={"extra_fields": {**fields, "status": "started"}})
    try:
        yield
    except Exception as exc:
        elapsed = time.perf_counter() - began
        logger.error(
            f"{operation_name} failed after {elapsed:.3f}s: {exc}",
            extra={"extra_fields": {**fields, "status": "failed", "duration": elapsed,
                                    "error_type": type(exc).__name__, "error_message": str(exc)}},
        )
        raise
    elapsed = time.perf_counter() - began
    logger.info("%s finished in %.3fs", operation_name, elapsed,
                extra={"extra_fields": {**fields, "status": "completed", "duration": elapsed}})


class ObservabilityHooks:
    """Callbacks keyed by task event name (task_added, task_updated, ...)."""

    def __init__(self):
        self.hooks: Dict[str, List[Callable[..., Any]]] = defaultdict(list)
        self.logger = std_logging.getLogger(f"{LOGGER_NAME}.observability")

    def register_hook(self, event_type: str, callback: Callable[..., Any]) -> None:
        self.hooks[event_type].append(callback)

    def unregister_hook(self, event_type: str, callback: Callable[..., Any]) -> None:
        if callback in self.hooks.get(event_type, ()):
            self.hooks[event_type].remove(callback)

    def trigger_hooks(self, event_type: str, **data) -> None:
        """Call every callback registered for ``event_type``.

        A callback that raises is logged; the remaining callbacks still run
        and the task operation that fired the event is not affected.
        """
        for callback in tuple(self.hooks.get(event_type, ())):
            try:
                callback(**data)
            except Exception:
                self.logger.exception("Callback %r for %s raised", callback, event_type)

    def log_task_event(self, event_type: str, task_id: Optional[int] = None, **data) -> None:
        event = {"timestamp": _utcnow(), "task_id": task_id, **data}
        self.logger.info("%s (task %s)", event_type, task_id,
                         extra={"extra_fields": {"event_type": event_type, **event}})
        self.trigger_hooks(event_type, **event)


observability_hooks = ObservabilityHooks()


def log_task_added(task_id: int, title: str, **extra_fields):
    observability_hooks.log_task_event("task_added", task_id=task_id, title=title, **extra_fields)


def log_task_updated(task_id: int, rescored: bool, **extra_fields):
    observability_hooks.log_task_event("task_updated", task_id=task_id, rescored=rescored, **extra_fields)


def log_tasks_appended(task_ids: List[int], **extra_fields):
    observability_hooks.log_task_event("tasks_appended", task_ids=task_ids, count=len(task_ids), **extra_fields)


def log_subtasks_added(task_id: int, subtask_ids: List[int], **extra_fields):
    observability_hooks.log_task_event("subtasks_added", task_id=task_id, subtask_ids=subtask_ids, **extra_fields)


def log_error_with_context(error: Exception, context: Dict[str, Any], **extra_fields):
    """Log ``error`` on ``taskpilot.errors`` with its kind and the caller's context."""
    fields = {
        "timestamp": _utcnow(),
        "error_type": type(error).__name__,
        "error_kind": getattr(error, "kind", None),
        "error_message": str(error),
        "context": context,
        **extra_fields,
    }
    operation = context.get("operation", "unknown operation")
    std_logging.getLogger(f"{LOGGER_NAME}.errors").error(
        f"{operation} failed: {error}", extra={"extra_fields": fields}, exc_info=error
    )
