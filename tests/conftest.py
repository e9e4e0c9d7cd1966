"""Shared fixtures for the TaskPilot test suite."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from taskpilot.config import TaskPilotConfig
from taskpilot.store import TaskStore
from taskpilot.taskpilot_logging import observability_hooks, performance_monitor
from taskpilot.workflow import TaskManager

from tests.fakes import FakeAssistantClient


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """Keep TASKPILOT_* and OpenAI settings of the developer machine out of the tests."""
    for name in (
        "TASKPILOT_PROJECT_ROOT",
        "TASKPILOT_TASKS_FILE",
        "TASKPILOT_TASKS_DIR",
        "TASKPILOT_COMPLEXITY_THRESHOLD",
        "TASKPILOT_MODEL",
        "TASKPILOT_API_KEY",
        "TASKPILOT_BASE_URL",
        "TASKPILOT_ASSISTANT_TIMEOUT",
        "OPENAI_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    observability_hooks.hooks.clear()
    performance_monitor.clear()


@pytest.fixture()
def config(tmp_path: Path) -> TaskPilotConfig:
    return TaskPilotConfig(root=tmp_path)


@pytest.fixture()
def store(config: TaskPilotConfig) -> TaskStore:
    """Store over an initialized, empty tasks file."""
    task_store = TaskStore(config)
    assert task_store.init_tasks_file()
    return task_store


@pytest.fixture()
def fake_assistant() -> FakeAssistantClient:
    return FakeAssistantClient()


@pytest.fixture()
def manager(config: TaskPilotConfig, store: TaskStore, fake_assistant: FakeAssistantClient) -> TaskManager:
    return TaskManager(config, assistant=fake_assistant)


@pytest.fixture()
def write_tasks(config: TaskPilotConfig):
    """Write raw task records straight to tasks.json."""

    def _write(records):
        config.tasks_file_path.write_text(json.dumps(records, indent=2), encoding="utf-8")
        return config.tasks_file_path

    return _write
