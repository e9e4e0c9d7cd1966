"""Workspace configuration for TaskPilot.

All file locations and assistant settings live in one ``TaskPilotConfig``
which is handed to the store and the task manager explicitly.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

ENV_PREFIX = "TASKPILOT"

logger = logging.getLogger("taskpilot.config")


def _env_name(suffix: str) -> str:
    return f"{ENV_PREFIX}_{suffix}"


def _env_str(suffix: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.getenv(_env_name(suffix))
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_float(suffix: str, default: float) -> float:
    raw = _env_str(suffix)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring malformed {_env_name(suffix)}={raw!r}; using {default}")
        return default


@dataclass(slots=True)
class TaskPilotConfig:
    """Paths and assistant settings for one workspace."""

    root: Path
    tasks_file: str = "tasks.json"
    generated_tasks_dir: str = "tasks"
    complexity_threshold: float = 4.0
    assistant_model: str = "gpt-4o"
    assistant_api_key: Optional[str] = None
    assistant_base_url: Optional[str] = None
    assistant_timeout: float = 60.0

    def __post_init__(self) -> None:
        self.root = Path(self.root).expanduser().resolve()

    @property
    def tasks_file_path(self) -> Path:
        return self.root / self.tasks_file

    @property
    def tasks_dir_path(self) -> Path:
        return self.root / self.generated_tasks_dir

    @classmethod
    def from_env(cls, root: Path | str) -> "TaskPilotConfig":
        """Build a config for ``root`` using ``TASKPILOT_*`` environment overrides."""
        return cls(
            root=Path(root),
            tasks_file=_env_str("TASKS_FILE", "tasks.json"),
            generated_tasks_dir=_env_str("TASKS_DIR", "tasks"),
            complexity_threshold=_env_float("COMPLEXITY_THRESHOLD", 4.0),
            assistant_model=_env_str("MODEL", "gpt-4o"),
            assistant_api_key=_env_str("API_KEY") or os.getenv("OPENAI_API_KEY") or None,
            assistant_base_url=_env_str("BASE_URL"),
            assistant_timeout=_env_float("ASSISTANT_TIMEOUT", 60.0),
        )
