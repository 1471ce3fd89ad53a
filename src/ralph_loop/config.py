from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any


CONFIG_DIRNAME = ".opencode"
STATE_FILENAME = "ralph-state.json"
LOCK_FILENAME = "ralph-state.lock"
SETTINGS_FILENAME = "ralph.json"
LOG_FILENAME = "ralph.log"

DEFAULT_AGENT_COMMAND = "opencode"
DEFAULT_MAX_ITERATIONS = 10

AGENT_COMMAND_ENV = "RALPH_AGENT_COMMAND"


@dataclass(frozen=True)
class Paths:
    project_dir: Path

    @property
    def config_dir(self) -> Path:
        return self.project_dir / CONFIG_DIRNAME

    @property
    def state_path(self) -> Path:
        return self.config_dir / STATE_FILENAME

    @property
    def lock_path(self) -> Path:
        return self.config_dir / LOCK_FILENAME

    @property
    def settings_path(self) -> Path:
        return self.config_dir / SETTINGS_FILENAME

    @property
    def log_path(self) -> Path:
        return self.config_dir / LOG_FILENAME


@dataclass(frozen=True)
class LoopSettings:
    agent_command: str = DEFAULT_AGENT_COMMAND
    default_max_iterations: int = DEFAULT_MAX_ITERATIONS
    lock_timeout_s: float = 60.0
    lock_stale_after_s: float = 60.0


def resolve_project_dir(worktree: str | Path | None = None) -> Path:
    if worktree:
        return Path(worktree)
    return Path.cwd()


def load_paths(worktree: str | Path | None = None) -> Paths:
    return Paths(project_dir=resolve_project_dir(worktree))


def load_settings(path: Path) -> LoopSettings:
    """Read optional loop settings; anything unreadable falls back to defaults."""
    settings = LoopSettings()
    payload: dict[str, Any] = {}
    if path.exists():
        try:
            loaded = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError, RecursionError):
            loaded = None
        if isinstance(loaded, dict):
            payload = loaded

    agent_command = payload.get("agent_command")
    if isinstance(agent_command, str) and agent_command.strip():
        settings = replace(settings, agent_command=agent_command.strip())
    default_max = payload.get("default_max_iterations")
    if isinstance(default_max, int) and not isinstance(default_max, bool) and default_max >= 1:
        settings = replace(settings, default_max_iterations=default_max)
    for key in ("lock_timeout_s", "lock_stale_after_s"):
        value = payload.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0:
            settings = replace(settings, **{key: float(value)})

    env_command = os.environ.get(AGENT_COMMAND_ENV, "").strip()
    if env_command:
        settings = replace(settings, agent_command=env_command)
    return settings


def save_settings(path: Path, settings: LoopSettings) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "agent_command": settings.agent_command,
        "default_max_iterations": settings.default_max_iterations,
        "lock_timeout_s": settings.lock_timeout_s,
        "lock_stale_after_s": settings.lock_stale_after_s,
    }
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
