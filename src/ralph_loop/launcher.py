from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path
from typing import Any, Protocol, Sequence


logger = logging.getLogger(__name__)


class Launcher(Protocol):
    def launch(self, command: str, args: Sequence[str], cwd: Path) -> bool:
        ...


def _detach_kwargs() -> dict[str, Any]:
    if sys.platform == "win32":
        flags = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(
            subprocess, "CREATE_NEW_PROCESS_GROUP", 0
        )
        return {"creationflags": flags}
    return {"start_new_session": True}


class DetachedLauncher:
    """Starts a process the caller never waits on or owns."""

    def launch(self, command: str, args: Sequence[str], cwd: Path) -> bool:
        cmd = [command, *args]
        try:
            subprocess.Popen(
                cmd,
                cwd=str(cwd),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                close_fds=True,
                **_detach_kwargs(),
            )
        except (OSError, ValueError) as exc:
            logger.error("[Ralph Loop] Failed to launch %s: %s", command, exc)
            return False
        return True


def iteration_args(prompt: str) -> list[str]:
    return ["run", "--prompt", prompt]


def spawn_next_iteration(launcher: Launcher, project_dir: Path, prompt: str, command: str) -> bool:
    args = iteration_args(prompt)
    logger.info("[Ralph Loop] Spawning: %s %s", command, " ".join(args))
    return launcher.launch(command, args, project_dir)
