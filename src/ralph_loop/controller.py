from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from typing import Any

from ralph_loop.config import LoopSettings, Paths
from ralph_loop.evaluator import Verdict, apply_verdict, evaluate
from ralph_loop.launcher import DetachedLauncher, Launcher, spawn_next_iteration
from ralph_loop.state import LoopState, StateStore


logger = logging.getLogger(__name__)

NOTHING_TO_CANCEL = "No active Ralph Loop to cancel."
CANCELLED = "Ralph Loop CANCELLED."


def normalize_max_iterations(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value < 1:
        return default
    return value


def normalize_promise(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _now_ms() -> int:
    return int(time.time() * 1000)


def format_start_message(state: LoopState) -> str:
    lines = [
        "Ralph Loop STARTED.",
        "",
        f'Prompt: "{state.prompt}"',
        f"Max Iterations: {state.max_iterations}",
        f'Completion Promise: "{state.completion_promise or "(none)"}"',
        "",
        "I will now exit to start the loop. Or you can start working now.",
    ]
    if state.completion_promise:
        lines.append(f'REMEMBER: Do not output "{state.completion_promise}" until you are actually done.')
    return "\n".join(lines)


class LoopController:
    """Owns every transition of the persisted loop state for one project."""

    def __init__(
        self,
        paths: Paths,
        settings: LoopSettings | None = None,
        store: StateStore | None = None,
        launcher: Launcher | None = None,
    ) -> None:
        self.paths = paths
        self.settings = settings or LoopSettings()
        self.store = store or StateStore(
            paths,
            lock_timeout_s=self.settings.lock_timeout_s,
            lock_stale_after_s=self.settings.lock_stale_after_s,
        )
        self.launcher: Launcher = launcher or DetachedLauncher()
        self._lock = threading.Lock()

    def start(
        self,
        prompt: str,
        completion_promise: str | None = None,
        max_iterations: Any = None,
    ) -> str:
        state = LoopState(
            active=True,
            prompt=prompt,
            iterations=0,
            max_iterations=normalize_max_iterations(max_iterations, self.settings.default_max_iterations),
            completion_promise=normalize_promise(completion_promise),
            last_run=_now_ms(),
        )
        with self._lock, self.store.locked():
            self.store.save(state)
        logger.info(
            "[Ralph Loop] Started (max iterations %s, promise %r)",
            state.max_iterations,
            state.completion_promise,
        )
        return format_start_message(state)

    def cancel(self) -> str:
        with self._lock, self.store.locked():
            state = self.store.load()
            if not state.active:
                return NOTHING_TO_CANCEL
            self.store.save(replace(state, active=False))
        logger.info("[Ralph Loop] Cancelled after %s iterations", state.iterations)
        return CANCELLED

    def status(self) -> LoopState:
        return self.store.load()

    def on_idle(self, output: str) -> Verdict:
        with self._lock, self.store.locked():
            state = self.store.load()
            verdict = evaluate(state, output)
            if verdict is Verdict.IDLE:
                return verdict
            next_state = apply_verdict(state, verdict)
            self.store.save(next_state)

        if verdict is Verdict.COMPLETE:
            logger.info("[Ralph Loop] Completion promise found. Stopping loop.")
        elif verdict is Verdict.BUDGET_EXHAUSTED:
            logger.info("[Ralph Loop] Max iterations (%s) reached. Stopping loop.", state.max_iterations)
        else:
            logger.info(
                "[Ralph Loop] Iteration %s/%s. Restarting...",
                next_state.iterations,
                next_state.max_iterations,
            )
            spawn_next_iteration(
                self.launcher,
                self.paths.project_dir,
                next_state.prompt,
                self.settings.agent_command,
            )
        return verdict
