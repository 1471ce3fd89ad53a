from __future__ import annotations

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

from ralph_loop.config import Paths
from ralph_loop.locks import FileLock


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoopState:
    active: bool
    prompt: str
    iterations: int
    max_iterations: int
    completion_promise: str | None = None
    last_run: int | None = None


DEFAULT_STATE = LoopState(active=False, prompt="", iterations=0, max_iterations=0)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def state_to_payload(state: LoopState) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "active": state.active,
        "prompt": state.prompt,
    }
    if state.completion_promise is not None:
        payload["completionPromise"] = state.completion_promise
    payload["iterations"] = state.iterations
    payload["maxIterations"] = state.max_iterations
    if state.last_run is not None:
        payload["lastRun"] = state.last_run
    return payload


def parse_state(text: str) -> LoopState | None:
    """Parse a persisted record, returning None when it is not a valid state."""
    try:
        payload = json.loads(text)
    except (ValueError, RecursionError):
        # JSONDecodeError, oversized integers and runaway nesting.
        return None
    if not isinstance(payload, dict):
        return None
    active = payload.get("active")
    prompt = payload.get("prompt")
    iterations = payload.get("iterations")
    max_iterations = payload.get("maxIterations")
    if not isinstance(active, bool):
        return None
    if not isinstance(prompt, str):
        return None
    if not _is_int(iterations) or iterations < 0:
        return None
    if not _is_int(max_iterations):
        return None
    completion_promise = payload.get("completionPromise")
    if completion_promise is not None and not isinstance(completion_promise, str):
        return None
    last_run = payload.get("lastRun")
    if isinstance(last_run, float) and last_run.is_integer():
        last_run = int(last_run)
    if last_run is not None and not _is_int(last_run):
        return None
    return LoopState(
        active=active,
        prompt=prompt,
        iterations=iterations,
        max_iterations=max_iterations,
        completion_promise=completion_promise,
        last_run=last_run,
    )


def _write_text_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.unlink(tmp)


class StateStore:
    def __init__(
        self,
        paths: Paths,
        lock_timeout_s: float = 60.0,
        lock_stale_after_s: float | None = 60.0,
    ) -> None:
        self.paths = paths
        self.lock_timeout_s = lock_timeout_s
        self.lock_stale_after_s = lock_stale_after_s

    @property
    def path(self) -> Path:
        return self.paths.state_path

    def load(self) -> LoopState:
        path = self.path
        if not path.exists():
            return DEFAULT_STATE
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Could not read loop state at %s: %s", path, exc)
            return DEFAULT_STATE
        state = parse_state(text)
        if state is None:
            logger.debug("Ignoring malformed loop state at %s", path)
            return DEFAULT_STATE
        return state

    def save(self, state: LoopState) -> None:
        _write_text_atomic(self.path, json.dumps(state_to_payload(state), indent=2))

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the project lock file around a read-modify-write.

        With the default settings the wait equals the stale threshold, so a
        waiter either gets the lock or finds it stale and clears it. A
        timeout shorter than the stale threshold lets a writer proceed
        unlocked while a live holder is still working; that is logged.
        """
        lock = FileLock(self.paths.lock_path, stale_after_s=self.lock_stale_after_s)
        acquired = lock.acquire_within(self.lock_timeout_s)
        if not acquired:
            logger.warning("Loop state lock %s is busy; continuing without it", lock.path)
        try:
            yield
        finally:
            if acquired:
                lock.release()
