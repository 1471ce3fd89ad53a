from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from ralph_loop.config import LoopSettings, Paths, load_paths, load_settings
from ralph_loop.controller import LoopController
from ralph_loop.errors import RalphError
from ralph_loop.hooks.core import IDLE_EVENT, MESSAGE_EVENT, Hook, HookActions, HookContext, HookManager
from ralph_loop.launcher import Launcher
from ralph_loop.tools.registry import ToolRegistry, build_loop_registry
from ralph_loop.tracker import OutputTracker


logger = logging.getLogger(__name__)


def _message_from_payload(payload: dict[str, Any]) -> Any:
    # Hosts send either the message itself or {"message": {...}}.
    if "role" in payload:
        return payload
    return payload.get("message")


class RalphLoopPlugin:
    """Per-project session: the tools and event hooks a host runtime registers."""

    def __init__(
        self,
        paths: Paths,
        settings: LoopSettings | None = None,
        launcher: Launcher | None = None,
    ) -> None:
        self.paths = paths
        self.settings = settings or load_settings(paths.settings_path)
        self.tracker = OutputTracker()
        self.controller = LoopController(paths, self.settings, launcher=launcher)
        self.tools: ToolRegistry = build_loop_registry(self.controller)
        self.hooks = HookManager()
        self.hooks.register_many(
            [
                Hook(name="ralph.track_output", triggers={MESSAGE_EVENT}, handler=self._on_message),
                Hook(name="ralph.on_idle", triggers={IDLE_EVENT}, handler=self._on_idle),
            ]
        )

    def call_tool(self, name: str, args: dict[str, Any] | None = None) -> str:
        try:
            return self.tools.execute(name, args)
        except RalphError as exc:
            logger.warning("Tool call rejected: %s", exc)
            return f"Error: {exc}"
        except OSError as exc:
            logger.error("Tool %s could not access loop state: %s", name, exc)
            return f"Error: {exc}"

    def dispatch(self, event: str, payload: Any) -> list[str]:
        return self.hooks.run(event, payload)

    def _on_message(self, context: HookContext) -> HookActions | None:
        self.tracker.record(_message_from_payload(context.payload))
        return None

    def _on_idle(self, context: HookContext) -> HookActions | None:
        verdict = self.controller.on_idle(self.tracker.latest)
        return HookActions(messages=[f"ralph: {verdict.value}"])


def create_plugin(
    worktree: str | Path | None = None,
    settings: LoopSettings | None = None,
    launcher: Launcher | None = None,
) -> RalphLoopPlugin:
    return RalphLoopPlugin(load_paths(worktree), settings=settings, launcher=launcher)
