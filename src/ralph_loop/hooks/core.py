from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable


logger = logging.getLogger(__name__)

MESSAGE_EVENT = "chat.message"
IDLE_EVENT = "session.idle"
GENERIC_EVENT = "event"


@dataclass(frozen=True)
class Hook:
    name: str
    triggers: set[str]
    handler: Callable[["HookContext"], "HookActions | None"]


@dataclass
class HookActions:
    messages: list[str] = field(default_factory=list)


@dataclass
class HookContext:
    event: str
    payload: dict[str, Any]


def resolve_event_name(event: str, payload: Any) -> str:
    """Map the host's generic ``event`` envelope to the concrete event type."""
    if event != GENERIC_EVENT:
        return event
    if not isinstance(payload, dict):
        return event
    inner = payload.get("event")
    if isinstance(inner, dict) and isinstance(inner.get("type"), str):
        return inner["type"]
    return event


class HookManager:
    def __init__(self) -> None:
        self.hooks: list[Hook] = []

    def register(self, hook: Hook) -> None:
        self.hooks.append(hook)

    def register_many(self, hooks: Any) -> None:
        if not isinstance(hooks, list):
            return
        for hook in hooks:
            if isinstance(hook, Hook):
                self.hooks.append(hook)

    def run(self, event: str, payload: Any) -> list[str]:
        event_name = resolve_event_name(event, payload)
        if not isinstance(payload, dict):
            payload = {}
        messages: list[str] = []
        for hook in self.hooks:
            if event_name not in hook.triggers:
                continue
            context = HookContext(event=event_name, payload=payload)
            try:
                result = hook.handler(context)
            except Exception:
                logger.exception("Hook %s failed on %s", hook.name, event_name)
                continue
            if result is None:
                continue
            messages.extend(result.messages)
        return messages
