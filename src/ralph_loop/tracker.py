from __future__ import annotations

from typing import Any


def extract_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    parts: list[str] = []
    for part in content:
        if not isinstance(part, dict) or part.get("type") != "text":
            continue
        text = part.get("text")
        if isinstance(text, str):
            parts.append(text)
    return "\n".join(parts)


class OutputTracker:
    """Latest assistant text seen in this process."""

    def __init__(self) -> None:
        self._latest = ""

    @property
    def latest(self) -> str:
        return self._latest

    def record(self, message: Any) -> bool:
        if not isinstance(message, dict) or message.get("role") != "assistant":
            return False
        self._latest = extract_text(message.get("content"))
        return True

    def reset(self) -> None:
        self._latest = ""
