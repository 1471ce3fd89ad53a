"""Rich formatting helpers for ralph CLI output."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from rich.table import Table

from ralph_loop.state import LoopState


_STATUS_COLORS: dict[str, str] = {
    "active": "bold green",
    "inactive": "dim",
}


def status_color(status: str) -> str:
    colour = _STATUS_COLORS.get(status.lower(), "")
    if colour:
        return f"[{colour}]{status}[/{colour}]"
    return status


def truncate(text: str | None, max_len: int = 80) -> str:
    """Safely truncate text with an ellipsis."""
    if not text:
        return ""
    text = str(text).replace("\n", " ").strip()
    if len(text) <= max_len:
        return text
    return text[: max_len - 1] + "…"


def format_timestamp_ms(value: int | None) -> str:
    if value is None:
        return "-"
    try:
        moment = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return str(value)
    return moment.isoformat(timespec="seconds")


def format_state(state: LoopState, state_path: Path | None = None) -> Table:
    """Key/value table of the persisted loop record."""
    title = "Ralph Loop"
    if state_path is not None:
        title = f"Ralph Loop  ({state_path})"
    table = Table(title=title, show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Status", status_color("active" if state.active else "inactive"))
    table.add_row("Prompt", truncate(state.prompt) or "-")
    table.add_row("Completion promise", state.completion_promise or "(none)")
    table.add_row("Iterations", f"{state.iterations}/{state.max_iterations}")
    table.add_row("Last run", format_timestamp_ms(state.last_run))
    return table
