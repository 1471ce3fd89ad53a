from __future__ import annotations

import json
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from ralph_loop.cli_format import format_state
from ralph_loop.config import load_paths, load_settings, save_settings
from ralph_loop.logging_config import setup_logging
from ralph_loop.plugin import RalphLoopPlugin, create_plugin
from ralph_loop.state import state_to_payload

app = typer.Typer(help="Ralph Loop: re-run an agent with the same prompt until it is done.")


@dataclass
class CliState:
    project: Optional[Path] = None


def _plugin(ctx: typer.Context) -> RalphLoopPlugin:
    state: CliState = ctx.obj
    return create_plugin(state.project)


@app.callback()
def main(
    ctx: typer.Context,
    project: Optional[Path] = typer.Option(None, "--project", "-p", help="Project root (defaults to cwd)."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level."),
    log_file: bool = typer.Option(False, "--log-file", help="Also log to .opencode/ralph.log."),
) -> None:
    paths = load_paths(project)
    setup_logging(log_level, paths.log_path if log_file else None)
    ctx.obj = CliState(project=project)


@app.command()
def start(
    ctx: typer.Context,
    prompt: str = typer.Argument(..., help="The instruction to repeat."),
    promise: Optional[str] = typer.Option(
        None, "--promise", help="Exact text the agent prints only when the task is complete."
    ),
    max_iterations: Optional[int] = typer.Option(None, "--max-iterations", "-n", help="Iteration budget."),
) -> None:
    """Arm a new loop, replacing any previous one."""
    plugin = _plugin(ctx)
    args = {"prompt": prompt, "completion_promise": promise, "max_iterations": max_iterations}
    typer.echo(plugin.call_tool("ralph_start", args))


@app.command()
def cancel(ctx: typer.Context) -> None:
    """Stop the active loop before its next iteration."""
    plugin = _plugin(ctx)
    typer.echo(plugin.call_tool("ralph_cancel"))


@app.command()
def status(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Print the raw record."),
) -> None:
    """Show the persisted loop record."""
    plugin = _plugin(ctx)
    state = plugin.controller.status()
    if as_json:
        typer.echo(json.dumps(state_to_payload(state), indent=2))
        return
    Console().print(format_state(state, plugin.paths.state_path))


@app.command()
def idle(
    ctx: typer.Context,
    output: str = typer.Option("", "--output", help="Agent output to evaluate for the completion promise."),
) -> None:
    """Run one idle evaluation by hand, e.g. to retry a failed launch."""
    plugin = _plugin(ctx)
    try:
        verdict = plugin.controller.on_idle(output)
    except OSError as exc:
        typer.echo(f"Could not update loop state: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(verdict.value)


@app.command()
def event(ctx: typer.Context) -> None:
    """Read host events as JSON lines on stdin and dispatch them."""
    plugin = _plugin(ctx)
    for line_no, line in enumerate(sys.stdin, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as exc:
            typer.echo(f"line {line_no}: invalid json: {exc}", err=True)
            continue
        if not isinstance(payload, dict) or not isinstance(payload.get("name"), str):
            typer.echo(f"line {line_no}: expected an object with a 'name'", err=True)
            continue
        for message in plugin.dispatch(payload["name"], payload.get("payload") or {}):
            typer.echo(message)


@app.command()
def init(
    ctx: typer.Context,
    agent_command: Optional[str] = typer.Option(None, "--agent-command", help="Executable to relaunch."),
    default_max_iterations: Optional[int] = typer.Option(None, "--default-max-iterations"),
) -> None:
    """Write .opencode/ralph.json with the current settings."""
    state: CliState = ctx.obj
    paths = load_paths(state.project)
    settings = load_settings(paths.settings_path)
    if agent_command:
        settings = replace(settings, agent_command=agent_command)
    if default_max_iterations is not None:
        if default_max_iterations < 1:
            typer.echo("--default-max-iterations must be at least 1.")
            raise typer.Exit(code=1)
        settings = replace(settings, default_max_iterations=default_max_iterations)
    save_settings(paths.settings_path, settings)
    typer.echo(f"Settings saved to {paths.settings_path}")
