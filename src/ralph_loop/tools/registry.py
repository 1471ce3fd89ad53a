from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from ralph_loop.controller import LoopController
from ralph_loop.errors import ToolArgumentError, UnknownToolError


Validator = Callable[[dict[str, Any]], tuple[bool, str | None]]
Handler = Callable[[dict[str, Any]], str]


START_DESCRIPTION = "\n".join(
    [
        "Start a Ralph Loop to iteratively improve code until a completion promise is met.",
        "",
        "This tool will:",
        "1. Save your prompt and completion criteria.",
        "2. If you exit without outputting the completion promise, the system will automatically "
        "restart you with the SAME prompt.",
        "3. This allows you to check your work (tests, linters), fail, and try again in the next iteration.",
    ]
)
CANCEL_DESCRIPTION = "Stop the active Ralph Loop immediately."


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    args_schema: dict[str, str]
    validate_args: Validator
    handle: Handler


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}

    def register(self, definition: ToolDefinition) -> None:
        self._tools[definition.name] = definition

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def list_tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def describe_tools(self) -> str:
        lines: list[str] = []
        for tool in self.list_tools():
            args_desc = ", ".join(f"{key}: {value}" for key, value in tool.args_schema.items()) or "none"
            summary = tool.description.splitlines()[0] if tool.description else ""
            lines.append(f"- {tool.name}: {summary} (args: {args_desc})")
        return "\n".join(lines)

    def execute(self, name: str, args: dict[str, Any] | None = None) -> str:
        tool = self.get(name)
        if tool is None:
            raise UnknownToolError(f"unknown tool: {name}")
        payload = args if isinstance(args, dict) else {}
        ok, err = tool.validate_args(payload)
        if not ok:
            raise ToolArgumentError(f"{name}: {err}")
        return tool.handle(payload)


def _validate_start(args: dict[str, Any]) -> tuple[bool, str | None]:
    prompt = args.get("prompt")
    if not isinstance(prompt, str):
        return False, "prompt must be a string"
    promise = args.get("completion_promise")
    if promise is not None and not isinstance(promise, str):
        return False, "completion_promise must be a string"
    return True, None


def _validate_cancel(_: dict[str, Any]) -> tuple[bool, str | None]:
    return True, None


def build_loop_registry(controller: LoopController) -> ToolRegistry:
    registry = ToolRegistry()

    def ralph_start(args: dict[str, Any]) -> str:
        return controller.start(
            args["prompt"],
            completion_promise=args.get("completion_promise"),
            max_iterations=args.get("max_iterations"),
        )

    def ralph_cancel(_: dict[str, Any]) -> str:
        return controller.cancel()

    registry.register(
        ToolDefinition(
            name="ralph_start",
            description=START_DESCRIPTION,
            args_schema={
                "prompt": "string",
                "completion_promise": "string (optional)",
                "max_iterations": f"number (default: {controller.settings.default_max_iterations})",
            },
            validate_args=_validate_start,
            handle=ralph_start,
        )
    )
    registry.register(
        ToolDefinition(
            name="ralph_cancel",
            description=CANCEL_DESCRIPTION,
            args_schema={},
            validate_args=_validate_cancel,
            handle=ralph_cancel,
        )
    )
    return registry
