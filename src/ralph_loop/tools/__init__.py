from ralph_loop.tools.registry import ToolDefinition, ToolRegistry, build_loop_registry

__all__ = ["ToolDefinition", "ToolRegistry", "build_loop_registry"]
