class RalphError(Exception):
    """Base error for ralph_loop."""


class ToolArgumentError(RalphError):
    """Raised when a tool is called with arguments that fail validation."""


class UnknownToolError(RalphError):
    """Raised when a tool name is not registered."""
