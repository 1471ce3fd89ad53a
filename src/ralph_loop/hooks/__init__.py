from ralph_loop.hooks.core import Hook, HookActions, HookContext, HookManager

__all__ = ["Hook", "HookActions", "HookContext", "HookManager"]
