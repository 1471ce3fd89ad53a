from ralph_loop.controller import LoopController
from ralph_loop.evaluator import Verdict, evaluate
from ralph_loop.plugin import RalphLoopPlugin, create_plugin
from ralph_loop.state import LoopState, StateStore

__all__ = [
    "LoopController",
    "LoopState",
    "RalphLoopPlugin",
    "StateStore",
    "Verdict",
    "create_plugin",
    "evaluate",
]
