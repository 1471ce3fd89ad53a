from __future__ import annotations

from dataclasses import replace
from enum import Enum

from ralph_loop.state import LoopState


class Verdict(str, Enum):
    IDLE = "idle"
    COMPLETE = "complete"
    BUDGET_EXHAUSTED = "budget_exhausted"
    CONTINUE = "continue"


def evaluate(state: LoopState, output: str) -> Verdict:
    """Decide what an idle event should do with the loop.

    The completion promise is checked before the budget, so a turn that
    both prints the promise and uses the last iteration counts as complete.
    """
    if not state.active:
        return Verdict.IDLE
    if state.completion_promise and state.completion_promise in output:
        return Verdict.COMPLETE
    if state.iterations >= state.max_iterations:
        return Verdict.BUDGET_EXHAUSTED
    return Verdict.CONTINUE


def apply_verdict(state: LoopState, verdict: Verdict) -> LoopState:
    if verdict in (Verdict.COMPLETE, Verdict.BUDGET_EXHAUSTED):
        return replace(state, active=False)
    if verdict is Verdict.CONTINUE:
        return replace(state, iterations=state.iterations + 1)
    return state
