"""Pure transition policy evaluated at the end of every cycle."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pc_controller.models.state import ControllerState
from pc_controller.models.types import CycleState


class NextAction(str, Enum):
    CONTINUE = "continue"
    CONVERGED = "converged"
    BUDGET_EXHAUSTED = "budget_exhausted"
    FATAL_ERROR = "fatal_error"
    REBOOT = "reboot"


_STATE_BY_ACTION = {
    NextAction.CONTINUE: ControllerState.RUNNING,
    NextAction.CONVERGED: ControllerState.CONVERGED,
    NextAction.BUDGET_EXHAUSTED: ControllerState.BUDGET_EXHAUSTED,
    NextAction.FATAL_ERROR: ControllerState.FATAL_ERROR,
    NextAction.REBOOT: ControllerState.REBOOT_REQUIRED,
}


@dataclass(frozen=True)
class CycleDecision:
    action: NextAction
    reason: str

    @property
    def state(self) -> ControllerState:
        return _STATE_BY_ACTION[self.action]


def decide(cycle: CycleState, *, cycles_used: int, max_cycles: int) -> CycleDecision:
    """Choose what follows ``cycle``.

    Order: critical failure, convergence, budget, pending reboot, continue.
    Budget wins over a pending reboot so the total never exceeds max_cycles.
    """
    if cycle.critical_failure:
        return CycleDecision(
            NextAction.FATAL_ERROR,
            f"critical step {cycle.critical_failure} failed",
        )
    if not cycle.reboot_required and not cycle.work_left:
        return CycleDecision(NextAction.CONVERGED, "nothing left to do")
    if cycles_used >= max_cycles:
        detail = "reboot still pending" if cycle.reboot_required else "work still pending"
        return CycleDecision(
            NextAction.BUDGET_EXHAUSTED,
            f"{cycles_used}/{max_cycles} cycles used, {detail}",
        )
    if cycle.reboot_required:
        return CycleDecision(NextAction.REBOOT, "reboot required to continue")
    return CycleDecision(
        NextAction.CONTINUE,
        f"{cycle.applied} applied, {cycle.failed} failed, {cycle.remaining} still pending",
    )
