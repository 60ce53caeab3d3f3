"""Controller state machine primitives."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from pc_controller.models.types import TerminationReason

logger = logging.getLogger(__name__)


class ControllerState(str, Enum):
    """Convergence controller lifecycle states."""

    IDLE = "idle"
    RUNNING = "running"
    CONVERGED = "converged"
    BUDGET_EXHAUSTED = "budget_exhausted"
    FATAL_ERROR = "fatal_error"
    REBOOT_REQUIRED = "reboot_required"


_TERMINAL_STATES = {
    ControllerState.CONVERGED,
    ControllerState.BUDGET_EXHAUSTED,
    ControllerState.FATAL_ERROR,
    ControllerState.REBOOT_REQUIRED,
}


_ALLOWED_TRANSITIONS = {
    ControllerState.IDLE: {
        ControllerState.RUNNING,
        ControllerState.BUDGET_EXHAUSTED,
        ControllerState.FATAL_ERROR,
    },
    ControllerState.RUNNING: {
        ControllerState.RUNNING,
        ControllerState.CONVERGED,
        ControllerState.BUDGET_EXHAUSTED,
        ControllerState.FATAL_ERROR,
        ControllerState.REBOOT_REQUIRED,
    },
    ControllerState.CONVERGED: set(),
    ControllerState.BUDGET_EXHAUSTED: set(),
    ControllerState.FATAL_ERROR: set(),
    ControllerState.REBOOT_REQUIRED: set(),
}


_TERMINATION_BY_STATE = {
    ControllerState.CONVERGED: TerminationReason.CONVERGED,
    ControllerState.BUDGET_EXHAUSTED: TerminationReason.BUDGET_EXHAUSTED,
    ControllerState.FATAL_ERROR: TerminationReason.FATAL_ERROR,
    ControllerState.REBOOT_REQUIRED: TerminationReason.REBOOT_REQUIRED,
}


class ControllerStateMachine:
    """Single-run controller state tracker."""

    def __init__(self) -> None:
        self._state = ControllerState.IDLE
        self._reason: Optional[str] = None
        self._cycle = 0

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    @property
    def cycle(self) -> int:
        return self._cycle

    def is_terminal(self) -> bool:
        return self._state in _TERMINAL_STATES

    def termination_reason(self) -> Optional[TerminationReason]:
        return _TERMINATION_BY_STATE.get(self._state)

    def start_cycle(self, cycle: int) -> ControllerState:
        """Enter RUNNING for the given cycle number."""
        self._cycle = cycle
        return self.transition(ControllerState.RUNNING, reason=f"cycle {cycle}")

    def transition(
        self, new_state: ControllerState, reason: Optional[str] = None
    ) -> ControllerState:
        """Attempt a state transition; raise ValueError if invalid."""
        allowed = _ALLOWED_TRANSITIONS.get(self._state, set())
        if new_state not in allowed and new_state is not ControllerState.FATAL_ERROR:
            raise ValueError(f"Invalid transition {self._state} -> {new_state}")
        if self.is_terminal():
            raise ValueError(f"Invalid transition {self._state} -> {new_state}")
        self._state = new_state
        self._reason = reason
        logger.debug("Controller state -> %s (%s)", new_state.value, reason or "")
        return self._state
