"""Controller facade for the provisioning convergence loop."""

from pc_controller.api import (
    CallableStep,
    ControllerOptions,
    ConvergenceController,
    CycleState,
    Outcome,
    OutcomeKind,
    RunState,
    StepExecutor,
    TerminationReason,
)

__all__ = [
    "CallableStep",
    "ControllerOptions",
    "ConvergenceController",
    "CycleState",
    "Outcome",
    "OutcomeKind",
    "RunState",
    "StepExecutor",
    "TerminationReason",
]
