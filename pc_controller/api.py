"""Public controller API surface."""

from pc_controller.engine.controller import ConvergenceController
from pc_controller.engine.cycle import CycleRecorder
from pc_controller.engine.decision import CycleDecision, NextAction, decide
from pc_controller.engine.executor import StepExecutor
from pc_controller.models.config import (
    ControllerOptions,
    LockSpec,
    ProvisioningPlan,
    RebootSpec,
    StepSpec,
)
from pc_controller.models.state import ControllerState, ControllerStateMachine
from pc_controller.models.types import (
    EXIT_CODES,
    EXIT_INVALID_PLAN,
    CallableStep,
    CycleState,
    Outcome,
    OutcomeKind,
    RunState,
    Step,
    TerminationReason,
)
from pc_controller.services.journal import JournalStatus, RunJournal

__all__ = [
    "EXIT_CODES",
    "EXIT_INVALID_PLAN",
    "CallableStep",
    "ControllerOptions",
    "ControllerState",
    "ControllerStateMachine",
    "ConvergenceController",
    "CycleDecision",
    "CycleRecorder",
    "CycleState",
    "JournalStatus",
    "LockSpec",
    "NextAction",
    "Outcome",
    "OutcomeKind",
    "ProvisioningPlan",
    "RebootSpec",
    "RunJournal",
    "RunState",
    "Step",
    "StepExecutor",
    "StepSpec",
    "TerminationReason",
    "decide",
]
