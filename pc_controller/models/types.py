"""Shared controller data types and protocols."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    Callable,
    ContextManager,
    Dict,
    List,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)


class OutcomeKind(str, Enum):
    """Classification of a single step attempt."""

    APPLIED = "applied"
    ALREADY_SATISFIED = "already_satisfied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    """Result of executing one step once."""

    kind: OutcomeKind
    reason: Optional[str] = None
    step_id: Optional[str] = None
    duration_seconds: float = 0.0

    @classmethod
    def applied(cls, reason: str | None = None) -> "Outcome":
        return cls(OutcomeKind.APPLIED, reason)

    @classmethod
    def already_satisfied(cls) -> "Outcome":
        return cls(OutcomeKind.ALREADY_SATISFIED)

    @classmethod
    def skipped(cls, reason: str | None = None) -> "Outcome":
        return cls(OutcomeKind.SKIPPED, reason)

    @classmethod
    def failed(cls, reason: str) -> "Outcome":
        return cls(OutcomeKind.FAILED, reason)

    @property
    def is_failure(self) -> bool:
        return self.kind is OutcomeKind.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_id": self.step_id,
            "outcome": self.kind.value,
            "reason": self.reason,
            "duration_seconds": round(self.duration_seconds, 3),
        }


@runtime_checkable
class Step(Protocol):
    """Idempotent unit of provisioning work.

    ``probe`` must be free of side effects; ``apply`` may return an Outcome
    (typically ``Outcome.skipped``) or None for a plain success.
    """

    id: str
    critical: bool

    def probe(self) -> bool: ...

    def apply(self) -> Optional[Outcome]: ...


@dataclass
class CallableStep:
    """Step assembled from two plain callables."""

    id: str
    probe_fn: Callable[[], bool]
    apply_fn: Callable[[], Optional[Outcome]]
    critical: bool = False
    description: str = ""

    def probe(self) -> bool:
        return bool(self.probe_fn())

    def apply(self) -> Optional[Outcome]:
        return self.apply_fn()


class TerminationReason(str, Enum):
    """Why a controller run stopped."""

    CONVERGED = "converged"
    BUDGET_EXHAUSTED = "budget_exhausted"
    FATAL_ERROR = "fatal_error"
    REBOOT_REQUIRED = "reboot_required"


EXIT_CODES: Dict[TerminationReason, int] = {
    TerminationReason.CONVERGED: 0,
    TerminationReason.FATAL_ERROR: 1,
    TerminationReason.BUDGET_EXHAUSTED: 2,
    TerminationReason.REBOOT_REQUIRED: 3,
}
EXIT_INVALID_PLAN = 4


@dataclass(frozen=True)
class CycleState:
    """Counts and flags for one completed pass over the step list."""

    cycle_number: int
    applied: int = 0
    already_satisfied: int = 0
    skipped: int = 0
    failed: int = 0
    remaining: int = 0
    reboot_required: bool = False
    critical_failure: Optional[str] = None
    outcomes: Tuple[Outcome, ...] = ()

    @property
    def total(self) -> int:
        return self.applied + self.already_satisfied + self.skipped + self.failed

    @property
    def work_left(self) -> bool:
        """True when the cycle ended with failures or unverified changes."""
        return self.failed > 0 or self.remaining > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cycle": self.cycle_number,
            "applied": self.applied,
            "already_satisfied": self.already_satisfied,
            "skipped": self.skipped,
            "failed": self.failed,
            "remaining": self.remaining,
            "reboot_required": self.reboot_required,
            "critical_failure": self.critical_failure,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CycleState":
        outcomes = tuple(
            Outcome(
                kind=OutcomeKind(item["outcome"]),
                reason=item.get("reason"),
                step_id=item.get("step_id"),
                duration_seconds=float(item.get("duration_seconds") or 0.0),
            )
            for item in data.get("outcomes", [])
        )
        return cls(
            cycle_number=int(data["cycle"]),
            applied=int(data.get("applied", 0)),
            already_satisfied=int(data.get("already_satisfied", 0)),
            skipped=int(data.get("skipped", 0)),
            failed=int(data.get("failed", 0)),
            remaining=int(data.get("remaining", 0)),
            reboot_required=bool(data.get("reboot_required", False)),
            critical_failure=data.get("critical_failure"),
            outcomes=outcomes,
        )


@dataclass
class RunState:
    """Run-level state spanning every cycle of one invocation."""

    max_cycles: int
    run_id: str = ""
    cycles: List[CycleState] = field(default_factory=list)
    termination_reason: Optional[TerminationReason] = None
    reboot_pending: bool = False
    reboot_initiated: bool = False
    error: Optional[Dict[str, Any]] = None
    # Leading entries of ``cycles`` replayed from an earlier invocation.
    prior_cycles: int = 0

    @property
    def cycles_used(self) -> int:
        return len(self.cycles)

    @property
    def converged(self) -> bool:
        return self.termination_reason is TerminationReason.CONVERGED

    @property
    def applied(self) -> int:
        return sum(cycle.applied for cycle in self.cycles)

    @property
    def already_satisfied(self) -> int:
        return sum(cycle.already_satisfied for cycle in self.cycles)

    @property
    def skipped(self) -> int:
        return sum(cycle.skipped for cycle in self.cycles)

    @property
    def failed(self) -> int:
        return sum(cycle.failed for cycle in self.cycles)

    @property
    def exit_code(self) -> int:
        if self.termination_reason is None:
            return EXIT_CODES[TerminationReason.FATAL_ERROR]
        return EXIT_CODES[self.termination_reason]

    def summary(self) -> Dict[str, Any]:
        """Return the structured end-of-run summary."""
        return {
            "run_id": self.run_id,
            "termination_reason": (
                self.termination_reason.value if self.termination_reason else None
            ),
            "converged": self.converged,
            "cycles_used": self.cycles_used,
            "prior_cycles": self.prior_cycles,
            "max_cycles": self.max_cycles,
            "applied": self.applied,
            "already_satisfied": self.already_satisfied,
            "skipped": self.skipped,
            "failed": self.failed,
            "reboot_pending": self.reboot_pending,
            "reboot_initiated": self.reboot_initiated,
            "error": self.error,
            "cycles": [cycle.to_dict() for cycle in self.cycles],
        }


class ResourceGuard(Protocol):
    """Exclusive access to the shared resource for one cycle."""

    resource_name: str

    def acquire(self) -> ContextManager[Any]: ...


class RebootSignal(Protocol):
    """Read-only oracle answering whether a restart is pending."""

    def is_reboot_required(self) -> bool: ...


class Rebooter(Protocol):
    """Schedules a machine restart."""

    def reboot(self, reason: str) -> None: ...
