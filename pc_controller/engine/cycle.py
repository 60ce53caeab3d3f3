"""Accumulate step outcomes into an immutable CycleState."""

from __future__ import annotations

from typing import List, Optional

from pc_controller.models.types import CycleState, Outcome, OutcomeKind


class CycleRecorder:
    """Mutable tally for the cycle in progress; ``freeze`` seals it."""

    def __init__(self, cycle_number: int) -> None:
        if cycle_number < 1:
            raise ValueError("cycle_number must be >= 1")
        self.cycle_number = cycle_number
        self._outcomes: List[Outcome] = []
        self._remaining = 0
        self._critical_failure: Optional[str] = None

    @property
    def outcomes(self) -> List[Outcome]:
        return list(self._outcomes)

    @property
    def critical_failure(self) -> Optional[str]:
        return self._critical_failure

    def record(self, outcome: Outcome) -> None:
        self._outcomes.append(outcome)

    def mark_critical_failure(self, step_id: str) -> None:
        self._critical_failure = step_id

    def mark_remaining(self) -> None:
        """Note an applied step whose probe still reports pending work."""
        self._remaining += 1

    def count(self, kind: OutcomeKind) -> int:
        return sum(1 for outcome in self._outcomes if outcome.kind is kind)

    def freeze(self, *, reboot_required: bool) -> CycleState:
        return CycleState(
            cycle_number=self.cycle_number,
            applied=self.count(OutcomeKind.APPLIED),
            already_satisfied=self.count(OutcomeKind.ALREADY_SATISFIED),
            skipped=self.count(OutcomeKind.SKIPPED),
            failed=self.count(OutcomeKind.FAILED),
            remaining=self._remaining,
            reboot_required=reboot_required,
            critical_failure=self._critical_failure,
            outcomes=tuple(self._outcomes),
        )
