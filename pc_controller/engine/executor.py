"""Run a single step and classify what happened."""

from __future__ import annotations

import dataclasses
import logging
import time
from typing import Optional

from pc_controller.models.types import Outcome, OutcomeKind, Step

logger = logging.getLogger(__name__)


class StepExecutor:
    """Probe-then-apply runner that never lets a step failure escape."""

    def execute(self, step: Step) -> Outcome:
        """Run ``step`` once and return its outcome.

        A true probe short-circuits to ALREADY_SATISFIED without calling
        ``apply``. Exceptions from either callable become FAILED.
        """
        started = time.perf_counter()
        outcome = self._execute(step)
        outcome = dataclasses.replace(
            outcome,
            step_id=step.id,
            duration_seconds=time.perf_counter() - started,
        )
        self._log(outcome)
        return outcome

    def verify(self, step: Step) -> bool:
        """Re-probe a step after it was applied; errors count as unsatisfied."""
        try:
            return bool(step.probe())
        except Exception as exc:
            logger.warning("Verification probe failed for %s: %s", step.id, exc)
            return False

    def _execute(self, step: Step) -> Outcome:
        try:
            satisfied = bool(step.probe())
        except Exception as exc:
            return Outcome.failed(f"probe: {_describe(exc)}")
        if satisfied:
            return Outcome.already_satisfied()

        try:
            result = step.apply()
        except Exception as exc:
            logger.debug("Step %s raised during apply", step.id, exc_info=True)
            return Outcome.failed(_describe(exc))
        return _coerce(result)

    @staticmethod
    def _log(outcome: Outcome) -> None:
        if outcome.kind is OutcomeKind.FAILED:
            logger.error(
                "Step %s failed: %s (%.2fs)",
                outcome.step_id,
                outcome.reason,
                outcome.duration_seconds,
            )
        elif outcome.kind is OutcomeKind.SKIPPED:
            logger.info("Step %s skipped: %s", outcome.step_id, outcome.reason or "not applicable")
        elif outcome.kind is OutcomeKind.APPLIED:
            logger.info("Step %s applied (%.2fs)", outcome.step_id, outcome.duration_seconds)
        else:
            logger.info("Step %s already satisfied", outcome.step_id)


def _coerce(result: Optional[Outcome]) -> Outcome:
    if result is None:
        return Outcome.applied()
    if isinstance(result, Outcome):
        return result
    if isinstance(result, OutcomeKind):
        return Outcome(result)
    return Outcome.failed(f"apply returned unsupported value {result!r}")


def _describe(exc: BaseException) -> str:
    message = str(exc).strip()
    return f"{exc.__class__.__name__}: {message}" if message else exc.__class__.__name__
