"""Convergence controller: repeat step cycles until nothing is left to do."""

from __future__ import annotations

import logging
import uuid
from contextlib import nullcontext
from pathlib import Path
from typing import List, Optional, Sequence

from pc_common.errors import (
    ConfigurationError,
    JournalError,
    LockError,
    LockTimeoutError,
    PCError,
    RebootError,
    error_to_payload,
    wrap_error,
)
from pc_common.logging import bound_log_context
from pc_controller.engine.cycle import CycleRecorder
from pc_controller.engine.decision import CycleDecision, NextAction, decide
from pc_controller.engine.executor import StepExecutor
from pc_controller.models.config import ControllerOptions
from pc_controller.models.state import ControllerState, ControllerStateMachine
from pc_controller.models.types import (
    CycleState,
    Outcome,
    OutcomeKind,
    RebootSignal,
    Rebooter,
    ResourceGuard,
    RunState,
    Step,
)
from pc_controller.services.journal import JournalStatus, RunJournal

logger = logging.getLogger(__name__)


class ConvergenceController:
    """Drive acquire -> run steps -> release -> reboot check, cycle after cycle."""

    def __init__(
        self,
        steps: Sequence[Step],
        options: Optional[ControllerOptions] = None,
        *,
        lock: Optional[ResourceGuard] = None,
        reboot_signal: Optional[RebootSignal] = None,
        rebooter: Optional[Rebooter] = None,
        executor: Optional[StepExecutor] = None,
        state_machine: Optional[ControllerStateMachine] = None,
        run_id: Optional[str] = None,
    ) -> None:
        self.steps: List[Step] = list(steps)
        self.options = options or ControllerOptions()
        self.lock = lock
        self.reboot_signal = reboot_signal
        self.rebooter = rebooter
        self.executor = executor or StepExecutor()
        self.state_machine = state_machine or ControllerStateMachine()
        self.run_id = run_id or f"converge-{uuid.uuid4().hex[:8]}"
        self._journal: Optional[RunJournal] = None
        self._validate()

    @property
    def step_ids(self) -> List[str]:
        return [step.id for step in self.steps]

    @property
    def _resource_name(self) -> str:
        return getattr(self.lock, "resource_name", None) or self.options.resource_name

    def run(self) -> RunState:
        """Execute cycles until converged, out of budget, fatal, or reboot-bound."""
        if self.state_machine.state is not ControllerState.IDLE:
            raise RuntimeError("ConvergenceController.run() may only be called once")

        self._journal, prior = self._open_journal()
        state = RunState(
            max_cycles=self.options.max_cycles,
            run_id=self.run_id,
            cycles=list(prior),
            prior_cycles=len(prior),
        )
        with bound_log_context(run_id=self.run_id):
            logger.info(
                "Starting convergence run %s: %d steps, max %d cycles (%d already used)",
                self.run_id,
                len(self.steps),
                self.options.max_cycles,
                state.prior_cycles,
            )
            if state.cycles_used >= self.options.max_cycles:
                return self._finish(
                    state,
                    ControllerState.BUDGET_EXHAUSTED,
                    f"{state.cycles_used}/{self.options.max_cycles} cycles already used",
                )
            return self._loop(state)

    def _loop(self, state: RunState) -> RunState:
        while True:
            cycle_number = state.cycles_used + 1
            self.state_machine.start_cycle(cycle_number)
            try:
                cycle = self._run_cycle(cycle_number)
            except (LockTimeoutError, LockError) as exc:
                return self._finish(state, ControllerState.FATAL_ERROR, str(exc), error=exc)
            except OSError as exc:
                error = wrap_error(
                    LockError,
                    f"Failed to hold {self._resource_name}: {exc}",
                    context={"resource": self._resource_name},
                    cause=exc,
                )
                return self._finish(state, ControllerState.FATAL_ERROR, str(error), error=error)

            state.cycles.append(cycle)
            state.reboot_pending = cycle.reboot_required
            decision = decide(
                cycle,
                cycles_used=state.cycles_used,
                max_cycles=self.options.max_cycles,
            )
            logger.info("Cycle %d decision: %s (%s)", cycle_number, decision.action.value, decision.reason)

            if decision.action is NextAction.CONTINUE:
                self._save_journal(state, JournalStatus.RUNNING)
                continue
            if decision.action is NextAction.REBOOT:
                return self._handle_reboot(state, decision)
            return self._finish(state, decision.state, decision.reason)

    def _run_cycle(self, cycle_number: int) -> CycleState:
        recorder = CycleRecorder(cycle_number)
        with bound_log_context(cycle=cycle_number):
            logger.info("Cycle %d/%d starting", cycle_number, self.options.max_cycles)
            guard = self.lock.acquire() if self.lock is not None else nullcontext()
            with guard:
                self._run_steps(recorder)
            # Lock is released before the reboot check.
            reboot_required = self._reboot_required()
            cycle = recorder.freeze(reboot_required=reboot_required)
            self._log_cycle(cycle)
        return cycle

    def _run_steps(self, recorder: CycleRecorder) -> None:
        applied: List[Step] = []
        for index, step in enumerate(self.steps):
            outcome = self.executor.execute(step)
            recorder.record(outcome)
            if outcome.kind is OutcomeKind.APPLIED:
                applied.append(step)
            if outcome.is_failure and step.critical:
                recorder.mark_critical_failure(step.id)
                self._skip_rest(recorder, self.steps[index + 1 :], step.id)
                return

        for step in applied:
            if not self.executor.verify(step):
                logger.info("Step %s still reports pending work", step.id)
                recorder.mark_remaining()

    @staticmethod
    def _skip_rest(recorder: CycleRecorder, rest: Sequence[Step], failed_id: str) -> None:
        for step in rest:
            recorder.record(
                Outcome(
                    OutcomeKind.SKIPPED,
                    f"not run: critical step {failed_id} failed",
                    step_id=step.id,
                )
            )

    def _reboot_required(self) -> bool:
        if self.reboot_signal is None:
            return False
        try:
            return bool(self.reboot_signal.is_reboot_required())
        except Exception as exc:
            logger.warning("Reboot check failed, assuming no reboot pending: %s", exc)
            return False

    def _handle_reboot(self, state: RunState, decision: CycleDecision) -> RunState:
        saved = self._save_journal(state, JournalStatus.REBOOT_PENDING)
        if not self.options.auto_reboot:
            logger.warning("Reboot required but auto-reboot is disabled; re-run after rebooting")
            return self._finish(state, ControllerState.REBOOT_REQUIRED, decision.reason)
        if not saved:
            logger.error("Run journal not saved; leaving the reboot to the caller")
            return self._finish(state, ControllerState.REBOOT_REQUIRED, decision.reason)

        try:
            self.rebooter.reboot(f"packer-converge {self.run_id}: {decision.reason}")
        except RebootError as exc:
            return self._finish(state, ControllerState.FATAL_ERROR, str(exc), error=exc)
        state.reboot_initiated = True
        return self._finish(state, ControllerState.REBOOT_REQUIRED, decision.reason)

    def _finish(
        self,
        state: RunState,
        final: ControllerState,
        reason: str,
        error: Optional[PCError] = None,
    ) -> RunState:
        self.state_machine.transition(final, reason=reason)
        state.termination_reason = self.state_machine.termination_reason()
        if error is not None:
            state.error = error_to_payload(error)
        status = (
            JournalStatus.REBOOT_PENDING
            if final is ControllerState.REBOOT_REQUIRED
            else JournalStatus.COMPLETED
        )
        self._save_journal(state, status)
        self._log_summary(state, reason)
        return state

    def _open_journal(self) -> tuple[Optional[RunJournal], List[CycleState]]:
        path = self.options.state_file
        if path is None:
            return None, []
        try:
            existing = RunJournal.load_if_exists(path)
        except JournalError as exc:
            logger.warning("Ignoring unreadable run journal %s: %s", path, exc)
            existing = None

        if existing is not None and existing.resumable and existing.matches(self.step_ids):
            prior = existing.prior_cycles()
            if len(prior) != existing.cycles_used:
                logger.warning(
                    "Run journal %s lists %d cycles but records %d as used",
                    path,
                    len(prior),
                    existing.cycles_used,
                )
            logger.info(
                "Resuming run %s after reboot (%d cycles used)",
                existing.run_id,
                len(prior),
            )
            self.run_id = existing.run_id
            existing.max_cycles = self.options.max_cycles
            existing.status = JournalStatus.RUNNING
            return existing, prior
        if existing is not None and existing.resumable:
            logger.warning("Run journal %s was written for a different step set; starting over", path)
        return RunJournal.initialize(self.run_id, self.options.max_cycles, self.step_ids), []

    def _save_journal(self, state: RunState, status: str) -> bool:
        """Persist progress; a write failure is logged and kept in ``state.error``."""
        if self._journal is None or self.options.state_file is None:
            return False
        self._journal.record(state, status)
        try:
            self._journal.save(Path(self.options.state_file))
        except JournalError as exc:
            logger.warning("Run journal not saved: %s", exc)
            if state.error is None:
                state.error = error_to_payload(exc)
            return False
        return True

    def _validate(self) -> None:
        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                raise ConfigurationError(
                    f"Duplicate step id: {step.id}", context={"step": step.id}
                )
            seen.add(step.id)
        if self.options.auto_reboot and self.rebooter is None:
            raise ConfigurationError("auto_reboot requires a rebooter")

    @staticmethod
    def _log_cycle(cycle: CycleState) -> None:
        logger.info(
            "Cycle %d complete: applied=%d already_satisfied=%d skipped=%d failed=%d "
            "remaining=%d reboot_required=%s",
            cycle.cycle_number,
            cycle.applied,
            cycle.already_satisfied,
            cycle.skipped,
            cycle.failed,
            cycle.remaining,
            cycle.reboot_required,
        )

    @staticmethod
    def _log_summary(state: RunState, reason: str) -> None:
        summary = state.summary()
        level = logging.INFO if state.converged else logging.WARNING
        logger.log(level, "==============================================")
        logger.log(level, "Convergence Summary")
        logger.log(level, "==============================================")
        logger.log(level, "Result: %s (%s)", summary["termination_reason"], reason)
        logger.log(level, "Cycles used: %d/%d", summary["cycles_used"], summary["max_cycles"])
        logger.log(level, "Configurations applied: %d", summary["applied"])
        logger.log(level, "Already satisfied: %d", summary["already_satisfied"])
        logger.log(level, "Skipped: %d", summary["skipped"])
        logger.log(level, "Configurations failed: %d", summary["failed"])
        logger.log(level, "Reboot pending: %s", "YES" if summary["reboot_pending"] else "NO")
        logger.log(level, "==============================================")
