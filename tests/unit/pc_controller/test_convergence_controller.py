"""Unit tests for the ConvergenceController loop."""

from __future__ import annotations

import sys

import pytest

from pc_common.errors import ConfigurationError, RebootError
from pc_controller.api import (
    ControllerOptions,
    ControllerState,
    ConvergenceController,
    Outcome,
    OutcomeKind,
    TerminationReason,
)
from pc_provisioner.locks import FlockProbe, ResourceLock
from tests.helpers.fakes import (
    FakeClock,
    FakeProbe,
    RecordingRebooter,
    ScriptedStep,
    SequenceSignal,
)


pytestmark = pytest.mark.unit_controller


def make_controller(steps, signal=None, rebooter=None, lock=None, **options):
    return ConvergenceController(
        steps,
        ControllerOptions(**options),
        lock=lock,
        reboot_signal=signal or SequenceSignal([False]),
        rebooter=rebooter,
    )


def test_three_installs_converge_in_one_cycle():
    steps = [ScriptedStep(f"pkg-{i}", satisfy_on_apply=True) for i in range(3)]
    controller = make_controller(steps)

    state = controller.run()

    assert state.termination_reason is TerminationReason.CONVERGED
    assert state.converged
    assert state.cycles_used == 1
    cycle = state.cycles[0]
    assert (cycle.applied, cycle.failed, cycle.remaining) == (3, 0, 0)
    assert state.exit_code == 0


def test_second_run_is_idempotent():
    steps = [ScriptedStep(f"pkg-{i}", satisfy_on_apply=True) for i in range(3)]
    make_controller(steps).run()

    second = make_controller(steps).run()

    assert second.converged
    assert second.applied == 0
    assert second.already_satisfied == 3
    assert all(step.apply_calls == 1 for step in steps)


def test_never_converging_step_exhausts_budget_exactly():
    broken = ScriptedStep("broken-update", probes=[False])
    controller = make_controller([broken], max_cycles=2)

    state = controller.run()

    assert state.termination_reason is TerminationReason.BUDGET_EXHAUSTED
    assert state.cycles_used == 2
    assert broken.apply_calls == 2
    assert state.exit_code == 2


@pytest.mark.parametrize("max_cycles", [1, 3, 5])
def test_budget_is_never_exceeded(max_cycles):
    state = make_controller(
        [ScriptedStep("a"), ScriptedStep("b", error=RuntimeError("nope"))],
        max_cycles=max_cycles,
    ).run()

    assert state.cycles_used == max_cycles
    assert state.termination_reason is TerminationReason.BUDGET_EXHAUSTED


def test_failure_is_isolated_and_reboot_still_checked():
    failing = ScriptedStep("a", error=RuntimeError("dpkg exploded"))
    succeeding = ScriptedStep("b", satisfy_on_apply=True)
    signal = SequenceSignal([False])
    controller = make_controller([failing, succeeding], signal=signal, max_cycles=1)

    state = controller.run()

    cycle = state.cycles[0]
    assert cycle.applied == 1
    assert cycle.failed == 1
    assert signal.calls == 1
    failed = [o for o in cycle.outcomes if o.kind is OutcomeKind.FAILED]
    assert failed[0].step_id == "a"
    assert "dpkg exploded" in failed[0].reason


def test_counts_are_conserved_every_cycle():
    steps = [
        ScriptedStep("satisfied", probes=[True]),
        ScriptedStep("skipper", result=Outcome.skipped("not on this platform")),
        ScriptedStep("fails", error=ValueError("bad")),
        ScriptedStep("applies", satisfy_on_apply=True),
    ]
    state = make_controller(steps, max_cycles=3).run()

    assert len(state.cycles) == 3
    for cycle in state.cycles:
        assert cycle.total == len(steps)


def test_skipped_steps_do_not_block_convergence():
    steps = [
        ScriptedStep("windows-only", result=Outcome.skipped("not windows")),
        ScriptedStep("installed", probes=[True]),
    ]
    state = make_controller(steps).run()

    assert state.converged
    assert state.cycles[0].skipped == 1


def test_upgrade_exposing_more_work_runs_another_cycle():
    # Probe order: initial check, post-cycle verification, second-cycle check.
    upgrade = ScriptedStep("dist-upgrade", probes=[False, False, True])
    state = make_controller([upgrade]).run()

    assert state.converged
    assert state.cycles_used == 2
    assert state.cycles[0].remaining == 1
    assert state.cycles[1].already_satisfied == 1


def test_critical_failure_is_fatal_and_skips_the_rest():
    later = ScriptedStep("later")
    steps = [
        ScriptedStep("first", satisfy_on_apply=True),
        ScriptedStep("register", error=RuntimeError("no subscription"), critical=True),
        later,
    ]
    state = make_controller(steps).run()

    assert state.termination_reason is TerminationReason.FATAL_ERROR
    assert state.cycles_used == 1
    cycle = state.cycles[0]
    assert cycle.critical_failure == "register"
    assert cycle.total == 3
    assert cycle.skipped == 1
    assert later.apply_calls == 0
    assert state.exit_code == 1


def test_lock_timeout_is_fatal():
    clock = FakeClock()
    lock = ResourceLock(
        "apt", FakeProbe(busy_polls=float("inf")), max_wait=30, poll_interval=5, clock=clock
    )
    step = ScriptedStep("a")
    controller = make_controller([step], lock=lock)

    state = controller.run()

    assert state.termination_reason is TerminationReason.FATAL_ERROR
    assert state.cycles_used == 0
    assert state.error["error_type"] == "LockTimeoutError"
    assert state.error["error_context"]["resource"] == "apt"
    assert step.probe_calls == 0


@pytest.mark.skipif(sys.platform == "win32", reason="flock is POSIX only")
def test_unusable_guard_file_is_fatal(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    lock = ResourceLock("guard", FlockProbe(blocker / "guard.lock"), clock=FakeClock())
    step = ScriptedStep("a")

    state = make_controller([step], lock=lock).run()

    assert state.termination_reason is TerminationReason.FATAL_ERROR
    assert state.exit_code == 1
    assert state.cycles_used == 0
    assert state.error["error_type"] == "LockError"
    assert state.error["error_context"]["action"] == "claim"
    assert step.probe_calls == 0


def test_failing_release_is_fatal():
    class StuckRelease(FakeProbe):
        def release(self):
            raise PermissionError("read-only guard")

    lock = ResourceLock("apt", StuckRelease(), clock=FakeClock())

    state = make_controller([ScriptedStep("a", probes=[True])], lock=lock).run()

    assert state.termination_reason is TerminationReason.FATAL_ERROR
    assert state.error["error_type"] == "LockError"
    assert state.error["error_context"]["action"] == "release"


def test_os_error_from_custom_guard_is_fatal():
    class BrokenGuard:
        resource_name = "dpkg"

        def acquire(self):
            raise OSError("guard unavailable")

    state = make_controller([ScriptedStep("a")], lock=BrokenGuard()).run()

    assert state.termination_reason is TerminationReason.FATAL_ERROR
    assert state.error["error_type"] == "LockError"
    assert state.error["error_context"]["resource"] == "dpkg"


def test_lock_is_released_before_reboot_check():
    probe = FakeProbe()
    lock = ResourceLock("apt", probe, clock=FakeClock())

    class CheckingSignal:
        released_at_check = None

        def is_reboot_required(self):
            CheckingSignal.released_at_check = probe.releases == probe.claims
            return False

    make_controller([ScriptedStep("a", probes=[True])], signal=CheckingSignal(), lock=lock).run()

    assert CheckingSignal.released_at_check is True


def test_reboot_required_without_auto_reboot_stops():
    step = ScriptedStep("kernel", satisfy_on_apply=True)
    state = make_controller([step], signal=SequenceSignal([True])).run()

    assert state.termination_reason is TerminationReason.REBOOT_REQUIRED
    assert state.reboot_pending
    assert not state.reboot_initiated
    assert state.exit_code == 3


def test_auto_reboot_schedules_restart():
    rebooter = RecordingRebooter()
    step = ScriptedStep("kernel", satisfy_on_apply=True)
    controller = make_controller(
        [step], signal=SequenceSignal([True]), rebooter=rebooter, auto_reboot=True
    )

    state = controller.run()

    assert state.termination_reason is TerminationReason.REBOOT_REQUIRED
    assert state.reboot_initiated
    assert len(rebooter.reasons) == 1
    assert controller.run_id in rebooter.reasons[0]


def test_reboot_failure_is_fatal():
    rebooter = RecordingRebooter(error=RebootError("shutdown missing"))
    state = make_controller(
        [ScriptedStep("a", satisfy_on_apply=True)],
        signal=SequenceSignal([True]),
        rebooter=rebooter,
        auto_reboot=True,
    ).run()

    assert state.termination_reason is TerminationReason.FATAL_ERROR
    assert state.error["error_type"] == "RebootError"


def test_pending_reboot_on_last_cycle_exhausts_budget():
    state = make_controller(
        [ScriptedStep("a", satisfy_on_apply=True)],
        signal=SequenceSignal([True]),
        max_cycles=1,
    ).run()

    assert state.termination_reason is TerminationReason.BUDGET_EXHAUSTED
    assert state.reboot_pending


def test_reboot_signal_error_counts_as_not_pending():
    class BrokenSignal:
        def is_reboot_required(self):
            raise OSError("registry unavailable")

    state = make_controller([ScriptedStep("a", probes=[True])], signal=BrokenSignal()).run()

    assert state.converged


def test_duplicate_step_ids_rejected():
    with pytest.raises(ConfigurationError):
        make_controller([ScriptedStep("dup"), ScriptedStep("dup")])


def test_auto_reboot_requires_rebooter():
    with pytest.raises(ConfigurationError):
        make_controller([ScriptedStep("a")], auto_reboot=True)


def test_run_can_only_be_called_once():
    controller = make_controller([ScriptedStep("a", probes=[True])])
    controller.run()
    assert controller.state_machine.state is ControllerState.CONVERGED
    with pytest.raises(RuntimeError):
        controller.run()


def test_empty_step_list_converges():
    state = make_controller([]).run()
    assert state.converged
    assert state.cycles[0].total == 0


def test_summary_reports_totals():
    steps = [ScriptedStep("a", satisfy_on_apply=True), ScriptedStep("b", probes=[True])]
    summary = make_controller(steps).run().summary()

    assert summary["termination_reason"] == "converged"
    assert summary["cycles_used"] == 1
    assert summary["applied"] == 1
    assert summary["already_satisfied"] == 1
    assert summary["reboot_pending"] is False
    assert summary["cycles"][0]["outcomes"][0]["step_id"] == "a"
