"""Tests for cycle accounting and the end-of-cycle decision policy."""

from __future__ import annotations

import pytest

from pc_controller.api import (
    ControllerState,
    CycleRecorder,
    CycleState,
    NextAction,
    Outcome,
    decide,
)


pytestmark = pytest.mark.unit_controller


def test_recorder_counts_and_freezes():
    recorder = CycleRecorder(2)
    recorder.record(Outcome.applied())
    recorder.record(Outcome.already_satisfied())
    recorder.record(Outcome.skipped("n/a"))
    recorder.record(Outcome.failed("boom"))
    recorder.mark_remaining()

    cycle = recorder.freeze(reboot_required=True)

    assert cycle.cycle_number == 2
    assert (cycle.applied, cycle.already_satisfied, cycle.skipped, cycle.failed) == (1, 1, 1, 1)
    assert cycle.remaining == 1
    assert cycle.reboot_required
    assert cycle.total == 4
    with pytest.raises(AttributeError):
        cycle.applied = 5  # type: ignore[misc]


def test_recorder_rejects_cycle_zero():
    with pytest.raises(ValueError):
        CycleRecorder(0)


def test_cycle_state_round_trips_through_dict():
    recorder = CycleRecorder(1)
    recorder.record(Outcome.failed("boom"))
    cycle = recorder.freeze(reboot_required=False)

    assert CycleState.from_dict(cycle.to_dict()) == cycle


@pytest.mark.parametrize(
    "cycle, used, expected",
    [
        (CycleState(1, already_satisfied=3), 1, NextAction.CONVERGED),
        (CycleState(1, applied=3), 1, NextAction.CONVERGED),
        (CycleState(1, applied=1, remaining=1), 1, NextAction.CONTINUE),
        (CycleState(1, failed=1), 1, NextAction.CONTINUE),
        (CycleState(5, failed=1), 5, NextAction.BUDGET_EXHAUSTED),
        (CycleState(2, applied=1, reboot_required=True), 2, NextAction.REBOOT),
        (CycleState(5, reboot_required=True), 5, NextAction.BUDGET_EXHAUSTED),
        (CycleState(5, failed=1, critical_failure="x"), 5, NextAction.FATAL_ERROR),
    ],
)
def test_decide(cycle, used, expected):
    decision = decide(cycle, cycles_used=used, max_cycles=5)
    assert decision.action is expected


def test_decision_maps_to_controller_state():
    decision = decide(CycleState(1, reboot_required=True), cycles_used=1, max_cycles=3)
    assert decision.state is ControllerState.REBOOT_REQUIRED
    assert "reboot" in decision.reason
