import pytest

from pc_controller.api import ControllerState, ControllerStateMachine, TerminationReason


pytestmark = pytest.mark.unit_controller


def test_valid_transitions():
    sm = ControllerStateMachine()
    assert sm.state == ControllerState.IDLE

    sm.start_cycle(1)
    assert sm.state == ControllerState.RUNNING
    assert sm.cycle == 1

    sm.start_cycle(2)
    assert sm.cycle == 2

    sm.transition(ControllerState.CONVERGED, reason="nothing left")
    assert sm.is_terminal()
    assert sm.termination_reason() is TerminationReason.CONVERGED


def test_invalid_transition_raises():
    sm = ControllerStateMachine()
    with pytest.raises(ValueError):
        sm.transition(ControllerState.CONVERGED)


def test_terminal_state_is_final():
    sm = ControllerStateMachine()
    sm.start_cycle(1)
    sm.transition(ControllerState.REBOOT_REQUIRED)
    with pytest.raises(ValueError):
        sm.start_cycle(2)
    with pytest.raises(ValueError):
        sm.transition(ControllerState.FATAL_ERROR)


def test_fatal_error_allowed_from_idle():
    sm = ControllerStateMachine()
    sm.transition(ControllerState.FATAL_ERROR, reason="boom")
    assert sm.reason == "boom"
    assert sm.termination_reason() is TerminationReason.FATAL_ERROR

