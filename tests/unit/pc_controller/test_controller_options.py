from pathlib import Path

import pytest
from pydantic import ValidationError

from pc_controller.api import ControllerOptions, ProvisioningPlan, StepSpec


pytestmark = pytest.mark.unit_controller


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in (
        "PC_MAX_CYCLES",
        "PC_AUTO_REBOOT",
        "PC_LOCK_TIMEOUT",
        "PC_POLL_INTERVAL",
        "PC_CATEGORIES",
        "PC_STATE_FILE",
    ):
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    options = ControllerOptions()
    assert options.max_cycles == 5
    assert options.auto_reboot is False
    assert options.lock_timeout == 300
    assert options.poll_interval == 5
    assert options.categories == []
    assert options.state_file is None


def test_max_cycles_must_be_positive():
    with pytest.raises(ValidationError):
        ControllerOptions(max_cycles=0)


def test_unknown_option_rejected():
    with pytest.raises(ValidationError):
        ControllerOptions(max_cycle=3)


def test_from_env_priority(monkeypatch):
    monkeypatch.setenv("PC_MAX_CYCLES", "7")
    monkeypatch.setenv("PC_AUTO_REBOOT", "yes")
    monkeypatch.setenv("PC_CATEGORIES", "Critical, Important,")
    monkeypatch.setenv("PC_STATE_FILE", "/var/lib/pc/journal.json")

    options = ControllerOptions.from_env({"max_cycles": 2, "lock_timeout": 10}, max_cycles=9, poll_interval=None)

    assert options.max_cycles == 9
    assert options.auto_reboot is True
    assert options.lock_timeout == 10
    assert options.poll_interval == 5
    assert options.categories == ["Critical", "Important"]
    assert options.state_file == Path("/var/lib/pc/journal.json")


def test_from_env_ignores_unparseable_numbers(monkeypatch):
    monkeypatch.setenv("PC_MAX_CYCLES", "many")
    assert ControllerOptions.from_env({"max_cycles": 3}).max_cycles == 3


def test_plan_rejects_duplicate_ids():
    with pytest.raises(ValidationError):
        ProvisioningPlan(steps=[{"id": "a", "apply": "true"}, {"id": "a", "apply": "true"}])


def test_step_requires_non_blank_id():
    with pytest.raises(ValidationError):
        StepSpec(id="  ", apply="true")


def test_plan_defaults():
    plan = ProvisioningPlan.model_validate({"steps": [{"id": "a", "apply": "true"}]})
    assert plan.lock.preset == "auto"
    assert plan.reboot.preset == "auto"
    assert plan.steps[0].critical is False
