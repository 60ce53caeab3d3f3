"""Controller options and plan file models."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pc_common.config.env import (
    parse_bool_env,
    parse_float_env,
    parse_int_env,
    parse_list_env,
)

DEFAULT_MAX_CYCLES = 5
DEFAULT_LOCK_TIMEOUT = 300.0
DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_REBOOT_DELAY = 60

_ENV_PARSERS = {
    "max_cycles": ("PC_MAX_CYCLES", parse_int_env),
    "auto_reboot": ("PC_AUTO_REBOOT", parse_bool_env),
    "lock_timeout": ("PC_LOCK_TIMEOUT", parse_float_env),
    "poll_interval": ("PC_POLL_INTERVAL", parse_float_env),
    "categories": ("PC_CATEGORIES", parse_list_env),
    "state_file": ("PC_STATE_FILE", lambda value: Path(value) if value else None),
}


class ControllerOptions(BaseModel):
    """Caller-supplied knobs for a convergence run."""

    model_config = ConfigDict(extra="forbid")

    max_cycles: int = Field(default=DEFAULT_MAX_CYCLES, gt=0, description="Upper bound on convergence cycles")
    auto_reboot: bool = Field(default=False, description="Restart the machine when a reboot is pending")
    lock_timeout: float = Field(default=DEFAULT_LOCK_TIMEOUT, ge=0, description="Seconds to wait for the package manager lock")
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0, description="Seconds between lock polls")
    resource_name: str = Field(default="package-manager", description="Name of the guarded resource, used in logs and errors")
    categories: List[str] = Field(default_factory=list, description="Opaque filters passed through to steps")
    state_file: Optional[Path] = Field(default=None, description="Journal path enabling resumption across reboots")
    reboot_delay: int = Field(default=DEFAULT_REBOOT_DELAY, ge=0, description="Seconds before a scheduled restart")

    @classmethod
    def from_env(cls, base: Optional[Dict[str, Any]] = None, **overrides: Any) -> "ControllerOptions":
        """Build options from ``base`` values, PC_* env vars, then explicit overrides.

        Priority: overrides > environment > base > defaults. Overrides set to
        None are ignored so CLI flags can be passed through unconditionally.
        """
        values: Dict[str, Any] = dict(base or {})
        for key, (env_key, parser) in _ENV_PARSERS.items():
            parsed = parser(os.environ.get(env_key))
            if parsed is not None:
                values[key] = parsed
        values.update({key: val for key, val in overrides.items() if val is not None})
        return cls.model_validate(values)


class LockSpec(BaseModel):
    """How to detect contention on the package manager."""

    model_config = ConfigDict(extra="forbid")

    preset: Literal["auto", "apt", "zypper", "yum", "none"] = Field(default="auto", description="Built-in set of lock probes")
    paths: List[Path] = Field(default_factory=list, description="Extra paths checked with fuser")
    pid_files: List[Path] = Field(default_factory=list, description="Extra pid files naming a lock holder")
    guard_file: Optional[Path] = Field(default=None, description="Private file flock'ed for the duration of a cycle")


class RebootSpec(BaseModel):
    """Which pending-reboot markers to consult."""

    model_config = ConfigDict(extra="forbid")

    preset: Literal["auto", "debian", "rhel", "suse", "windows", "none"] = Field(default="auto", description="Built-in set of reboot signals")
    marker_files: List[Path] = Field(default_factory=list, description="Extra files whose presence means reboot pending")


class StepSpec(BaseModel):
    """Command-backed step declared in a plan file."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(description="Unique step identifier, stable across cycles")
    description: str = Field(default="", description="Human readable summary")
    probe: Optional[str] = Field(default=None, description="Command exiting 0 when the step is already satisfied")
    apply: str = Field(description="Command performing the change")
    critical: bool = Field(default=False, description="Abort the run when this step fails")
    skip_exit_code: Optional[int] = Field(default=None, description="Apply exit code reported as skipped")
    timeout: Optional[float] = Field(default=None, gt=0, description="Seconds before the apply command is killed")
    platforms: List[str] = Field(default_factory=list, description="Restrict the step to these platforms")
    env: Dict[str, str] = Field(default_factory=dict, description="Extra environment for probe and apply")

    @model_validator(mode="after")
    def validate_id_not_empty(self) -> "StepSpec":
        if not self.id or not self.id.strip():
            raise ValueError("StepSpec: 'id' must be non-empty")
        return self


class ProvisioningPlan(BaseModel):
    """Top-level plan file."""

    model_config = ConfigDict(extra="forbid")

    options: Dict[str, Any] = Field(default_factory=dict, description="ControllerOptions values")
    lock: LockSpec = Field(default_factory=LockSpec, description="Lock detection settings")
    reboot: RebootSpec = Field(default_factory=RebootSpec, description="Reboot detection settings")
    steps: List[StepSpec] = Field(default_factory=list, description="Ordered steps")

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "ProvisioningPlan":
        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                raise ValueError(f"Duplicate step id: {step.id}")
            seen.add(step.id)
        return self
