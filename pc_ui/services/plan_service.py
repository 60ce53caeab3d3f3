"""Load plan files and wire them into a ConvergenceController."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from pc_common.errors import ConfigurationError
from pc_controller.api import ControllerOptions, ConvergenceController, ProvisioningPlan
from pc_provisioner.api import (
    ResourceLock,
    SystemRebooter,
    build_contention_probe,
    build_reboot_signal,
    build_steps,
    detect_os_family,
)
from pc_provisioner.locks.clock import Clock
from pc_provisioner.platform import OSFamily
from pc_provisioner.utils import CommandRunner, run_command

logger = logging.getLogger(__name__)


class PlanService:
    """Resolve plan files and build controllers from them."""

    def __init__(
        self,
        *,
        runner: CommandRunner = run_command,
        clock: Optional[Clock] = None,
        family: Optional[OSFamily] = None,
    ) -> None:
        self.runner = runner
        self.clock = clock
        self._family = family

    @property
    def family(self) -> OSFamily:
        if self._family is None:
            self._family = detect_os_family()
            logger.info("Detected OS family: %s", self._family.value)
        return self._family

    def load(self, path: Path) -> ProvisioningPlan:
        """Parse a YAML or JSON plan file; raises ConfigurationError."""
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(
                f"Cannot read plan file {path}", context={"path": path}, cause=exc
            ) from exc
        raw = self._parse(text, path)
        try:
            return ProvisioningPlan.model_validate(raw)
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid plan file {path}: {exc.error_count()} error(s)",
                context={"path": path, "errors": _format_errors(exc)},
                cause=exc,
            ) from exc

    def resolve_options(
        self, plan: ProvisioningPlan, **overrides: Any
    ) -> ControllerOptions:
        try:
            return ControllerOptions.from_env(plan.options, **overrides)
        except ValidationError as exc:
            raise ConfigurationError(
                "Invalid controller options",
                context={"errors": _format_errors(exc)},
                cause=exc,
            ) from exc

    def build_controller(
        self,
        plan: ProvisioningPlan,
        options: ControllerOptions,
    ) -> ConvergenceController:
        steps = build_steps(plan.steps, categories=options.categories, runner=self.runner)
        lock = ResourceLock(
            options.resource_name,
            build_contention_probe(plan.lock, self.family),
            max_wait=options.lock_timeout,
            poll_interval=options.poll_interval,
            clock=self.clock,
        )
        reboot_signal = build_reboot_signal(plan.reboot, self.family, runner=self.runner)
        rebooter = SystemRebooter(options.reboot_delay, runner=self.runner)
        return ConvergenceController(
            steps,
            options,
            lock=lock,
            reboot_signal=reboot_signal,
            rebooter=rebooter,
        )

    @staticmethod
    def _parse(text: str, path: Path) -> Dict[str, Any]:
        try:
            if path.suffix.lower() == ".json":
                data = json.loads(text)
            else:
                data = yaml.safe_load(text)
        except (ValueError, yaml.YAMLError) as exc:
            raise ConfigurationError(
                f"Cannot parse plan file {path}", context={"path": path}, cause=exc
            ) from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Plan file {path} must contain a mapping", context={"path": path}
            )
        return data


def _format_errors(exc: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    ]
