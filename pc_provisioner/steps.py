"""Command-backed steps declared in plan files."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from pc_common.errors import StepCommandError
from pc_controller.models.config import StepSpec
from pc_controller.models.types import Outcome
from pc_provisioner.utils import CommandRunner, current_platform, run_command

logger = logging.getLogger(__name__)


class CommandStep:
    """Step whose probe and apply are shell commands.

    The probe is satisfied when its command exits 0; a step without a probe
    is never satisfied. ``apply`` exit 0 means applied, ``skip_exit_code``
    means skipped, anything else raises StepCommandError.
    """

    def __init__(
        self,
        spec: StepSpec,
        *,
        categories: Optional[List[str]] = None,
        runner: CommandRunner = run_command,
        platform_name: Optional[str] = None,
    ) -> None:
        self.spec = spec
        self.id = spec.id
        self.critical = spec.critical
        self.description = spec.description
        self.runner = runner
        self.platform_name = platform_name or current_platform()
        self._env = self._build_env(categories or [])

    @property
    def applicable(self) -> bool:
        return not self.spec.platforms or self.platform_name in self.spec.platforms

    def probe(self) -> bool:
        if not self.applicable or not self.spec.probe:
            return False
        return self.runner(self.spec.probe, timeout=self.spec.timeout, env=self._env).ok

    def apply(self) -> Optional[Outcome]:
        if not self.applicable:
            return Outcome.skipped(f"not applicable on {self.platform_name}")
        result = self.runner(self.spec.apply, timeout=self.spec.timeout, env=self._env)
        if result.ok:
            return None
        if self.spec.skip_exit_code is not None and result.returncode == self.spec.skip_exit_code:
            return Outcome.skipped(result.tail(1) or f"exit code {result.returncode}")
        raise StepCommandError(
            f"exit code {result.returncode}: {result.tail(3)}".rstrip(": "),
            context={"step": self.id, "returncode": result.returncode},
        )

    def _build_env(self, categories: List[str]) -> Dict[str, str]:
        env = dict(self.spec.env)
        env["PC_STEP_ID"] = self.id
        env["PC_CATEGORIES"] = ",".join(categories)
        return env

    def __repr__(self) -> str:
        return f"CommandStep(id={self.id!r}, critical={self.critical})"


def build_steps(
    specs: List[StepSpec],
    *,
    categories: Optional[List[str]] = None,
    runner: CommandRunner = run_command,
    platform_name: Optional[str] = None,
) -> List[CommandStep]:
    return [
        CommandStep(spec, categories=categories, runner=runner, platform_name=platform_name)
        for spec in specs
    ]
