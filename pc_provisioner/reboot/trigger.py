"""Schedule a machine restart."""

from __future__ import annotations

import logging
import math
from typing import List, Optional

from pc_common.errors import RebootError
from pc_provisioner.utils import CommandRunner, current_platform, run_command

logger = logging.getLogger(__name__)


class SystemRebooter:
    """Schedule a delayed restart with the platform ``shutdown`` command."""

    def __init__(
        self,
        delay_seconds: int = 60,
        *,
        runner: CommandRunner = run_command,
        platform_name: Optional[str] = None,
    ) -> None:
        self.delay_seconds = max(0, int(delay_seconds))
        self.runner = runner
        self.platform_name = platform_name or current_platform()

    def command(self, reason: str) -> List[str]:
        if self.platform_name == "windows":
            return ["shutdown", "/r", "/t", str(self.delay_seconds), "/c", reason]
        # shutdown(8) schedules in whole minutes.
        minutes = math.ceil(self.delay_seconds / 60)
        when = "now" if minutes == 0 else f"+{minutes}"
        return ["shutdown", "-r", when, reason]

    def reboot(self, reason: str) -> None:
        cmd = self.command(reason)
        logger.warning("Scheduling reboot: %s", " ".join(cmd[:-1]))
        result = self.runner(cmd, timeout=30)
        if not result.ok:
            raise RebootError(
                "Failed to schedule reboot",
                context={"command": cmd, "returncode": result.returncode, "stderr": result.tail()},
            )
        logger.info("Reboot scheduled; cancel with: %s", self.cancel_hint())

    def cancel_hint(self) -> str:
        return "shutdown /a" if self.platform_name == "windows" else "shutdown -c"

