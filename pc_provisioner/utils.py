from __future__ import annotations

import logging
import os
import subprocess
import sys
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Sequence, Union

logger = logging.getLogger(__name__)

CommandArgs = Union[str, Sequence[str]]


@dataclass(frozen=True)
class CommandResult:
    """Captured result of a finished command."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def tail(self, lines: int = 10) -> str:
        """Last lines of stderr (or stdout when stderr is empty)."""
        source = self.stderr.strip() or self.stdout.strip()
        return "\n".join(source.splitlines()[-lines:])


CommandRunner = Callable[..., CommandResult]


def run_command(
    args: CommandArgs,
    *,
    timeout: Optional[float] = None,
    env: Optional[Mapping[str, str]] = None,
) -> CommandResult:
    """
    Run a command and capture its output.

    Strings go through the platform shell (``/bin/sh`` or ``cmd``); sequences
    are executed directly. A missing executable is reported as exit code 127
    and a timeout as 124, matching the shell conventions.
    """
    merged_env = None
    if env:
        merged_env = dict(os.environ)
        merged_env.update(env)
    shell = isinstance(args, str)
    try:
        proc = subprocess.run(
            args,
            shell=shell,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=merged_env,
            check=False,
        )
    except FileNotFoundError as exc:
        logger.debug("Command not found: %s", args)
        return CommandResult(127, "", str(exc))
    except subprocess.TimeoutExpired as exc:
        logger.warning("Command timed out after %ss: %s", timeout, args)
        stdout = _decode(exc.stdout)
        stderr = _decode(exc.stderr) or f"timed out after {timeout}s"
        return CommandResult(124, stdout, stderr)
    return CommandResult(proc.returncode, proc.stdout or "", proc.stderr or "")


def current_platform() -> str:
    """Normalized platform name: linux, windows or darwin."""
    if sys.platform == "win32":
        return "windows"
    if sys.platform == "darwin":
        return "darwin"
    return "linux"


def _decode(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


__all__ = ["CommandResult", "CommandRunner", "current_platform", "run_command"]
