"""Pending-reboot detection backed by OS-specific markers."""

from __future__ import annotations

import logging
import platform
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from pc_controller.models.types import RebootSignal
from pc_provisioner.utils import CommandRunner, run_command

logger = logging.getLogger(__name__)

DEBIAN_REBOOT_MARKER = Path("/var/run/reboot-required")
DEBIAN_REBOOT_PACKAGES = Path("/var/run/reboot-required.pkgs")

# (hive, subkey, value); value None means "the key existing is enough".
WINDOWS_REBOOT_KEYS: Tuple[Tuple[str, str, Optional[str]], ...] = (
    (
        "HKEY_LOCAL_MACHINE",
        r"SOFTWARE\Microsoft\Windows\CurrentVersion\Component Based Servicing\RebootPending",
        None,
    ),
    (
        "HKEY_LOCAL_MACHINE",
        r"SOFTWARE\Microsoft\Windows\CurrentVersion\WindowsUpdate\Auto Update\RebootRequired",
        None,
    ),
    (
        "HKEY_LOCAL_MACHINE",
        r"SYSTEM\CurrentControlSet\Control\Session Manager",
        "PendingFileRenameOperations",
    ),
)


class StaticRebootSignal:
    """Fixed answer, for callers that already know."""

    def __init__(self, value: bool = False) -> None:
        self.value = value

    def is_reboot_required(self) -> bool:
        return self.value


class MarkerFileSignal:
    """Reboot pending while any marker file exists."""

    def __init__(
        self,
        markers: Iterable[Path] = (DEBIAN_REBOOT_MARKER,),
        packages_file: Optional[Path] = DEBIAN_REBOOT_PACKAGES,
    ) -> None:
        self.markers = [Path(m) for m in markers]
        self.packages_file = Path(packages_file) if packages_file else None

    def is_reboot_required(self) -> bool:
        for marker in self.markers:
            if marker.exists():
                logger.info("Reboot marker present: %s", marker)
                return True
        return False

    def packages(self) -> List[str]:
        """Packages that asked for the reboot, when the OS lists them."""
        if self.packages_file is None or not self.packages_file.exists():
            return []
        text = self.packages_file.read_text(encoding="utf-8", errors="replace")
        return [line.strip() for line in text.splitlines() if line.strip()]


class KernelMismatchSignal:
    """Reboot pending when the newest installed kernel is not the running one."""

    def __init__(
        self,
        query: Sequence[str] = ("rpm", "-q", "kernel", "--last"),
        *,
        prefix: str = "kernel-",
        runner: CommandRunner = run_command,
        running_kernel: Optional[str] = None,
    ) -> None:
        self.query = list(query)
        self.prefix = prefix
        self.runner = runner
        self.running_kernel = running_kernel

    def is_reboot_required(self) -> bool:
        result = self.runner(self.query, timeout=30)
        if not result.ok or not result.stdout.strip():
            return False
        newest = result.stdout.strip().splitlines()[0].split()[0]
        if self.prefix and newest.startswith(self.prefix):
            newest = newest[len(self.prefix):]
        running = self.running_kernel or platform.release()
        if newest != running:
            logger.info("Kernel updated from %s to %s", running, newest)
            return True
        return False


class CommandSignal:
    """Reboot pending according to a helper command.

    With ``pending_exit_code`` set the exit status decides (``needs-restarting
    -r`` exits 1 when a reboot is needed). With ``pending_pattern`` set the
    output is searched instead (``zypper ps -s`` prints "reboot-required").
    """

    def __init__(
        self,
        command: Sequence[str],
        *,
        pending_exit_code: Optional[int] = None,
        pending_pattern: Optional[str] = None,
        runner: CommandRunner = run_command,
    ) -> None:
        if pending_exit_code is None and pending_pattern is None:
            raise ValueError("CommandSignal needs pending_exit_code or pending_pattern")
        self.command = list(command)
        self.pending_exit_code = pending_exit_code
        self.pending_pattern = pending_pattern
        self.runner = runner

    def is_reboot_required(self) -> bool:
        result = self.runner(self.command, timeout=60)
        if result.returncode == 127:
            logger.debug("%s not available", self.command[0])
            return False
        if self.pending_exit_code is not None and result.returncode == self.pending_exit_code:
            return True
        if self.pending_pattern is not None:
            return self.pending_pattern in result.stdout
        return False


class RegistrySignal:
    """Windows pending-reboot registry locations, OR-combined."""

    def __init__(
        self,
        keys: Sequence[Tuple[str, str, Optional[str]]] = WINDOWS_REBOOT_KEYS,
        *,
        registry=None,
    ) -> None:
        self.keys = list(keys)
        self._registry = registry

    def is_reboot_required(self) -> bool:
        winreg = self._registry or _load_winreg()
        if winreg is None:
            return False
        for hive_name, subkey, value_name in self.keys:
            hive = getattr(winreg, hive_name)
            if _registry_entry_present(winreg, hive, subkey, value_name):
                logger.info("Pending reboot registry entry: %s\\%s", hive_name, subkey)
                return True
        return False


class AnyRebootSignal:
    """Reboot pending when any member says so; failing members count as no."""

    def __init__(self, signals: Sequence[RebootSignal]) -> None:
        self.signals = list(signals)

    def is_reboot_required(self) -> bool:
        for signal in self.signals:
            try:
                if signal.is_reboot_required():
                    return True
            except Exception as exc:
                logger.warning("Reboot check %s failed: %s", type(signal).__name__, exc)
        return False


def _load_winreg():
    try:
        import winreg
    except ImportError:
        logger.debug("winreg unavailable; registry reboot check disabled")
        return None
    return winreg


def _registry_entry_present(winreg, hive, subkey: str, value_name: Optional[str]) -> bool:
    try:
        with winreg.OpenKey(hive, subkey) as key:
            if value_name is None:
                return True
            value, _ = winreg.QueryValueEx(key, value_name)
            return bool(value)
    except OSError:
        return False
