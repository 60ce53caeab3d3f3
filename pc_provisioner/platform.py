"""Pick lock probes and reboot signals for the running OS family."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pc_controller.models.config import LockSpec, RebootSpec
from pc_controller.models.types import RebootSignal
from pc_provisioner.locks.probes import (
    APT_LOCK_PATHS,
    YUM_PID_FILE,
    ZYPPER_PID_FILE,
    CompositeProbe,
    ContentionProbe,
    FlockProbe,
    FuserProbe,
    NullProbe,
    PidFileProbe,
)
from pc_provisioner.reboot.signals import (
    AnyRebootSignal,
    CommandSignal,
    KernelMismatchSignal,
    MarkerFileSignal,
    RegistrySignal,
    StaticRebootSignal,
)
from pc_provisioner.utils import CommandRunner, current_platform, run_command

logger = logging.getLogger(__name__)

OS_RELEASE = Path("/etc/os-release")
SUSE_KERNEL_QUERY = ("rpm", "-q", "kernel-default", "--last")


class OSFamily(str, Enum):
    DEBIAN = "debian"
    RHEL = "rhel"
    SUSE = "suse"
    WINDOWS = "windows"
    UNKNOWN = "unknown"


_FAMILY_IDS = {
    OSFamily.DEBIAN: {"debian", "ubuntu"},
    OSFamily.RHEL: {"rhel", "centos", "fedora", "rocky", "almalinux", "ol", "amzn"},
    OSFamily.SUSE: {"suse", "sles", "opensuse", "opensuse-leap", "opensuse-tumbleweed"},
}

_LOCK_PRESET_FAMILY = {"apt": OSFamily.DEBIAN, "zypper": OSFamily.SUSE, "yum": OSFamily.RHEL}


def parse_os_release(text: str) -> Dict[str, str]:
    """Parse /etc/os-release KEY=value lines."""
    values: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, raw = line.split("=", 1)
        values[key.strip()] = raw.strip().strip('"').strip("'")
    return values


def detect_os_family(
    os_release: Path = OS_RELEASE, platform_name: Optional[str] = None
) -> OSFamily:
    if (platform_name or current_platform()) == "windows":
        return OSFamily.WINDOWS
    try:
        values = parse_os_release(os_release.read_text(encoding="utf-8"))
    except OSError:
        return OSFamily.UNKNOWN
    ids = {values.get("ID", "").lower()}
    ids.update(values.get("ID_LIKE", "").lower().split())
    for family, known in _FAMILY_IDS.items():
        if ids & known:
            return family
    return OSFamily.UNKNOWN


def build_contention_probe(spec: LockSpec, family: OSFamily) -> ContentionProbe:
    """Translate a LockSpec into a (possibly composite) contention probe."""
    if spec.preset == "none":
        target = None
    elif spec.preset == "auto":
        target = family
    else:
        target = _LOCK_PRESET_FAMILY[spec.preset]

    probes: List[ContentionProbe] = []
    if target is OSFamily.DEBIAN:
        probes.append(FuserProbe(APT_LOCK_PATHS))
    elif target is OSFamily.SUSE:
        probes.append(PidFileProbe(ZYPPER_PID_FILE))
    elif target is OSFamily.RHEL:
        probes.append(PidFileProbe(YUM_PID_FILE))

    if spec.paths:
        probes.append(FuserProbe(spec.paths))
    probes.extend(PidFileProbe(path) for path in spec.pid_files)
    if spec.guard_file is not None:
        probes.append(FlockProbe(spec.guard_file))

    if not probes:
        return NullProbe()
    if len(probes) == 1:
        return probes[0]
    return CompositeProbe(probes)


def build_reboot_signal(
    spec: RebootSpec,
    family: OSFamily,
    *,
    runner: CommandRunner = run_command,
) -> RebootSignal:
    """Translate a RebootSpec into an OR-combined reboot signal."""
    target = family if spec.preset == "auto" else spec.preset
    if target == "none":
        target = None
    elif target is not None:
        target = OSFamily(target)

    signals: List[RebootSignal] = []
    if target is OSFamily.DEBIAN:
        signals.append(MarkerFileSignal())
    elif target is OSFamily.RHEL:
        signals.append(KernelMismatchSignal(runner=runner))
        signals.append(MarkerFileSignal(packages_file=None))
        signals.append(CommandSignal(["needs-restarting", "-r"], pending_exit_code=1, runner=runner))
    elif target is OSFamily.SUSE:
        signals.append(
            KernelMismatchSignal(SUSE_KERNEL_QUERY, prefix="kernel-default-", runner=runner)
        )
        signals.append(CommandSignal(["zypper", "ps", "-s"], pending_pattern="reboot-required", runner=runner))
    elif target is OSFamily.WINDOWS:
        signals.append(RegistrySignal())

    if spec.marker_files:
        signals.append(MarkerFileSignal(spec.marker_files, packages_file=None))

    if not signals:
        return StaticRebootSignal(False)
    if len(signals) == 1:
        return signals[0]
    return AnyRebootSignal(signals)
