"""Public provisioning API surface."""

from pc_provisioner.locks import (
    CompositeProbe,
    FlockProbe,
    FuserProbe,
    LockToken,
    NullProbe,
    PidFileProbe,
    ResourceLock,
    SystemClock,
)
from pc_provisioner.platform import (
    OSFamily,
    build_contention_probe,
    build_reboot_signal,
    detect_os_family,
)
from pc_provisioner.reboot import (
    AnyRebootSignal,
    CommandSignal,
    KernelMismatchSignal,
    MarkerFileSignal,
    RegistrySignal,
    StaticRebootSignal,
    SystemRebooter,
)
from pc_provisioner.steps import CommandStep, build_steps
from pc_provisioner.utils import CommandResult, run_command

__all__ = [
    "AnyRebootSignal",
    "CommandResult",
    "CommandSignal",
    "CommandStep",
    "CompositeProbe",
    "FlockProbe",
    "FuserProbe",
    "KernelMismatchSignal",
    "LockToken",
    "MarkerFileSignal",
    "NullProbe",
    "OSFamily",
    "PidFileProbe",
    "RegistrySignal",
    "ResourceLock",
    "StaticRebootSignal",
    "SystemClock",
    "SystemRebooter",
    "build_contention_probe",
    "build_reboot_signal",
    "build_steps",
    "detect_os_family",
    "run_command",
]
