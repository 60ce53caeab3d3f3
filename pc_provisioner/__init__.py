"""Platform pieces for packer-converge: locks, reboot signals, command steps."""

from pc_provisioner.api import (  # noqa: F401
    CommandStep,
    OSFamily,
    ResourceLock,
    SystemRebooter,
    build_contention_probe,
    build_reboot_signal,
    build_steps,
    detect_os_family,
)

__all__ = [
    "CommandStep",
    "OSFamily",
    "ResourceLock",
    "SystemRebooter",
    "build_contention_probe",
    "build_reboot_signal",
    "build_steps",
    "detect_os_family",
]
