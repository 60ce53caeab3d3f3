"""Reboot detection and scheduling."""

from pc_provisioner.reboot.signals import (
    DEBIAN_REBOOT_MARKER,
    DEBIAN_REBOOT_PACKAGES,
    WINDOWS_REBOOT_KEYS,
    AnyRebootSignal,
    CommandSignal,
    KernelMismatchSignal,
    MarkerFileSignal,
    RegistrySignal,
    StaticRebootSignal,
)
from pc_provisioner.reboot.trigger import SystemRebooter

__all__ = [
    "DEBIAN_REBOOT_MARKER",
    "DEBIAN_REBOOT_PACKAGES",
    "WINDOWS_REBOOT_KEYS",
    "AnyRebootSignal",
    "CommandSignal",
    "KernelMismatchSignal",
    "MarkerFileSignal",
    "RegistrySignal",
    "StaticRebootSignal",
    "SystemRebooter",
]
