"""Package manager lock handling."""

from pc_provisioner.locks.clock import Clock, SystemClock
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
from pc_provisioner.locks.resource_lock import LockToken, ResourceLock

__all__ = [
    "APT_LOCK_PATHS",
    "YUM_PID_FILE",
    "ZYPPER_PID_FILE",
    "Clock",
    "CompositeProbe",
    "ContentionProbe",
    "FlockProbe",
    "FuserProbe",
    "LockToken",
    "NullProbe",
    "PidFileProbe",
    "ResourceLock",
    "SystemClock",
]
