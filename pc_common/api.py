"""Public API surface for pc_common."""

from pc_common.errors import (
    ConfigurationError,
    JournalError,
    LockError,
    LockTimeoutError,
    PCError,
    RebootError,
    StepCommandError,
    error_to_payload,
)
from pc_common.logging import bound_log_context, configure_logging

__all__ = [
    "ConfigurationError",
    "JournalError",
    "LockError",
    "LockTimeoutError",
    "PCError",
    "RebootError",
    "StepCommandError",
    "bound_log_context",
    "configure_logging",
    "error_to_payload",
]
