"""Shared error taxonomy for packer-converge."""

from __future__ import annotations

from typing import Any, Mapping, TypeVar


def _normalize_context_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return normalize_context(value)
    if isinstance(value, (list, tuple)):
        return [_normalize_context_value(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def normalize_context(context: Mapping[str, Any]) -> dict[str, Any]:
    """Return a JSON-friendly copy of an error context mapping."""
    return {key: _normalize_context_value(val) for key, val in context.items()}


class PCError(Exception):
    """Base error type for typed failure handling."""

    def __init__(
        self,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.context = normalize_context(context or {})
        if cause is not None:
            self.__cause__ = cause

    @property
    def error_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.error_type, "message": str(self), "context": self.context}


class LockTimeoutError(PCError):
    """The shared resource stayed contended past the allowed wait."""

    def __init__(
        self,
        resource: str,
        elapsed: float,
        *,
        max_wait: float | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            f"Timed out after {elapsed:.1f}s waiting for {resource}",
            context={"resource": resource, "elapsed": round(elapsed, 3), "max_wait": max_wait},
            cause=cause,
        )
        self.resource = resource
        self.elapsed = elapsed


class LockError(PCError):
    """The shared resource could not be probed, claimed or released."""


class StepCommandError(PCError):
    """A command-backed step exited with an unexpected status."""


class ConfigurationError(PCError):
    """Failure due to an invalid plan or invalid options."""


class JournalError(PCError):
    """Failure reading or writing the persisted run journal."""


class RebootError(PCError):
    """The machine could not be scheduled for a restart."""


T = TypeVar("T", bound=PCError)


def wrap_error(
    error_cls: type[T],
    message: str,
    *,
    context: Mapping[str, Any] | None = None,
    cause: Exception | None = None,
) -> T:
    """Create a typed PCError with optional context and cause."""
    return error_cls(message, context=context, cause=cause)


def error_to_payload(error: BaseException) -> dict[str, Any]:
    """Convert an error to a journal/summary payload."""
    if isinstance(error, PCError):
        return {
            "error_type": error.error_type,
            "error": str(error),
            "error_context": error.context,
        }
    return {
        "error_type": error.__class__.__name__,
        "error": str(error),
        "error_context": {},
    }
