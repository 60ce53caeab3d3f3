"""Timeout-bounded exclusive access to a shared external resource."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from pc_common.errors import LockError, LockTimeoutError, wrap_error
from pc_provisioner.locks.clock import Clock, SystemClock
from pc_provisioner.locks.probes import ContentionProbe, NullProbe

logger = logging.getLogger(__name__)


@dataclass
class LockToken:
    """Proof of access handed to the block guarded by ``ResourceLock.acquire``."""

    resource_name: str
    waited_seconds: float
    attempts: int
    released: bool = False


class ResourceLock:
    """Poll a contention probe until the resource is free or time runs out."""

    def __init__(
        self,
        resource_name: str,
        probe: Optional[ContentionProbe] = None,
        *,
        max_wait: float = 300.0,
        poll_interval: float = 5.0,
        clock: Optional[Clock] = None,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if max_wait < 0:
            raise ValueError("max_wait must be non-negative")
        self.resource_name = resource_name
        self.probe = probe or NullProbe()
        self.max_wait = max_wait
        self.poll_interval = poll_interval
        self.clock = clock or SystemClock()

    @contextmanager
    def acquire(self) -> Iterator[LockToken]:
        """Hold the resource for the duration of the ``with`` block.

        Raises LockTimeoutError when the probe still reports contention
        after ``max_wait`` seconds, and LockError when the probe itself
        fails. Release runs on every exit path.
        """
        token = self._wait_and_claim()
        try:
            yield token
        finally:
            self._release(token)

    def _release(self, token: LockToken) -> None:
        try:
            self.probe.release()
        except OSError as exc:
            raise self._lock_error("release", exc) from exc
        token.released = True
        logger.debug("Released %s", self.resource_name)

    def _lock_error(self, action: str, exc: OSError) -> LockError:
        return wrap_error(
            LockError,
            f"Failed to {action} {self.resource_name}: {exc}",
            context={"resource": self.resource_name, "action": action},
            cause=exc,
        )

    def _wait_and_claim(self) -> LockToken:
        start = self.clock.monotonic()
        attempts = 0
        while True:
            attempts += 1
            try:
                acquired = not self.probe.is_contended() and self.probe.claim()
            except OSError as exc:
                raise self._lock_error("claim", exc) from exc
            if acquired:
                waited = self.clock.monotonic() - start
                if attempts > 1:
                    logger.info("Acquired %s after %.1fs", self.resource_name, waited)
                return LockToken(self.resource_name, waited, attempts)

            elapsed = self.clock.monotonic() - start
            remaining = self.max_wait - elapsed
            if remaining <= 0:
                logger.error(
                    "Timeout waiting for %s after %.1fs", self.resource_name, elapsed
                )
                raise LockTimeoutError(self.resource_name, elapsed, max_wait=self.max_wait)

            logger.info("Waiting for %s to be released...", self.resource_name)
            self.clock.sleep(min(self.poll_interval, remaining))
