"""
Contention probes for package manager locks.

A probe answers "is somebody else holding the resource right now?". Probes
that can actually take the lock (``FlockProbe``) do so in ``claim`` and give it
back in ``release``; the others only observe.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import IO, Iterable, List, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)

APT_LOCK_PATHS = (
    Path("/var/lib/dpkg/lock-frontend"),
    Path("/var/lib/apt/lists/lock"),
    Path("/var/cache/apt/archives/lock"),
)
ZYPPER_PID_FILE = Path("/run/zypp.pid")
YUM_PID_FILE = Path("/var/run/yum.pid")


class ContentionProbe(Protocol):
    def is_contended(self) -> bool: ...

    def claim(self) -> bool: ...

    def release(self) -> None: ...


class _ObservingProbe:
    """Base for probes that never hold anything themselves."""

    def claim(self) -> bool:
        return not self.is_contended()

    def release(self) -> None:
        return None

    def is_contended(self) -> bool:  # pragma: no cover - overridden
        raise NotImplementedError


class NullProbe(_ObservingProbe):
    """Never contended."""

    def is_contended(self) -> bool:
        return False


class FuserProbe(_ObservingProbe):
    """Report contention when ``fuser`` finds a process holding any path."""

    def __init__(
        self,
        paths: Iterable[Path] = APT_LOCK_PATHS,
        *,
        fuser: str = "fuser",
        timeout: float = 10.0,
    ) -> None:
        self.paths: List[Path] = [Path(p) for p in paths]
        self.fuser = fuser
        self.timeout = timeout

    def is_contended(self) -> bool:
        if shutil.which(self.fuser) is None:
            logger.debug("%s not available; assuming no lock holders", self.fuser)
            return False
        for path in self.paths:
            if not path.exists():
                continue
            if self._held(path):
                logger.info("Lock held: %s", path)
                return True
        return False

    def _held(self, path: Path) -> bool:
        try:
            proc = subprocess.run(
                [self.fuser, str(path)],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.warning("fuser check failed for %s: %s", path, exc)
            return False
        return proc.returncode == 0


class PidFileProbe(_ObservingProbe):
    """Report contention while a pid file names a live process."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def is_contended(self) -> bool:
        pid = self._read_pid()
        if pid is None or pid == os.getpid():
            return False
        return _pid_alive(pid)

    def _read_pid(self) -> Optional[int]:
        try:
            raw = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Cannot read pid file %s: %s", self.path, exc)
            return None
        try:
            return int(raw.split()[0]) if raw else None
        except ValueError:
            return None


class FlockProbe:
    """Exclusive, non-blocking ``flock`` on a private guard file (POSIX)."""

    def __init__(self, path: Path) -> None:
        if sys.platform == "win32":
            raise OSError("FlockProbe requires a POSIX platform")
        self.path = Path(path)
        self._handle: Optional[IO[str]] = None

    def is_contended(self) -> bool:
        if self._handle is not None:
            return False
        if not self._try_lock():
            return True
        self.release()
        return False

    def claim(self) -> bool:
        if self._handle is not None:
            return True
        return self._try_lock()

    def release(self) -> None:
        import fcntl

        if self._handle is None:
            return
        try:
            fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        finally:
            self._handle.close()
            self._handle = None

    def _try_lock(self) -> bool:
        import fcntl

        self.path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(self.path, "a+", encoding="utf-8")
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            handle.close()
            return False
        self._handle = handle
        return True


class CompositeProbe:
    """Contended when any member probe is; claims members in order."""

    def __init__(self, probes: Sequence[ContentionProbe]) -> None:
        self.probes = list(probes)
        self._claimed: List[ContentionProbe] = []

    def is_contended(self) -> bool:
        return any(probe.is_contended() for probe in self.probes)

    def claim(self) -> bool:
        for probe in self.probes:
            if not probe.claim():
                self.release()
                return False
            self._claimed.append(probe)
        return True

    def release(self) -> None:
        while self._claimed:
            probe = self._claimed.pop()
            try:
                probe.release()
            except OSError as exc:
                logger.warning("Failed to release %r: %s", probe, exc)


def _pid_alive(pid: int) -> bool:
    # os.kill(pid, 0) terminates the target on Windows.
    if sys.platform == "win32":
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False
    return True
