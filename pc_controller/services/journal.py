"""Persisted run journal used to resume a run after a reboot."""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from pc_common.errors import JournalError
from pc_controller.models.types import CycleState, RunState


class JournalStatus:
    RUNNING = "RUNNING"
    REBOOT_PENDING = "REBOOT_PENDING"
    COMPLETED = "COMPLETED"


@dataclass
class RunJournal:
    """Progress of one logical run, possibly spanning several invocations."""

    run_id: str
    max_cycles: int
    steps_hash: str
    status: str = JournalStatus.RUNNING
    cycles_used: int = 0
    termination_reason: Optional[str] = None
    cycles: List[Dict[str, Any]] = field(default_factory=list)
    updated_at: float = field(default_factory=lambda: datetime.now().timestamp())

    @classmethod
    def initialize(cls, run_id: str, max_cycles: int, step_ids: Sequence[str]) -> "RunJournal":
        return cls(run_id=run_id, max_cycles=max_cycles, steps_hash=steps_hash(step_ids))

    @property
    def resumable(self) -> bool:
        return self.status == JournalStatus.REBOOT_PENDING

    def matches(self, step_ids: Sequence[str]) -> bool:
        """True when the journal was written for the same ordered step set."""
        return self.steps_hash == steps_hash(step_ids)

    def prior_cycles(self) -> List[CycleState]:
        """Cycles recorded by earlier invocations, oldest first."""
        return [CycleState.from_dict(item) for item in self.cycles]

    def record(self, state: RunState, status: str) -> None:
        """Mirror a run state into the journal."""
        self.cycles_used = state.cycles_used
        self.termination_reason = (
            state.termination_reason.value if state.termination_reason else None
        )
        self.cycles = [cycle.to_dict() for cycle in state.cycles]
        self.status = status
        self.updated_at = datetime.now().timestamp()

    def save(self, path: Path) -> None:
        """Persist the journal atomically."""
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".journal-", dir=path.parent)
        except OSError as exc:
            raise JournalError(
                f"Failed to write run journal {path}",
                context={"path": path},
                cause=exc,
            ) from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(asdict(self), handle, indent=2, default=str)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise JournalError(
                f"Failed to write run journal {path}",
                context={"path": path},
                cause=exc,
            ) from exc

    @classmethod
    def load(cls, path: Path) -> "RunJournal":
        """Load a journal; raises JournalError on unreadable or invalid data."""
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
            return cls(**data)
        except (OSError, ValueError, TypeError) as exc:
            raise JournalError(
                f"Failed to read run journal {path}",
                context={"path": path},
                cause=exc,
            ) from exc

    @classmethod
    def load_if_exists(cls, path: Optional[Path]) -> Optional["RunJournal"]:
        if path is None or not Path(path).exists():
            return None
        return cls.load(path)


def steps_hash(step_ids: Sequence[str]) -> str:
    """Stable hash of the ordered step ids."""
    payload = json.dumps(list(step_ids)).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()[:16]
