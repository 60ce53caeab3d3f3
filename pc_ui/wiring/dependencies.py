from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from rich.console import Console

from pc_common.api import configure_logging
from pc_ui.services.plan_service import PlanService


@dataclass
class UIContext:
    """Container for CLI services, initialized lazily."""

    _console: Optional[Console] = None
    _plan_service: Optional[PlanService] = None

    @property
    def console(self) -> Console:
        if self._console is None:
            self._console = Console()
        return self._console

    @console.setter
    def console(self, value: Console) -> None:
        self._console = value

    @property
    def plan_service(self) -> PlanService:
        if self._plan_service is None:
            self._plan_service = PlanService()
        return self._plan_service

    @plan_service.setter
    def plan_service(self, value: PlanService) -> None:
        self._plan_service = value


__all__ = ["UIContext", "configure_logging"]
