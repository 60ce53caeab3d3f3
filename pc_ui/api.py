"""Public UI API surface."""

from pc_ui.cli.main import app, main
from pc_ui.presenters.summary import build_cycle_rows, render_run_summary
from pc_ui.services.plan_service import PlanService

__all__ = ["PlanService", "app", "build_cycle_rows", "main", "render_run_summary"]
