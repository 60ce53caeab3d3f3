"""Services backing the CLI."""

from .plan_service import PlanService

__all__ = ["PlanService"]
