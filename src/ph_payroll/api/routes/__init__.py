"""API routes."""

from ph_payroll.api.routes.annualization import router as annualization_router
from ph_payroll.api.routes.health import router as health_router
from ph_payroll.api.routes.runs import router as runs_router

__all__ = ["annualization_router", "health_router", "runs_router"]
