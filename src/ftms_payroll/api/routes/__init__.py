"""API routes."""

from ftms_payroll.api.routes.health import router as health_router
from ftms_payroll.api.routes.payroll_periods import router as payroll_periods_router

__all__ = ["payroll_periods_router", "health_router"]
