"""API routes."""

from hr_payroll.api.routes.allocations import router as allocations_router
from hr_payroll.api.routes.health import router as health_router
from hr_payroll.api.routes.payroll import router as payroll_router
from hr_payroll.api.routes.payroll import run_router as payroll_run_router
from hr_payroll.api.routes.probation import router as probation_router
from hr_payroll.api.routes.transitions import router as transitions_router

__all__ = [
    "allocations_router",
    "health_router",
    "payroll_router",
    "payroll_run_router",
    "probation_router",
    "transitions_router",
]
