"""Payroll period services."""

from ftms_payroll.services.hr_sync_service import HRSyncService
from ftms_payroll.services.payroll_period_service import PayrollPeriodService
from ftms_payroll.services.repository import PayrollPeriodRepository
from ftms_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollPeriodStateMachine,
    PayrollPeriodStatus,
    PayrollStatus,
)

__all__ = [
    "HRSyncService",
    "PayrollPeriodService",
    "PayrollPeriodRepository",
    "InvalidTransitionError",
    "PayrollPeriodStateMachine",
    "PayrollPeriodStatus",
    "PayrollStatus",
]
