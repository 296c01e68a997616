"""Payroll computation."""

from ftms_payroll.calculators.payroll_calculator import PayrollCalculator, round_to_cents
from ftms_payroll.calculators.types import (
    AttendanceStats,
    AttendanceStatus,
    EmployeePayrollComputation,
    ItemCategory,
    RateType,
)

__all__ = [
    "PayrollCalculator",
    "round_to_cents",
    "AttendanceStats",
    "AttendanceStatus",
    "EmployeePayrollComputation",
    "ItemCategory",
    "RateType",
]
