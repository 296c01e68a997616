"""ORM models."""

from ftms_payroll.models.base import Base, TimestampMixin
from ftms_payroll.models.hr_cache import (
    HRAttendanceCache,
    HRBenefitCache,
    HRDeductionCache,
    HRPayrollCache,
)
from ftms_payroll.models.outbound import OutboundFailure
from ftms_payroll.models.payroll import (
    Payroll,
    PayrollAttendance,
    PayrollItem,
    PayrollItemType,
    PayrollPeriod,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "HRAttendanceCache",
    "HRBenefitCache",
    "HRDeductionCache",
    "HRPayrollCache",
    "OutboundFailure",
    "Payroll",
    "PayrollAttendance",
    "PayrollItem",
    "PayrollItemType",
    "PayrollPeriod",
]
