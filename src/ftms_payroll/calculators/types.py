"""Type definitions for payroll computation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum


class AttendanceStatus(str, Enum):
    """Attendance status values reported by HR."""

    PRESENT = "Present"
    ABSENT = "Absent"
    LATE = "Late"
    LEAVE = "Leave"
    OVERTIME = "Overtime"


class ItemCategory(str, Enum):
    """Payroll item categories."""

    BENEFIT = "BENEFIT"
    DEDUCTION = "DEDUCTION"


class RateType(str, Enum):
    """How an employee's basic rate is expressed."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    SEMI_MONTHLY = "SEMI_MONTHLY"
    MONTHLY = "MONTHLY"
    HOURLY = "HOURLY"


@dataclass(frozen=True)
class AttendanceStats:
    """Attendance counts for one employee over a period."""

    present_count: int = 0
    absent_count: int = 0
    late_count: int = 0
    overtime_hours: Decimal = Decimal("0")


@dataclass
class ItemLine:
    """A benefit or deduction entry ready for persistence."""

    name: str
    category: ItemCategory
    amount: Decimal
    frequency: str | None = None
    effective_date: date | None = None
    end_date: date | None = None
    is_active: bool = True
    is_applied: bool = True


@dataclass
class EmployeePayrollComputation:
    """Computed payroll figures for one employee."""

    employee_number: str
    employee_name: str | None
    department: str | None
    position: str | None
    rate_type: RateType
    basic_rate: Decimal
    attendance: AttendanceStats
    total_benefits: Decimal
    total_deductions: Decimal
    gross_pay: Decimal
    net_pay: Decimal
    items: list[ItemLine] = field(default_factory=list)
