"""Payroll computation from synced HR inputs.

Rules:
- gross_pay = basic_rate + sum(applicable benefits)
- net_pay = gross_pay - sum(applicable deductions)
- An entry is applicable when it is active and its effective/end window
  intersects the period.
- Amounts are rounded half-up to cents at the end of each total.
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Iterable

from ftms_payroll.calculators.types import (
    AttendanceStats,
    AttendanceStatus,
    EmployeePayrollComputation,
    ItemCategory,
    ItemLine,
    RateType,
)

if TYPE_CHECKING:
    from ftms_payroll.integrations.hr_types import (
        HRCompensationEntry,
        HREmployeeRecord,
    )

CENTS = Decimal("0.01")
ZERO = Decimal("0")

_RATE_TYPE_ALIASES = {
    "DAILY": RateType.DAILY,
    "WEEKLY": RateType.WEEKLY,
    "SEMI_MONTHLY": RateType.SEMI_MONTHLY,
    "SEMIMONTHLY": RateType.SEMI_MONTHLY,
    "MONTHLY": RateType.MONTHLY,
    "HOURLY": RateType.HOURLY,
}


def round_to_cents(amount: Decimal) -> Decimal:
    """Round amount to 2 decimal places (cents)."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def generate_period_code(period_start: date, period_end: date) -> str:
    """Default period code, e.g. ``2026-01-01_2026-01-15``."""
    return f"{period_start.isoformat()}_{period_end.isoformat()}"


def normalize_rate_type(raw: str | None) -> RateType:
    """Map HR rate type labels ('Weekly', 'Semi-Monthly', ...) onto RateType.

    Unknown labels fall back to MONTHLY.
    """
    if not raw:
        return RateType.MONTHLY
    key = raw.strip().upper().replace("-", "_").replace(" ", "_")
    return _RATE_TYPE_ALIASES.get(key, RateType.MONTHLY)


def format_full_name(
    first_name: str | None,
    middle_name: str | None = None,
    last_name: str | None = None,
    suffix: str | None = None,
) -> str | None:
    parts = [p.strip() for p in (first_name, middle_name, last_name, suffix) if p and p.strip()]
    return " ".join(parts) or None


def attendance_stats(
    entries: Iterable[tuple[str, Decimal | None]],
) -> AttendanceStats:
    """Count Present/Absent/Late entries and sum Overtime hours.

    ``entries`` are (status, hours) pairs, so both HR records and stored
    attendance rows can be summarised.
    """
    present = absent = late = 0
    overtime = ZERO
    for raw_status, hours in entries:
        status = AttendanceStatus(raw_status)
        if status == AttendanceStatus.PRESENT:
            present += 1
        elif status == AttendanceStatus.ABSENT:
            absent += 1
        elif status == AttendanceStatus.LATE:
            late += 1
        elif status == AttendanceStatus.OVERTIME:
            overtime += hours or ZERO
    return AttendanceStats(
        present_count=present,
        absent_count=absent,
        late_count=late,
        overtime_hours=overtime,
    )


def is_entry_applicable(
    entry: HRCompensationEntry, period_start: date, period_end: date
) -> bool:
    """Check if a benefit/deduction counts toward the period."""
    if not entry.is_active:
        return False
    if entry.effective_date is not None and entry.effective_date > period_end:
        return False
    if entry.end_date is not None and entry.end_date < period_start:
        return False
    return True


def sum_applicable(
    entries: Iterable[HRCompensationEntry], period_start: date, period_end: date
) -> Decimal:
    total = sum(
        (e.value for e in entries if is_entry_applicable(e, period_start, period_end)),
        ZERO,
    )
    return round_to_cents(total)


def calculate_gross_pay(basic_rate: Decimal, total_benefits: Decimal) -> Decimal:
    return round_to_cents(basic_rate + total_benefits)


def calculate_net_pay(gross_pay: Decimal, total_deductions: Decimal) -> Decimal:
    return round_to_cents(gross_pay - total_deductions)


class PayrollCalculator:
    """Computes one employee's payroll for a period window."""

    def __init__(self, period_start: date, period_end: date):
        if period_start > period_end:
            raise ValueError("period_start must be on or before period_end")
        self.period_start = period_start
        self.period_end = period_end

    def _item_lines(
        self, entries: Iterable[HRCompensationEntry], category: ItemCategory
    ) -> list[ItemLine]:
        return [
            ItemLine(
                name=e.name,
                category=category,
                amount=round_to_cents(e.value),
                frequency=e.frequency,
                effective_date=e.effective_date,
                end_date=e.end_date,
                is_active=e.is_active,
                is_applied=is_entry_applicable(e, self.period_start, self.period_end),
            )
            for e in entries
        ]

    def compute(self, record: HREmployeeRecord) -> EmployeePayrollComputation:
        basic_rate = round_to_cents(record.basic_rate)
        total_benefits = sum_applicable(record.benefits, self.period_start, self.period_end)
        total_deductions = sum_applicable(
            record.deductions, self.period_start, self.period_end
        )
        gross = calculate_gross_pay(basic_rate, total_benefits)
        net = calculate_net_pay(gross, total_deductions)

        items = self._item_lines(record.benefits, ItemCategory.BENEFIT)
        items += self._item_lines(record.deductions, ItemCategory.DEDUCTION)

        return EmployeePayrollComputation(
            employee_number=record.employee_number,
            employee_name=format_full_name(
                record.first_name, record.middle_name, record.last_name, record.suffix
            ),
            department=record.department,
            position=record.position,
            rate_type=normalize_rate_type(record.rate_type),
            basic_rate=basic_rate,
            attendance=attendance_stats((a.status, a.hours) for a in record.attendances),
            total_benefits=total_benefits,
            total_deductions=total_deductions,
            gross_pay=gross,
            net_pay=net,
            items=items,
        )
