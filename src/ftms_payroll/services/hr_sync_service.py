"""Sync HR payroll inputs into a payroll period."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ftms_payroll.calculators.payroll_calculator import PayrollCalculator, round_to_cents
from ftms_payroll.calculators.types import EmployeePayrollComputation, ItemCategory
from ftms_payroll.integrations.hr_types import HREmployeeRecord
from ftms_payroll.models import (
    Payroll,
    PayrollAttendance,
    PayrollItem,
    PayrollItemType,
    PayrollPeriod,
)
from ftms_payroll.models.base import utcnow
from ftms_payroll.services.state_machine import PayrollStatus

if TYPE_CHECKING:
    from ftms_payroll.integrations.hr_cache_source import HRPayrollSource

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def item_type_code(category: str, name: str) -> str:
    """``BENEFIT`` + ``Rice Allowance`` -> ``BENEFIT_RICE_ALLOWANCE``."""
    slug = re.sub(r"[^A-Z0-9]+", "_", name.upper()).strip("_")
    return f"{category}_{slug}"


def describe_error(error: Exception) -> str:
    if isinstance(error, PydanticValidationError):
        return "; ".join(
            f"{'.'.join(str(p) for p in e['loc']) or 'record'}: {e['msg']}"
            for e in error.errors()
        )
    return str(error)


@dataclass
class EmployeeSyncError:
    employee_number: str | None
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"employee_number": self.employee_number, "error": self.error}


@dataclass
class ComputedEmployee:
    record: HREmployeeRecord
    computation: EmployeePayrollComputation


@dataclass
class PeriodTotals:
    total_employees: int = 0
    total_gross: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_net: Decimal = ZERO


@dataclass
class SyncResult:
    """Outcome of one HR sync pass."""

    attempted: int
    processed: int
    totals: PeriodTotals
    errors: list[EmployeeSyncError] = field(default_factory=list)


class HRSyncService:
    """Fetches HR records, computes payroll, and upserts payroll rows.

    Records are validated and computed before anything is written, so a
    malformed record only costs its own employee.
    """

    def __init__(self, session: AsyncSession, source: HRPayrollSource):
        self.session = session
        self.source = source
        self._item_types: dict[str, PayrollItemType] = {}

    def compute_records(
        self,
        raw_records: list[Any],
        period_start: date,
        period_end: date,
        employee_number: str | None = None,
    ) -> tuple[list[ComputedEmployee], list[EmployeeSyncError]]:
        calculator = PayrollCalculator(period_start, period_end)
        computed: list[ComputedEmployee] = []
        errors: list[EmployeeSyncError] = []
        seen: set[str] = set()

        for raw in raw_records:
            raw_number = raw.get("employee_number") if isinstance(raw, dict) else None
            if employee_number and raw_number != employee_number:
                continue
            try:
                record = HREmployeeRecord.model_validate(raw)
                if record.employee_number in seen:
                    raise ValueError("duplicate employee record in HR response")
                computation = calculator.compute(record)
            except (PydanticValidationError, ValueError, ArithmeticError) as e:
                message = describe_error(e)
                logger.warning("Skipping HR record %s: %s", raw_number, message)
                errors.append(EmployeeSyncError(raw_number, message))
                continue
            seen.add(record.employee_number)
            computed.append(ComputedEmployee(record, computation))

        return computed, errors

    async def sync_period(
        self,
        period: PayrollPeriod,
        period_start: date,
        period_end: date,
        employee_number: str | None = None,
        actor_id: str | None = None,
    ) -> SyncResult:
        """Run one sync pass for ``period``. Does not commit."""
        raw_records = await self.source.fetch_employees(
            period_start, period_end, employee_number
        )
        computed, errors = self.compute_records(
            raw_records, period_start, period_end, employee_number
        )

        for employee in computed:
            await self._upsert_payroll(period, employee, actor_id)

        await self.session.flush()
        totals = await self.derive_totals(period.id)

        logger.info(
            "Synced period %s: %d/%d employees, %d error(s)",
            period.payroll_period_code,
            len(computed),
            len(computed) + len(errors),
            len(errors),
        )
        return SyncResult(
            attempted=len(computed) + len(errors),
            processed=len(computed),
            totals=totals,
            errors=errors,
        )

    async def derive_totals(self, period_id: int) -> PeriodTotals:
        """Sum the non-deleted payroll rows of a period."""
        result = await self.session.execute(
            select(Payroll).where(
                Payroll.payroll_period_id == period_id,
                Payroll.is_deleted.is_(False),
            )
        )
        rows = result.scalars().all()
        return PeriodTotals(
            total_employees=len(rows),
            total_gross=round_to_cents(sum((r.gross_pay for r in rows), ZERO)),
            total_deductions=round_to_cents(sum((r.total_deductions for r in rows), ZERO)),
            total_net=round_to_cents(sum((r.net_pay for r in rows), ZERO)),
        )

    async def _get_item_type(self, category: str, name: str) -> PayrollItemType:
        code = item_type_code(category, name)
        if code in self._item_types:
            return self._item_types[code]

        result = await self.session.execute(
            select(PayrollItemType).where(PayrollItemType.code == code)
        )
        item_type = result.scalar_one_or_none()
        if item_type is None:
            item_type = PayrollItemType(code=code, name=name, category=category)
            self.session.add(item_type)
        self._item_types[code] = item_type
        return item_type

    async def _upsert_payroll(
        self,
        period: PayrollPeriod,
        employee: ComputedEmployee,
        actor_id: str | None,
    ) -> Payroll:
        comp = employee.computation
        result = await self.session.execute(
            select(Payroll)
            .where(
                Payroll.payroll_period_id == period.id,
                Payroll.employee_number == comp.employee_number,
            )
            .options(selectinload(Payroll.items), selectinload(Payroll.attendances))
        )
        payroll = result.scalar_one_or_none()

        if payroll is None:
            payroll = Payroll(
                payroll_period_id=period.id,
                employee_number=comp.employee_number,
                created_by=actor_id,
                items=[],
                attendances=[],
            )
            self.session.add(payroll)
        else:
            payroll.updated_by = actor_id
            payroll.updated_at = utcnow()

        payroll.employee_name = comp.employee_name
        payroll.department = comp.department
        payroll.position = comp.position
        payroll.rate_type = comp.rate_type.value
        payroll.basic_rate = comp.basic_rate
        payroll.total_benefits = comp.total_benefits
        payroll.total_deductions = comp.total_deductions
        payroll.gross_pay = comp.gross_pay
        payroll.net_pay = comp.net_pay
        payroll.status = PayrollStatus.PROCESSED.value
        payroll.is_deleted = False
        payroll.deleted_by = None
        payroll.deleted_at = None

        items = []
        for line in comp.items:
            category = ItemCategory(line.category).value
            items.append(
                PayrollItem(
                    item_type=await self._get_item_type(category, line.name),
                    category=category,
                    amount=line.amount,
                    frequency=line.frequency,
                    effective_date=line.effective_date,
                    end_date=line.end_date,
                    is_active=line.is_active,
                    is_applied=line.is_applied,
                    created_by=actor_id,
                )
            )
        payroll.items = items

        payroll.attendances = [
            PayrollAttendance(
                attendance_date=a.attendance_date,
                status=a.status.value,
                hours_worked=a.hours,
                created_by=actor_id,
            )
            for a in employee.record.attendances
        ]
        return payroll
