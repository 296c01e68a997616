"""HR payroll inputs served from the local read cache."""

from __future__ import annotations

from datetime import date
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ftms_payroll.models import HRPayrollCache


class HRPayrollSource(Protocol):
    """Anything that can produce raw HR employee records for a window."""

    async def fetch_employees(
        self,
        period_start: date,
        period_end: date,
        employee_number: str | None = None,
    ) -> list[Any]: ...


def _entry_dict(entry) -> dict[str, Any]:
    return {
        "name": entry.name,
        "value": entry.value,
        "frequency": entry.frequency,
        "effective_date": entry.effective_date,
        "end_date": entry.end_date,
        "is_active": entry.is_active,
    }


def cache_row_to_record(row: HRPayrollCache) -> dict[str, Any]:
    """Shape a cache row like an HR API employee record."""
    return {
        "employee_number": row.employee_number,
        "first_name": row.first_name,
        "middle_name": row.middle_name,
        "last_name": row.last_name,
        "suffix": row.suffix,
        "employment_status": row.employment_status,
        "department_name": row.department_name,
        "position_name": row.position_name,
        "basic_rate": row.basic_rate,
        "rate_type": row.rate_type,
        "attendances": [
            {"date": a.attendance_date, "status": a.status, "hours": a.hours}
            for a in sorted(row.attendances, key=lambda a: a.attendance_date)
        ],
        "benefits": [_entry_dict(b) for b in row.benefits],
        "deductions": [_entry_dict(d) for d in row.deductions],
    }


class CachedHRPayrollSource:
    """Reads cached HR records whose sync window matches the request."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def fetch_employees(
        self,
        period_start: date,
        period_end: date,
        employee_number: str | None = None,
    ) -> list[dict[str, Any]]:
        query = (
            select(HRPayrollCache)
            .where(
                HRPayrollCache.is_deleted.is_(False),
                HRPayrollCache.payroll_period_start == period_start,
                HRPayrollCache.payroll_period_end == period_end,
            )
            .options(
                selectinload(HRPayrollCache.attendances),
                selectinload(HRPayrollCache.benefits),
                selectinload(HRPayrollCache.deductions),
            )
            .order_by(HRPayrollCache.employee_number)
        )
        if employee_number:
            query = query.where(HRPayrollCache.employee_number == employee_number)

        result = await self.session.execute(query)
        return [cache_row_to_record(row) for row in result.scalars().all()]
