"""Payroll period queries that hide soft-deleted rows."""

from __future__ import annotations

from datetime import date
from typing import Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ftms_payroll.models import Payroll, PayrollPeriod

LIKE_ESCAPE = "\\"


def escape_like(value: str) -> str:
    """Make ``%`` and ``_`` match literally in a LIKE pattern."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


class PayrollPeriodRepository:
    """Reads payroll periods and their payrolls.

    Every query starts from ``active()``, so soft-deleted periods are
    invisible unless a caller asks for them explicitly.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def active() -> Select:
        return select(PayrollPeriod).where(PayrollPeriod.is_deleted.is_(False))

    async def get(self, period_id: int) -> PayrollPeriod | None:
        result = await self.session.execute(self.active().where(PayrollPeriod.id == period_id))
        return result.scalar_one_or_none()

    async def get_with_payrolls(self, period_id: int) -> PayrollPeriod | None:
        """Load a period with payroll rows, items and attendances."""
        result = await self.session.execute(
            self.active()
            .where(PayrollPeriod.id == period_id)
            .options(
                selectinload(PayrollPeriod.payrolls).selectinload(Payroll.items),
                selectinload(PayrollPeriod.payrolls).selectinload(Payroll.attendances),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_overlapping(
        self, period_start: date, period_end: date, exclude_id: int | None = None
    ) -> PayrollPeriod | None:
        """First non-deleted period whose closed range meets [start, end]."""
        query = self.active().where(
            PayrollPeriod.period_start <= period_end,
            PayrollPeriod.period_end >= period_start,
        )
        if exclude_id is not None:
            query = query.where(PayrollPeriod.id != exclude_id)
        result = await self.session.execute(query.order_by(PayrollPeriod.period_start).limit(1))
        return result.scalar_one_or_none()

    async def code_exists(self, code: str, exclude_id: int | None = None) -> bool:
        """Codes are unique across all rows, deleted ones included."""
        query = select(func.count()).select_from(PayrollPeriod).where(
            PayrollPeriod.payroll_period_code == code
        )
        if exclude_id is not None:
            query = query.where(PayrollPeriod.id != exclude_id)
        return (await self.session.scalar(query) or 0) > 0

    async def list_periods(
        self,
        *,
        status: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        search: str | None = None,
        is_deleted: bool = False,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[Sequence[PayrollPeriod], int]:
        query = select(PayrollPeriod).where(PayrollPeriod.is_deleted.is_(is_deleted))
        if status:
            query = query.where(PayrollPeriod.status == status)
        if date_from:
            query = query.where(PayrollPeriod.period_start >= date_from)
        if date_to:
            query = query.where(PayrollPeriod.period_start <= date_to)
        if search:
            query = query.where(
                PayrollPeriod.payroll_period_code.ilike(
                    f"%{escape_like(search)}%", escape=LIKE_ESCAPE
                )
            )

        count_query = select(func.count()).select_from(query.subquery())
        total = await self.session.scalar(count_query) or 0

        query = query.order_by(PayrollPeriod.period_start.desc(), PayrollPeriod.id.desc())
        query = query.offset((page - 1) * limit).limit(limit)
        result = await self.session.execute(query)
        return result.scalars().all(), total

    async def all_active(self) -> Sequence[PayrollPeriod]:
        result = await self.session.execute(self.active())
        return result.scalars().all()
