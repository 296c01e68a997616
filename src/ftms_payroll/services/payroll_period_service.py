"""Payroll period service - orchestrates the period lifecycle.

Operations:
- create / update / delete: bookkeeping on DRAFT and PARTIAL periods
- process: HR sync and payroll computation, DRAFT|PARTIAL → PARTIAL
- release: PARTIAL → RELEASED, then the HR disbursement webhook
- resend_disbursement: redeliver the webhook for a RELEASED period

Every mutation commits once and then emits its audit event.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ftms_payroll.calculators.payroll_calculator import (
    attendance_stats,
    generate_period_code,
    round_to_cents,
)
from ftms_payroll.calculators.types import AttendanceStats, ItemCategory
from ftms_payroll.errors import ConflictError, NotFoundError, ValidationError
from ftms_payroll.integrations.outbound import build_failure, deliver_with_retry
from ftms_payroll.models import Payroll, PayrollPeriod
from ftms_payroll.models.base import utcnow
from ftms_payroll.services.hr_sync_service import EmployeeSyncError, HRSyncService
from ftms_payroll.services.repository import PayrollPeriodRepository
from ftms_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollPeriodStateMachine,
    PayrollPeriodStatus,
    PayrollStatus,
)

if TYPE_CHECKING:
    from ftms_payroll.config import Settings
    from ftms_payroll.integrations.audit_client import Actor, AuditLogClient, RequestContext
    from ftms_payroll.integrations.hr_cache_source import HRPayrollSource
    from ftms_payroll.integrations.hr_client import HRPayrollClient

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
DISBURSEMENT_TARGET = "hr_disbursement"
DISBURSEMENT_EVENT = "payroll.distribution"


# ===== Inputs and results =====


@dataclass
class PeriodCreate:
    period_start: date
    period_end: date
    payroll_period_code: str | None = None


@dataclass
class PeriodPatch:
    payroll_period_code: str | None = None
    period_start: date | None = None
    period_end: date | None = None
    status: str | None = None


@dataclass
class PeriodQuery:
    status: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    search: str | None = None
    is_deleted: bool = False
    page: int = 1
    limit: int = 10


@dataclass
class ProcessRequest:
    period_start: date | None = None
    period_end: date | None = None
    employee_number: str | None = None


@dataclass
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int


@dataclass
class PeriodPage:
    items: list[PayrollPeriod]
    pagination: Pagination


@dataclass
class EmployeeDetail:
    payroll: Payroll
    attendance: AttendanceStats


@dataclass
class PeriodDetail:
    period: PayrollPeriod
    employees: list[EmployeeDetail]


@dataclass
class ProcessResult:
    payroll_period_id: int
    status: str
    outcome: str
    total_processed: int
    total_attempted: int
    total_employees: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    errors: list[EmployeeSyncError] = field(default_factory=list)


@dataclass
class ReleaseResult:
    period: PayrollPeriod
    disbursement_delivered: bool


def period_snapshot(period: PayrollPeriod) -> dict[str, Any]:
    """Audit-friendly view of the editable period fields."""
    return {
        "payroll_period_code": period.payroll_period_code,
        "period_start": period.period_start.isoformat(),
        "period_end": period.period_end.isoformat(),
        "status": period.status,
        "total_employees": period.total_employees,
        "total_gross": str(period.total_gross),
        "total_deductions": str(period.total_deductions),
        "total_net": str(period.total_net),
    }


def payroll_attendance_stats(payroll: Payroll) -> AttendanceStats:
    return attendance_stats((a.status, a.hours_worked) for a in payroll.attendances)


def build_disbursement_payload(
    period: PayrollPeriod, disbursed_by: str, disbursed_at: datetime
) -> dict[str, Any]:
    """HR disbursement webhook body. Money values are decimal strings."""
    employees = []
    for payroll in period.payrolls:
        if payroll.is_deleted:
            continue
        stats = payroll_attendance_stats(payroll)
        basic_pay = round_to_cents(payroll.gross_pay - payroll.total_benefits)
        employees.append(
            {
                "employee_number": payroll.employee_number,
                "basic_rate": str(payroll.basic_rate),
                "rate_type": payroll.rate_type,
                "present_days": stats.present_count,
                "basic_pay": str(basic_pay),
                "total_benefits": str(payroll.total_benefits),
                "total_deductions": str(payroll.total_deductions),
                "gross_pay": str(payroll.gross_pay),
                "net_pay": str(payroll.net_pay),
            }
        )
    return {
        "payroll_period_code": period.payroll_period_code,
        "period_start": period.period_start.isoformat(),
        "period_end": period.period_end.isoformat(),
        "disbursed_by": disbursed_by,
        "disbursed_at": disbursed_at.isoformat(),
        "employees": employees,
    }


# ===== Service =====


class PayrollPeriodService:
    """Service for managing the payroll period lifecycle."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        hr_source: HRPayrollSource,
        hr_client: HRPayrollClient,
        audit: AuditLogClient,
    ):
        self.session = session
        self.settings = settings
        self.hr_source = hr_source
        self.hr_client = hr_client
        self.audit = audit
        self.outbound = audit.dispatcher
        self.repository = PayrollPeriodRepository(session)

    async def _get_or_404(self, period_id: int, with_payrolls: bool = False) -> PayrollPeriod:
        if with_payrolls:
            period = await self.repository.get_with_payrolls(period_id)
        else:
            period = await self.repository.get(period_id)
        if period is None:
            raise NotFoundError(f"Payroll period not found: {period_id}")
        return period

    async def _validate_range(
        self,
        period_start: date,
        period_end: date,
        code: str,
        exclude_id: int | None = None,
    ) -> None:
        if period_start > period_end:
            raise ValidationError("period_start must be on or before period_end")
        if not code or not code.strip():
            raise ValidationError("payroll_period_code cannot be empty")
        overlapping = await self.repository.find_overlapping(
            period_start, period_end, exclude_id=exclude_id
        )
        if overlapping is not None:
            raise ValidationError(
                f"Period overlaps with existing period: {overlapping.payroll_period_code}"
            )
        if await self.repository.code_exists(code, exclude_id=exclude_id):
            raise ValidationError(f"Payroll period code already exists: {code}")

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError("Payroll period was changed by another request") from e

    # ----- create / read -----

    async def create(
        self, payload: PeriodCreate, actor: Actor, context: RequestContext | None = None
    ) -> PayrollPeriod:
        code = payload.payroll_period_code or generate_period_code(
            payload.period_start, payload.period_end
        )
        code = code.strip()
        await self._validate_range(payload.period_start, payload.period_end, code)

        period = PayrollPeriod(
            payroll_period_code=code,
            period_start=payload.period_start,
            period_end=payload.period_end,
            status=PayrollPeriodStatus.DRAFT.value,
            total_employees=0,
            total_gross=ZERO,
            total_deductions=ZERO,
            total_net=ZERO,
            created_by=actor.id,
            created_at=utcnow(),
            is_deleted=False,
        )
        self.session.add(period)
        await self._commit()

        logger.info("Created payroll period %s (%s)", period.id, code)
        self.audit.log_create(period.id, code, period_snapshot(period), actor, context)
        return period

    async def list(self, query: PeriodQuery) -> PeriodPage:
        if query.page < 1 or query.limit < 1:
            raise ValidationError("page and limit must be positive")
        items, total = await self.repository.list_periods(
            status=query.status,
            date_from=query.date_from,
            date_to=query.date_to,
            search=query.search,
            is_deleted=query.is_deleted,
            page=query.page,
            limit=query.limit,
        )
        return PeriodPage(
            items=list(items),
            pagination=Pagination(
                page=query.page,
                limit=query.limit,
                total=total,
                total_pages=math.ceil(total / query.limit),
            ),
        )

    async def get_detail(self, period_id: int) -> PeriodDetail:
        period = await self._get_or_404(period_id, with_payrolls=True)
        employees = [
            EmployeeDetail(payroll=p, attendance=payroll_attendance_stats(p))
            for p in period.payrolls
            if not p.is_deleted
        ]
        return PeriodDetail(period=period, employees=employees)

    # ----- update / delete -----

    async def update(
        self,
        period_id: int,
        patch: PeriodPatch,
        actor: Actor,
        context: RequestContext | None = None,
    ) -> PayrollPeriod:
        period = await self._get_or_404(period_id)
        if not PayrollPeriodStateMachine.is_mutable(period.status):
            raise ValidationError("Cannot update a released payroll period")

        before = period_snapshot(period)
        current_status = period.status

        code = (patch.payroll_period_code or period.payroll_period_code).strip()
        period_start = patch.period_start or period.period_start
        period_end = patch.period_end or period.period_end
        await self._validate_range(period_start, period_end, code, exclude_id=period.id)

        new_status = current_status
        if patch.status is not None and patch.status != current_status:
            if patch.status == PayrollPeriodStatus.RELEASED:
                raise InvalidTransitionError(
                    current_status, patch.status, "use release to finalize a period"
                )
            PayrollPeriodStateMachine.validate_transition(current_status, patch.status)
            new_status = patch.status

        result = await self.session.execute(
            update(PayrollPeriod)
            .where(
                PayrollPeriod.id == period.id,
                PayrollPeriod.status == current_status,
                PayrollPeriod.is_deleted.is_(False),
            )
            .values(
                payroll_period_code=code,
                period_start=period_start,
                period_end=period_end,
                status=new_status,
                updated_by=actor.id,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.session.rollback()
            raise ConflictError("Payroll period was changed by another request")
        await self._commit()
        await self.session.refresh(period)

        self.audit.log_update(
            period.id, period.payroll_period_code, before, period_snapshot(period), actor, context
        )
        return period

    async def delete(
        self,
        period_id: int,
        actor: Actor,
        reason: str | None,
        context: RequestContext | None = None,
    ) -> PayrollPeriod:
        if not reason or not reason.strip():
            raise ValidationError("Deletion reason is required")
        period = await self._get_or_404(period_id)
        if not PayrollPeriodStateMachine.is_mutable(period.status):
            raise ValidationError("Cannot delete a released payroll period")

        before = period_snapshot(period)
        now = utcnow()
        result = await self.session.execute(
            update(PayrollPeriod)
            .where(
                PayrollPeriod.id == period.id,
                PayrollPeriod.status.in_(PayrollPeriodStateMachine.MUTABLE),
                PayrollPeriod.is_deleted.is_(False),
            )
            .values(
                is_deleted=True,
                deleted_by=actor.id,
                deleted_at=now,
                deletion_reason=reason.strip(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.session.rollback()
            raise ConflictError("Payroll period was changed by another request")
        await self.session.execute(
            update(Payroll)
            .where(Payroll.payroll_period_id == period.id, Payroll.is_deleted.is_(False))
            .values(is_deleted=True, deleted_by=actor.id, deleted_at=now)
            .execution_options(synchronize_session=False)
        )
        await self._commit()
        await self.session.refresh(period)

        logger.info("Soft-deleted payroll period %s", period.id)
        self.audit.log_delete(
            period.id, period.payroll_period_code, before, actor, reason.strip(), context
        )
        return period

    # ----- process -----

    async def process(
        self,
        period_id: int,
        request: ProcessRequest,
        actor: Actor,
        context: RequestContext | None = None,
    ) -> ProcessResult:
        """Sync HR inputs and recompute payroll for a period.

        Per-employee failures are returned in ``errors``; the period moves
        to PARTIAL either way. A whole-fetch HR failure raises
        IntegrationError and writes nothing.
        """
        period = await self._get_or_404(period_id)
        if not PayrollPeriodStateMachine.can_process(period.status):
            raise ValidationError(
                f"Cannot process a payroll period in status {period.status}"
            )

        period_start = request.period_start or period.period_start
        period_end = request.period_end or period.period_end
        if period_start > period_end:
            raise ValidationError("period_start must be on or before period_end")

        from_status = period.status
        sync = HRSyncService(self.session, self.hr_source)
        try:
            result = await sync.sync_period(
                period,
                period_start,
                period_end,
                employee_number=request.employee_number,
                actor_id=actor.id,
            )
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError("Payroll period is being processed by another request") from e
        except Exception:
            await self.session.rollback()
            raise

        totals = result.totals
        now = utcnow()
        status_update = await self.session.execute(
            update(PayrollPeriod)
            .where(
                PayrollPeriod.id == period.id,
                PayrollPeriod.status.in_(PayrollPeriodStateMachine.PROCESSABLE),
                PayrollPeriod.is_deleted.is_(False),
            )
            .values(
                status=PayrollPeriodStatus.PARTIAL.value,
                total_employees=totals.total_employees,
                total_gross=totals.total_gross,
                total_deductions=totals.total_deductions,
                total_net=totals.total_net,
                last_processed_at=now,
                last_process_error_count=len(result.errors),
                updated_by=actor.id,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if status_update.rowcount == 0:
            await self.session.rollback()
            raise ConflictError("Payroll period was changed by another request")
        await self._commit()
        await self.session.refresh(period)

        outcome = "complete" if not result.errors else "completed_with_errors"
        logger.info(
            "Processed payroll period %s (%s → %s): %d/%d employees",
            period.id,
            from_status,
            period.status,
            result.processed,
            result.attempted,
        )
        self.audit.log_action(
            "PROCESS",
            period.id,
            period.payroll_period_code,
            actor,
            context,
            new_values={
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
                "employee_number": request.employee_number,
                "total_processed": result.processed,
                "error_count": len(result.errors),
            },
        )
        return ProcessResult(
            payroll_period_id=period.id,
            status=period.status,
            outcome=outcome,
            total_processed=result.processed,
            total_attempted=result.attempted,
            total_employees=period.total_employees,
            total_gross=period.total_gross,
            total_deductions=period.total_deductions,
            total_net=period.total_net,
            errors=result.errors,
        )

    # ----- release -----

    async def _deliver_disbursement(self, period: PayrollPeriod, payload: dict[str, Any]) -> bool:
        """Deliver with retries; on exhaustion write a dead-letter row.

        Runs outside any open transaction. The dead-letter row goes
        through the dispatcher's own session.
        """
        delivery = await deliver_with_retry(
            lambda: self.hr_client.send_payroll_distribution(payload),
            max_attempts=self.settings.disbursement_max_attempts,
            backoff_seconds=self.settings.disbursement_backoff_seconds,
        )
        if not delivery.delivered:
            logger.error(
                "Payroll distribution webhook for period %s failed after %d attempt(s): %s",
                period.payroll_period_code,
                delivery.attempts,
                delivery.error,
            )
            await self.outbound.record_failure(
                build_failure(
                    DISBURSEMENT_TARGET,
                    DISBURSEMENT_EVENT,
                    str(period.id),
                    payload,
                    delivery.error,
                    delivery.attempts,
                )
            )
        return delivery.delivered

    async def release(
        self, period_id: int, actor: Actor, context: RequestContext | None = None
    ) -> ReleaseResult:
        """Finalize a PARTIAL period and notify HR for disbursement.

        The period is claimed with a conditional update and committed
        before the webhook goes out, so only the request that wins the
        PARTIAL → RELEASED transition sends it. A failed delivery is
        dead-lettered and does not fail the release.
        """
        period = await self._get_or_404(period_id, with_payrolls=True)
        if period.status == PayrollPeriodStatus.DRAFT:
            raise ValidationError("Cannot release a payroll period that has not been processed")
        if not PayrollPeriodStateMachine.can_release(period.status):
            raise ValidationError(f"Payroll period is already {period.status}")

        now = utcnow()
        payload = build_disbursement_payload(period, actor.name or actor.id, now)

        result = await self.session.execute(
            update(PayrollPeriod)
            .where(
                PayrollPeriod.id == period.id,
                PayrollPeriod.status == PayrollPeriodStatus.PARTIAL.value,
                PayrollPeriod.is_deleted.is_(False),
            )
            .values(
                status=PayrollPeriodStatus.RELEASED.value,
                approved_by=actor.id,
                approved_at=now,
                updated_by=actor.id,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.session.rollback()
            raise ConflictError("Payroll period was changed by another request")
        await self.session.execute(
            update(Payroll)
            .where(Payroll.payroll_period_id == period.id, Payroll.is_deleted.is_(False))
            .values(status=PayrollStatus.RELEASED.value, updated_by=actor.id, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self._commit()
        logger.info("Released payroll period %s", period.payroll_period_code)

        delivered = await self._deliver_disbursement(period, payload)

        period = await self._get_or_404(period_id, with_payrolls=True)
        self.audit.log_approval(period.id, period.payroll_period_code, actor, context)
        return ReleaseResult(period=period, disbursement_delivered=delivered)

    async def resend_disbursement(
        self, period_id: int, actor: Actor, context: RequestContext | None = None
    ) -> bool:
        """Redeliver the disbursement webhook for a released period."""
        period = await self._get_or_404(period_id, with_payrolls=True)
        if period.status != PayrollPeriodStatus.RELEASED:
            raise ValidationError("Only released payroll periods can be disbursed")

        payload = build_disbursement_payload(
            period, actor.name or actor.id, period.approved_at or utcnow()
        )
        await self.session.commit()
        delivered = await self._deliver_disbursement(period, payload)

        self.audit.log_action(
            "RESEND_DISBURSEMENT",
            period.id,
            period.payroll_period_code,
            actor,
            context,
            new_values={"delivered": delivered},
        )
        return delivered

    # ----- reporting -----

    async def stats(self) -> dict[str, Any]:
        periods = await self.repository.all_active()
        by_status = {s.value: 0 for s in PayrollPeriodStatus}
        for period in periods:
            by_status[period.status] = by_status.get(period.status, 0) + 1
        released = [p for p in periods if p.status == PayrollPeriodStatus.RELEASED]
        return {
            "total_periods": len(periods),
            "released": by_status[PayrollPeriodStatus.RELEASED.value],
            "pending": by_status[PayrollPeriodStatus.DRAFT.value]
            + by_status[PayrollPeriodStatus.PARTIAL.value],
            "total_net_released": round_to_cents(
                sum((p.total_net for p in released), ZERO)
            ),
            "total_employees_released": sum(p.total_employees for p in released),
            "by_status": by_status,
        }

    async def get_payslip(self, period_id: int, payroll_id: int) -> dict[str, Any]:
        period = await self._get_or_404(period_id, with_payrolls=True)
        payroll = next(
            (p for p in period.payrolls if p.id == payroll_id and not p.is_deleted), None
        )
        if payroll is None:
            raise NotFoundError(f"Payroll not found: {payroll_id}")

        def item_lines(category: ItemCategory) -> list[dict[str, Any]]:
            return [
                {
                    "name": item.item_type.name,
                    "amount": item.amount,
                    "frequency": item.frequency,
                    "is_applied": item.is_applied,
                }
                for item in payroll.items
                if item.category == category.value
            ]

        stats = payroll_attendance_stats(payroll)
        return {
            "company_name": self.settings.company_name,
            "payroll_code": payroll.payroll_code,
            "payroll_period_code": period.payroll_period_code,
            "period_start": period.period_start,
            "period_end": period.period_end,
            "status": payroll.status,
            "release_date": period.approved_at,
            "employee_number": payroll.employee_number,
            "employee_name": payroll.employee_name,
            "department": payroll.department,
            "position": payroll.position,
            "rate_type": payroll.rate_type,
            "basic_rate": payroll.basic_rate,
            "basic_pay": round_to_cents(payroll.gross_pay - payroll.total_benefits),
            "benefits": item_lines(ItemCategory.BENEFIT),
            "deductions": item_lines(ItemCategory.DEDUCTION),
            "total_benefits": payroll.total_benefits,
            "total_deductions": payroll.total_deductions,
            "gross_pay": payroll.gross_pay,
            "net_pay": payroll.net_pay,
            "present_days": stats.present_count,
            "absent_days": stats.absent_count,
            "late_days": stats.late_count,
            "overtime_hours": stats.overtime_hours,
        }
