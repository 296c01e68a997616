"""Payroll period API endpoints."""

from __future__ import annotations

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Body, Path, Query, status

from ftms_payroll.api.dependencies import AdminActor, PeriodService, ReqContext
from ftms_payroll.api.schemas import (
    AttendanceStatsResponse,
    DisbursementResponse,
    EmployeePayrollResponse,
    Envelope,
    ErrorResponse,
    PaginationResponse,
    PayrollAttendanceResponse,
    PayrollItemResponse,
    PayrollPeriodCreate,
    PayrollPeriodDelete,
    PayrollPeriodDetailResponse,
    PayrollPeriodListResponse,
    PayrollPeriodResponse,
    PayrollPeriodStatsResponse,
    PayrollPeriodUpdate,
    PayslipResponse,
    ProcessPayrollRequest,
    ProcessResultResponse,
)
from ftms_payroll.models import PayrollItem
from ftms_payroll.services.payroll_period_service import (
    EmployeeDetail,
    PeriodCreate,
    PeriodPatch,
    PeriodQuery,
    ProcessRequest,
)

router = APIRouter(prefix="/admin/payroll-periods", tags=["payroll-periods"])

PeriodId = Annotated[int, Path(ge=1)]


def _item_response(item: PayrollItem) -> PayrollItemResponse:
    return PayrollItemResponse(
        id=item.id,
        item_type_id=item.item_type_id,
        item_type_code=item.item_type.code if item.item_type else None,
        name=item.item_type.name if item.item_type else None,
        category=item.category,
        amount=item.amount,
        frequency=item.frequency,
        effective_date=item.effective_date,
        end_date=item.end_date,
        is_active=item.is_active,
        is_applied=item.is_applied,
    )


def _employee_response(detail: EmployeeDetail) -> EmployeePayrollResponse:
    payroll = detail.payroll
    return EmployeePayrollResponse(
        id=payroll.id,
        payroll_code=payroll.payroll_code,
        employee_number=payroll.employee_number,
        employee_name=payroll.employee_name,
        department=payroll.department,
        position=payroll.position,
        rate_type=payroll.rate_type,
        basic_rate=payroll.basic_rate,
        total_benefits=payroll.total_benefits,
        total_deductions=payroll.total_deductions,
        gross_pay=payroll.gross_pay,
        net_pay=payroll.net_pay,
        status=payroll.status,
        items=[_item_response(i) for i in payroll.items],
        attendances=[PayrollAttendanceResponse.model_validate(a) for a in payroll.attendances],
        attendance_stats=AttendanceStatsResponse.model_validate(detail.attendance),
    )


# ============================================================================
# Payroll Period CRUD
# ============================================================================


@router.post(
    "",
    response_model=Envelope[PayrollPeriodResponse],
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_payroll_period(
    service: PeriodService,
    actor: AdminActor,
    context: ReqContext,
    payload: PayrollPeriodCreate,
) -> Envelope[PayrollPeriodResponse]:
    """Create a new payroll period in DRAFT status."""
    period = await service.create(
        PeriodCreate(
            period_start=payload.period_start,
            period_end=payload.period_end,
            payroll_period_code=payload.payroll_period_code,
        ),
        actor,
        context,
    )
    return Envelope(
        message="Payroll period created successfully",
        data=PayrollPeriodResponse.model_validate(period),
    )


@router.get("", response_model=PayrollPeriodListResponse)
async def list_payroll_periods(
    service: PeriodService,
    actor: AdminActor,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    status_filter: Annotated[
        str | None, Query(alias="status", pattern="^(DRAFT|PARTIAL|RELEASED)$")
    ] = None,
    date_from: Annotated[date | None, Query(alias="dateFrom")] = None,
    date_to: Annotated[date | None, Query(alias="dateTo")] = None,
    search: Annotated[str | None, Query(max_length=100)] = None,
    is_deleted: Annotated[bool, Query(alias="isDeleted")] = False,
) -> PayrollPeriodListResponse:
    """List payroll periods, newest first."""
    result = await service.list(
        PeriodQuery(
            status=status_filter,
            date_from=date_from,
            date_to=date_to,
            search=search,
            is_deleted=is_deleted,
            page=page,
            limit=limit,
        )
    )
    return PayrollPeriodListResponse(
        data=[PayrollPeriodResponse.model_validate(p) for p in result.items],
        pagination=PaginationResponse(
            page=result.pagination.page,
            limit=result.pagination.limit,
            total=result.pagination.total,
            total_pages=result.pagination.total_pages,
        ),
    )


@router.get("/stats", response_model=Envelope[PayrollPeriodStatsResponse])
async def payroll_period_stats(
    service: PeriodService,
    actor: AdminActor,
) -> Envelope[PayrollPeriodStatsResponse]:
    """Counts and released totals across non-deleted periods."""
    return Envelope(data=PayrollPeriodStatsResponse(**await service.stats()))


@router.get(
    "/{period_id}",
    response_model=Envelope[PayrollPeriodDetailResponse],
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_period(
    service: PeriodService,
    actor: AdminActor,
    period_id: PeriodId,
) -> Envelope[PayrollPeriodDetailResponse]:
    """Get a payroll period with its employee payrolls."""
    detail = await service.get_detail(period_id)
    base = PayrollPeriodResponse.model_validate(detail.period)
    return Envelope(
        data=PayrollPeriodDetailResponse(
            **base.model_dump(),
            payrolls=[_employee_response(e) for e in detail.employees],
        )
    )


@router.patch(
    "/{period_id}",
    response_model=Envelope[PayrollPeriodResponse],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_payroll_period(
    service: PeriodService,
    actor: AdminActor,
    context: ReqContext,
    period_id: PeriodId,
    payload: PayrollPeriodUpdate,
) -> Envelope[PayrollPeriodResponse]:
    """Update a DRAFT or PARTIAL payroll period."""
    period = await service.update(
        period_id,
        PeriodPatch(
            payroll_period_code=payload.payroll_period_code,
            period_start=payload.period_start,
            period_end=payload.period_end,
            status=payload.status,
        ),
        actor,
        context,
    )
    return Envelope(
        message="Payroll period updated successfully",
        data=PayrollPeriodResponse.model_validate(period),
    )


@router.delete(
    "/{period_id}",
    response_model=Envelope[PayrollPeriodResponse],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def delete_payroll_period(
    service: PeriodService,
    actor: AdminActor,
    context: ReqContext,
    period_id: PeriodId,
    payload: Annotated[PayrollPeriodDelete, Body()],
) -> Envelope[PayrollPeriodResponse]:
    """Soft delete a payroll period."""
    period = await service.delete(period_id, actor, payload.reason, context)
    return Envelope(
        message="Payroll period deleted successfully",
        data=PayrollPeriodResponse.model_validate(period),
    )


# ============================================================================
# Lifecycle
# ============================================================================


@router.post(
    "/{period_id}/process",
    response_model=Envelope[ProcessResultResponse],
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def process_payroll_period(
    service: PeriodService,
    actor: AdminActor,
    context: ReqContext,
    period_id: PeriodId,
    payload: Annotated[ProcessPayrollRequest | None, Body()] = None,
) -> Envelope[ProcessResultResponse]:
    """Sync HR inputs and compute payroll for the period."""
    payload = payload or ProcessPayrollRequest()
    result = await service.process(
        period_id,
        ProcessRequest(
            period_start=payload.period_start,
            period_end=payload.period_end,
            employee_number=payload.employee_number,
        ),
        actor,
        context,
    )
    message = f"Processed {result.total_processed} of {result.total_attempted} employees"
    return Envelope(
        message=message,
        data=ProcessResultResponse(
            payroll_period_id=result.payroll_period_id,
            status=result.status,
            outcome=result.outcome,
            total_processed=result.total_processed,
            total_attempted=result.total_attempted,
            total_employees=result.total_employees,
            total_gross=result.total_gross,
            total_deductions=result.total_deductions,
            total_net=result.total_net,
            errors=[e.to_dict() for e in result.errors],
        ),
    )


@router.post(
    "/{period_id}/release",
    response_model=Envelope[PayrollPeriodResponse],
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def release_payroll_period(
    service: PeriodService,
    actor: AdminActor,
    context: ReqContext,
    period_id: PeriodId,
) -> Envelope[PayrollPeriodResponse]:
    """Release a processed period and notify HR for disbursement."""
    result = await service.release(period_id, actor, context)
    return Envelope(
        message="Payroll period released successfully",
        data=PayrollPeriodResponse.model_validate(result.period),
    )


@router.post(
    "/{period_id}/disbursement",
    response_model=Envelope[DisbursementResponse],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def resend_disbursement(
    service: PeriodService,
    actor: AdminActor,
    context: ReqContext,
    period_id: PeriodId,
) -> Envelope[DisbursementResponse]:
    """Redeliver the HR disbursement webhook for a released period."""
    delivered = await service.resend_disbursement(period_id, actor, context)
    return Envelope(
        message="Disbursement delivered" if delivered else "Disbursement delivery failed",
        data=DisbursementResponse(payroll_period_id=period_id, delivered=delivered),
    )


@router.get(
    "/{period_id}/payrolls/{payroll_id}/payslip",
    response_model=Envelope[PayslipResponse],
    responses={404: {"model": ErrorResponse}},
)
async def get_payslip(
    service: PeriodService,
    actor: AdminActor,
    period_id: PeriodId,
    payroll_id: Annotated[int, Path(ge=1)],
) -> Envelope[PayslipResponse]:
    """Payslip data for one employee payroll."""
    return Envelope(data=PayslipResponse(**await service.get_payslip(period_id, payroll_id)))
