"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

T = TypeVar("T")


# ============================================================================
# Envelope
# ============================================================================


class Envelope(BaseModel, Generic[T]):
    """Every response body is ``{success, message?, data?}``."""

    success: bool = True
    message: str | None = None
    data: T | None = None


class ErrorResponse(BaseModel):
    """Error response schema."""

    success: bool = False
    message: str
    errors: list[Any] | None = None


# ============================================================================
# Payroll Period requests
# ============================================================================


class PayrollPeriodCreate(BaseModel):
    """Schema for creating a payroll period."""

    model_config = ConfigDict(extra="forbid")

    payroll_period_code: str | None = Field(default=None, min_length=1, max_length=100)
    period_start: date
    period_end: date

    @model_validator(mode="after")
    def _check_range(self) -> PayrollPeriodCreate:
        if self.period_start > self.period_end:
            raise ValueError("period_start must be on or before period_end")
        return self


class PayrollPeriodUpdate(BaseModel):
    """Schema for patching a payroll period."""

    model_config = ConfigDict(extra="forbid")

    payroll_period_code: str | None = Field(default=None, min_length=1, max_length=100)
    period_start: date | None = None
    period_end: date | None = None
    status: Literal["DRAFT", "PARTIAL", "RELEASED"] | None = None


class PayrollPeriodDelete(BaseModel):
    """Soft delete requires a reason."""

    reason: str = Field(min_length=1)


class ProcessPayrollRequest(BaseModel):
    """Optional window and employee filter for a processing pass."""

    model_config = ConfigDict(extra="forbid")

    period_start: date | None = None
    period_end: date | None = None
    employee_number: str | None = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def _check_range(self) -> ProcessPayrollRequest:
        if self.period_start and self.period_end and self.period_start > self.period_end:
            raise ValueError("period_start must be on or before period_end")
        return self


# ============================================================================
# Payroll Period responses
# ============================================================================


class PayrollPeriodResponse(BaseModel):
    """Schema for payroll period response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    payroll_period_code: str
    period_start: date
    period_end: date
    status: str
    total_employees: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    approved_by: str | None = None
    approved_at: datetime | None = None
    last_processed_at: datetime | None = None
    last_process_error_count: int | None = None
    created_by: str | None = None
    created_at: datetime
    updated_by: str | None = None
    updated_at: datetime | None = None
    is_deleted: bool = False
    deleted_by: str | None = None
    deleted_at: datetime | None = None
    deletion_reason: str | None = None


class PaginationResponse(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class PayrollPeriodListResponse(BaseModel):
    """List endpoint body: ``data`` plus ``pagination``."""

    success: bool = True
    data: list[PayrollPeriodResponse]
    pagination: PaginationResponse


class PayrollItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    item_type_id: int
    item_type_code: str | None = None
    name: str | None = None
    category: str
    amount: Decimal
    frequency: str | None = None
    effective_date: date | None = None
    end_date: date | None = None
    is_active: bool
    is_applied: bool


class PayrollAttendanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    attendance_date: date
    status: str
    hours_worked: Decimal | None = None


class AttendanceStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    present_count: int
    absent_count: int
    late_count: int
    overtime_hours: Decimal


class EmployeePayrollResponse(BaseModel):
    """One employee payroll row with children and attendance stats."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    payroll_code: str
    employee_number: str
    employee_name: str | None = None
    department: str | None = None
    position: str | None = None
    rate_type: str
    basic_rate: Decimal
    total_benefits: Decimal
    total_deductions: Decimal
    gross_pay: Decimal
    net_pay: Decimal
    status: str
    items: list[PayrollItemResponse] = Field(default_factory=list)
    attendances: list[PayrollAttendanceResponse] = Field(default_factory=list)
    attendance_stats: AttendanceStatsResponse | None = None


class PayrollPeriodDetailResponse(PayrollPeriodResponse):
    payrolls: list[EmployeePayrollResponse] = Field(default_factory=list)


class EmployeeErrorResponse(BaseModel):
    employee_number: str | None
    error: str


class ProcessResultResponse(BaseModel):
    """Summary of one processing pass."""

    model_config = ConfigDict(from_attributes=True)

    payroll_period_id: int
    status: str
    outcome: Literal["complete", "completed_with_errors"]
    total_processed: int
    total_attempted: int
    total_employees: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    errors: list[EmployeeErrorResponse] = Field(default_factory=list)


class DisbursementResponse(BaseModel):
    payroll_period_id: int
    delivered: bool


class PayrollPeriodStatsResponse(BaseModel):
    total_periods: int
    released: int
    pending: int
    total_net_released: Decimal
    total_employees_released: int
    by_status: dict[str, int]


class PayslipItemResponse(BaseModel):
    name: str
    amount: Decimal
    frequency: str | None = None
    is_applied: bool


class PayslipResponse(BaseModel):
    company_name: str
    payroll_code: str
    payroll_period_code: str
    period_start: date
    period_end: date
    status: str
    release_date: datetime | None = None
    employee_number: str
    employee_name: str | None = None
    department: str | None = None
    position: str | None = None
    rate_type: str
    basic_rate: Decimal
    basic_pay: Decimal
    benefits: list[PayslipItemResponse]
    deductions: list[PayslipItemResponse]
    total_benefits: Decimal
    total_deductions: Decimal
    gross_pay: Decimal
    net_pay: Decimal
    present_days: int
    absent_days: int
    late_days: int
    overtime_hours: Decimal
