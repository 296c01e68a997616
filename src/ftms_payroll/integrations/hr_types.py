"""Wire types for the HR payroll integration.

Employee records are validated one at a time so a malformed record only
fails its own employee.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from ftms_payroll.calculators.types import AttendanceStatus


class HRAttendance(BaseModel):
    """Attendance entry from HR."""

    model_config = ConfigDict(extra="ignore")

    attendance_date: date = Field(validation_alias=AliasChoices("date", "attendance_date"))
    status: AttendanceStatus
    hours: Decimal | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("hours", "hours_worked")
    )


class HRCompensationEntry(BaseModel):
    """Benefit or deduction entry from HR."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    value: Decimal = Field(ge=0)
    frequency: str | None = None
    effective_date: date | None = None
    end_date: date | None = None
    is_active: bool = Field(default=True, validation_alias=AliasChoices("is_active", "isActive"))

    @model_validator(mode="after")
    def _check_window(self) -> HRCompensationEntry:
        if self.effective_date and self.end_date and self.end_date < self.effective_date:
            raise ValueError("end_date is before effective_date")
        return self


class HREmployeeRecord(BaseModel):
    """One employee's payroll inputs for a period."""

    model_config = ConfigDict(extra="ignore")

    employee_number: str = Field(min_length=1)
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    suffix: str | None = None
    employment_status: str | None = None
    department: str | None = Field(
        default=None, validation_alias=AliasChoices("department", "department_name")
    )
    position: str | None = Field(
        default=None, validation_alias=AliasChoices("position", "position_name")
    )
    basic_rate: Decimal = Field(ge=0)
    rate_type: str = "Monthly"
    attendances: list[HRAttendance] = Field(default_factory=list)
    benefits: list[HRCompensationEntry] = Field(default_factory=list)
    deductions: list[HRCompensationEntry] = Field(default_factory=list)


class HRPayrollResponse(BaseModel):
    """Envelope returned by the HR payroll endpoint.

    ``employees`` stays raw, entries that are not objects included; each
    entry is parsed into ``HREmployeeRecord`` individually by the sync
    service.
    """

    model_config = ConfigDict(extra="ignore")

    payroll_period_start: date | None = None
    payroll_period_end: date | None = None
    employees: list[Any] = Field(default_factory=list)
    count: int | None = None
