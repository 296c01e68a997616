"""Local read cache of HR payroll inputs.

Mirrors the records the HR payroll integration returns so a period can be
processed without a live HR connection.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ftms_payroll.models.base import Base, utcnow


class HRPayrollCache(Base):
    """One employee's HR payroll inputs for a period window."""

    __tablename__ = "hr_payroll_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payroll_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    payroll_period_end: Mapped[date] = mapped_column(Date, nullable=False)
    employee_number: Mapped[str] = mapped_column(String, nullable=False)
    first_name: Mapped[str | None] = mapped_column(String, nullable=True)
    middle_name: Mapped[str | None] = mapped_column(String, nullable=True)
    last_name: Mapped[str | None] = mapped_column(String, nullable=True)
    suffix: Mapped[str | None] = mapped_column(String, nullable=True)
    employment_status: Mapped[str | None] = mapped_column(String, nullable=True)
    department_name: Mapped[str | None] = mapped_column(String, nullable=True)
    position_name: Mapped[str | None] = mapped_column(String, nullable=True)
    basic_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    rate_type: Mapped[str] = mapped_column(String, nullable=False, default="Monthly")
    last_synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint(
            "employee_number",
            "payroll_period_start",
            "payroll_period_end",
            name="hr_payroll_cache_employee_window_unique",
        ),
        Index("hr_payroll_cache_window_idx", "payroll_period_start", "payroll_period_end"),
    )

    attendances: Mapped[list[HRAttendanceCache]] = relationship(
        back_populates="payroll", cascade="all, delete-orphan"
    )
    benefits: Mapped[list[HRBenefitCache]] = relationship(
        back_populates="payroll", cascade="all, delete-orphan"
    )
    deductions: Mapped[list[HRDeductionCache]] = relationship(
        back_populates="payroll", cascade="all, delete-orphan"
    )


class HRAttendanceCache(Base):
    __tablename__ = "hr_attendance_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payroll_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("hr_payroll_cache.id", ondelete="CASCADE"), nullable=False
    )
    attendance_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    hours: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)

    payroll: Mapped[HRPayrollCache] = relationship(back_populates="attendances")


class _CompensationEntryColumns:
    """Columns shared by cached benefits and deductions."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    frequency: Mapped[str | None] = mapped_column(String, nullable=True)
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class HRBenefitCache(_CompensationEntryColumns, Base):
    __tablename__ = "hr_benefit_cache"

    payroll_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("hr_payroll_cache.id", ondelete="CASCADE"), nullable=False
    )
    payroll: Mapped[HRPayrollCache] = relationship(back_populates="benefits")


class HRDeductionCache(_CompensationEntryColumns, Base):
    __tablename__ = "hr_deduction_cache"

    payroll_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("hr_payroll_cache.id", ondelete="CASCADE"), nullable=False
    )
    payroll: Mapped[HRPayrollCache] = relationship(back_populates="deductions")
