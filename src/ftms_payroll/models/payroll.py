"""Payroll period, employee payroll, item and attendance models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ftms_payroll.models.base import AuditColumnsMixin, Base, SoftDeleteMixin

ZERO = Decimal("0")


# ===== Payroll Periods =====


class PayrollPeriod(Base, AuditColumnsMixin, SoftDeleteMixin):
    """A bounded date range over which pay is computed and released."""

    __tablename__ = "payroll_period"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payroll_period_code: Mapped[str] = mapped_column(String, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="DRAFT")

    total_employees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_gross: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    total_deductions: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )
    total_net: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)

    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    last_processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_process_error_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    deletion_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("payroll_period_code", name="payroll_period_code_unique"),
        CheckConstraint(
            "status IN ('DRAFT', 'PARTIAL', 'RELEASED')",
            name="payroll_period_status_check",
        ),
        CheckConstraint("period_end >= period_start", name="payroll_period_dates_check"),
        Index("payroll_period_period_start_idx", "period_start"),
        Index("payroll_period_status_idx", "status"),
        Index("payroll_period_is_deleted_idx", "is_deleted"),
    )

    # Relationships
    payrolls: Mapped[list[Payroll]] = relationship(
        back_populates="payroll_period",
        cascade="all, delete-orphan",
        order_by="Payroll.employee_number",
    )


# ===== Employee Payroll =====


class Payroll(Base, AuditColumnsMixin, SoftDeleteMixin):
    """One employee's payroll line within a period."""

    __tablename__ = "payroll"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payroll_period_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("payroll_period.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_number: Mapped[str] = mapped_column(String, nullable=False)

    # HR snapshot at processing time
    employee_name: Mapped[str | None] = mapped_column(String, nullable=True)
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    position: Mapped[str | None] = mapped_column(String, nullable=True)

    rate_type: Mapped[str] = mapped_column(String, nullable=False, default="MONTHLY")
    basic_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    gross_pay: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    total_benefits: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )
    total_deductions: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=ZERO
    )
    net_pay: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    status: Mapped[str] = mapped_column(String, nullable=False, default="PROCESSED")

    __table_args__ = (
        UniqueConstraint(
            "payroll_period_id", "employee_number", name="payroll_period_employee_unique"
        ),
        CheckConstraint(
            "status IN ('PROCESSED', 'RELEASED')",
            name="payroll_status_check",
        ),
        CheckConstraint(
            "rate_type IN ('DAILY', 'WEEKLY', 'SEMI_MONTHLY', 'MONTHLY', 'HOURLY')",
            name="payroll_rate_type_check",
        ),
        Index("payroll_employee_number_idx", "employee_number"),
    )

    # Relationships
    payroll_period: Mapped[PayrollPeriod] = relationship(back_populates="payrolls")
    items: Mapped[list[PayrollItem]] = relationship(
        back_populates="payroll",
        cascade="all, delete-orphan",
        order_by="PayrollItem.id",
    )
    attendances: Mapped[list[PayrollAttendance]] = relationship(
        back_populates="payroll",
        cascade="all, delete-orphan",
        order_by="PayrollAttendance.attendance_date",
    )

    @property
    def payroll_code(self) -> str:
        return f"PAY-{self.id}"


class PayrollItemType(Base):
    """Benefit/deduction taxonomy entry named by the HR system."""

    __tablename__ = "payroll_item_type"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "category IN ('BENEFIT', 'DEDUCTION')",
            name="payroll_item_type_category_check",
        ),
    )


class PayrollItem(Base, AuditColumnsMixin):
    """A single benefit or deduction entry on an employee payroll."""

    __tablename__ = "payroll_item"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payroll_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("payroll.id", ondelete="CASCADE"),
        nullable=False,
    )
    item_type_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("payroll_item_type.id"),
        nullable=False,
    )
    category: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    frequency: Mapped[str | None] = mapped_column(String, nullable=True)
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_applied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "category IN ('BENEFIT', 'DEDUCTION')",
            name="payroll_item_category_check",
        ),
    )

    # Relationships
    payroll: Mapped[Payroll] = relationship(back_populates="items")
    item_type: Mapped[PayrollItemType] = relationship(lazy="joined")


class PayrollAttendance(Base, AuditColumnsMixin):
    """Daily attendance record copied from HR for statistics."""

    __tablename__ = "payroll_attendance"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payroll_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("payroll.id", ondelete="CASCADE"),
        nullable=False,
    )
    attendance_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    hours_worked: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)

    # Relationships
    payroll: Mapped[Payroll] = relationship(back_populates="attendances")
