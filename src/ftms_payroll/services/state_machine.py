"""Payroll period state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from ftms_payroll.errors import ValidationError


class PayrollPeriodStatus(str, Enum):
    """Payroll period status values."""

    DRAFT = "DRAFT"
    PARTIAL = "PARTIAL"
    RELEASED = "RELEASED"


class PayrollStatus(str, Enum):
    """Employee payroll status values."""

    PROCESSED = "PROCESSED"
    RELEASED = "RELEASED"


class InvalidTransitionError(ValidationError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PayrollPeriodStateMachine:
    """State machine for payroll period status transitions.

    Allowed transitions:
    - DRAFT → PARTIAL (first process)
    - PARTIAL → PARTIAL (reprocess)
    - PARTIAL → RELEASED (release)

    RELEASED is terminal.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollPeriodStatus.DRAFT: [PayrollPeriodStatus.PARTIAL],
        PayrollPeriodStatus.PARTIAL: [PayrollPeriodStatus.PARTIAL, PayrollPeriodStatus.RELEASED],
        PayrollPeriodStatus.RELEASED: [],
    }

    # Statuses where HR sync may run
    PROCESSABLE = {PayrollPeriodStatus.DRAFT.value, PayrollPeriodStatus.PARTIAL.value}

    # Statuses where the period can be edited or deleted
    MUTABLE = {PayrollPeriodStatus.DRAFT.value, PayrollPeriodStatus.PARTIAL.value}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_process(cls, status: str) -> bool:
        return status in cls.PROCESSABLE

    @classmethod
    def can_release(cls, status: str) -> bool:
        return status == PayrollPeriodStatus.PARTIAL

    @classmethod
    def is_mutable(cls, status: str) -> bool:
        return status in cls.MUTABLE
