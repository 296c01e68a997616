"""Tests for payroll period state machine."""

import pytest

from ftms_payroll.errors import ValidationError
from ftms_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollPeriodStateMachine,
    PayrollPeriodStatus,
)


class TestPayrollPeriodStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # DRAFT → PARTIAL (first process)
        assert PayrollPeriodStateMachine.can_transition("DRAFT", "PARTIAL") is True

        # PARTIAL → PARTIAL (reprocess)
        assert PayrollPeriodStateMachine.can_transition("PARTIAL", "PARTIAL") is True

        # PARTIAL → RELEASED
        assert PayrollPeriodStateMachine.can_transition("PARTIAL", "RELEASED") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Can't release without processing
        assert PayrollPeriodStateMachine.can_transition("DRAFT", "RELEASED") is False

        # No regression
        assert PayrollPeriodStateMachine.can_transition("PARTIAL", "DRAFT") is False
        assert PayrollPeriodStateMachine.can_transition("RELEASED", "PARTIAL") is False
        assert PayrollPeriodStateMachine.can_transition("RELEASED", "DRAFT") is False

    def test_validate_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            PayrollPeriodStateMachine.validate_transition("RELEASED", "PARTIAL")

        assert exc_info.value.from_status == "RELEASED"
        assert exc_info.value.to_status == "PARTIAL"
        assert isinstance(exc_info.value, ValidationError)
        assert exc_info.value.status_code == 400

    def test_released_is_terminal(self):
        for target in PayrollPeriodStatus:
            assert not PayrollPeriodStateMachine.can_transition(PayrollPeriodStatus.RELEASED, target)

    def test_guards(self):
        assert PayrollPeriodStateMachine.can_process("DRAFT")
        assert PayrollPeriodStateMachine.can_process("PARTIAL")
        assert not PayrollPeriodStateMachine.can_process("RELEASED")

        assert PayrollPeriodStateMachine.can_release("PARTIAL")
        assert not PayrollPeriodStateMachine.can_release("DRAFT")
        assert not PayrollPeriodStateMachine.can_release("RELEASED")

        assert PayrollPeriodStateMachine.is_mutable("DRAFT")
        assert not PayrollPeriodStateMachine.is_mutable("RELEASED")
