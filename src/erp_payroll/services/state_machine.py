"""Payroll run state machine with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from erp_payroll.exceptions import BusinessRuleError

if TYPE_CHECKING:
    from erp_payroll.models import Payroll


class PayrollStatus(str, Enum):
    """Payroll run status values."""

    OPEN = "open"
    CLOSED = "closed"


class InvalidTransitionError(BusinessRuleError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, rule="payroll_transition")


class PayrollStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - open → closed (close: items frozen, financial transactions booked)
    - closed → open (reopen: transactions reversed)
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollStatus.OPEN: [PayrollStatus.CLOSED],
        PayrollStatus.CLOSED: [PayrollStatus.OPEN],
    }

    # Statuses where items, employees and run settings can change
    EDITABLE = {PayrollStatus.OPEN}

    @classmethod
    def status_of(cls, payroll: Payroll) -> PayrollStatus:
        return PayrollStatus.CLOSED if payroll.is_closed else PayrollStatus.OPEN

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(PayrollStatus(from_status), [])
        return PayrollStatus(to_status) in allowed

    @classmethod
    def validate_transition(
        cls, from_status: str, to_status: str, reason: str | None = None
    ) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(
                PayrollStatus(from_status).value, PayrollStatus(to_status).value, reason
            )

    @classmethod
    def can_modify(cls, status: str) -> bool:
        """Check if the run's items and settings can be modified."""
        return PayrollStatus(status) in cls.EDITABLE
