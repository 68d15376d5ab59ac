"""Payroll state machine with transition validation."""

from __future__ import annotations

from school_finance.errors import InvalidStateError, InvalidTransitionError
from school_finance.models.enums import PayrollStatus


class PayrollStateMachine:
    """State machine for payroll status transitions.

    Allowed transitions:
    - DRAFT → CONFIRMED (via update)
    - DRAFT → PAID (via pay; confirmation is not a mandatory gate)
    - CONFIRMED → PAID (via pay)

    PAID is terminal. Nothing moves backwards.
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollStatus.DRAFT: [PayrollStatus.CONFIRMED, PayrollStatus.PAID],
        PayrollStatus.CONFIRMED: [PayrollStatus.PAID],
        PayrollStatus.PAID: [],  # Terminal state
    }

    # Statuses where amounts can still be edited
    MUTABLE = {
        PayrollStatus.DRAFT,
        PayrollStatus.CONFIRMED,
    }

    # Targets reachable only through the pay operation
    PAY_ONLY = {
        PayrollStatus.PAID,
    }

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
    def is_mutable(cls, status: str) -> bool:
        """Check if amounts and status may be edited in this status."""
        return status in cls.MUTABLE

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def ensure_mutable(cls, status: str) -> None:
        """Raise InvalidStateError unless the payroll can still be edited."""
        if not cls.is_mutable(status):
            raise InvalidStateError(
                "Cannot update payroll that is already paid",
                context={"status": status},
            )

    @classmethod
    def validate_update_status(cls, from_status: str, to_status: str) -> None:
        """Validate a status change requested through update.

        Re-submitting the current status is a no-op. PAID can only be reached
        through pay, which also writes the ledger entry.
        """
        if from_status == to_status:
            return
        if to_status in cls.PAY_ONLY:
            raise InvalidTransitionError(
                from_status, to_status, "use the pay operation to mark payroll as paid"
            )
        cls.validate_transition(from_status, to_status)

    @classmethod
    def ensure_payable(cls, status: str) -> None:
        """Raise InvalidStateError if the payroll cannot be paid."""
        if status == PayrollStatus.PAID:
            raise InvalidStateError("Payroll is already paid", context={"status": status})
        cls.validate_transition(status, PayrollStatus.PAID)
