"""Typed failures raised by the finance services.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer should answer with. Services raise these synchronously; nothing inside
the ledger core swallows them.
"""

from __future__ import annotations

from typing import Any


class FinanceError(Exception):
    """Base class for all finance domain errors."""

    code = "FINANCE_ERROR"
    status_code = 400

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context
        super().__init__(message)


class ValidationError(FinanceError):
    """Malformed amount, date, enum value or an empty item list."""

    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(FinanceError):
    """An id did not resolve to a live record."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} not found",
            context={"entity": entity, "id": str(entity_id)},
        )


class CategoryTypeMismatchError(FinanceError):
    """Category type differs from the transaction type."""

    code = "CATEGORY_TYPE_MISMATCH"
    status_code = 400

    def __init__(self, category_type: str, transaction_type: str):
        self.category_type = category_type
        self.transaction_type = transaction_type
        super().__init__(
            "Category type does not match transaction type",
            context={
                "category_type": category_type,
                "transaction_type": transaction_type,
            },
        )


class InvalidStateError(FinanceError):
    """The record's lifecycle state forbids the requested operation."""

    code = "INVALID_STATE"
    status_code = 409


class InvalidTransitionError(InvalidStateError):
    """Raised when an invalid status transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, context={"from": from_status, "to": to_status})


class TransactionDeletedError(NotFoundError, InvalidStateError):
    """The transaction exists but has been soft-deleted.

    Callers that only care about lookups see a ``NotFoundError``; callers that
    reason about lifecycle see an ``InvalidStateError``.
    """

    code = NotFoundError.code
    status_code = NotFoundError.status_code

    def __init__(self, transaction_id: Any):
        NotFoundError.__init__(self, "Transaction", transaction_id)
