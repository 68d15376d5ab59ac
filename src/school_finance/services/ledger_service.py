"""Transaction ledger service.

All ledger writes go through here:
- Manual entries (positive amounts, category type must match entry type)
- Linked entries derived from book sales and payroll payments
- Soft deletion (deleted entries vanish from every read, permanently)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from school_finance.config import get_settings
from school_finance.errors import (
    CategoryTypeMismatchError,
    NotFoundError,
    TransactionDeletedError,
    ValidationError,
)
from school_finance.models import (
    BookSale,
    Currency,
    FinanceCategory,
    FinanceTransaction,
    FinanceType,
    PaymentMethod,
    Payroll,
    PayrollStatus,
    ReferenceType,
)
from school_finance.services.calculations import to_decimal
from school_finance.services.category_registry import CategoryRegistry
from school_finance.services.periods import end_of_day, start_of_day, to_naive_utc

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20
MAX_NOTE_LENGTH = 2000

_UPDATABLE_FIELDS = {
    "category_id",
    "amount",
    "currency",
    "payment_method",
    "occurred_at",
    "note",
    "reference_type",
    "reference_id",
}

# Targets a reference tag is allowed to point at
_REFERENCE_TARGETS: dict[str, type] = {
    ReferenceType.BOOK_SALE.value: BookSale,
    ReferenceType.PAYROLL.value: Payroll,
}


@dataclass
class TransactionFilters:
    """Filters for listing ledger entries."""

    finance_type: FinanceType | str | None = None
    date_from: date | datetime | None = None
    date_to: date | datetime | None = None
    category_id: UUID | None = None
    payment_method: PaymentMethod | str | None = None
    q: str | None = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE


@dataclass
class TransactionPage:
    """One page of ledger entries."""

    items: list[FinanceTransaction] = field(default_factory=list)
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    total: int = 0

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0


class LedgerService:
    """Append-mostly store of finance transactions.

    Notes:
    - transaction type is immutable after creation.
    - is_deleted rows are filtered out of every lookup, list and report.
    - manual amounts must be positive; linked entries may carry any sign.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.categories = CategoryRegistry(session)

    async def get(self, transaction_id: UUID) -> FinanceTransaction:
        """Load a live transaction with its category and creator."""
        result = await self.session.execute(
            select(FinanceTransaction)
            .where(FinanceTransaction.id == transaction_id)
            .options(
                selectinload(FinanceTransaction.category),
                selectinload(FinanceTransaction.created_by_user),
            )
            .execution_options(populate_existing=True)
        )
        transaction = result.scalar_one_or_none()
        if transaction is None:
            raise NotFoundError("Transaction", transaction_id)
        if transaction.is_deleted:
            raise TransactionDeletedError(transaction_id)
        return transaction

    async def list(self, filters: TransactionFilters) -> TransactionPage:
        """List live transactions, newest first."""
        page = max(1, filters.page)
        page_size = min(MAX_PAGE_SIZE, max(1, filters.page_size))

        query = select(FinanceTransaction).where(FinanceTransaction.is_deleted.is_(False))

        if filters.finance_type is not None:
            query = query.where(FinanceTransaction.type == _coerce(FinanceType, filters.finance_type, "type"))
        if filters.category_id is not None:
            query = query.where(FinanceTransaction.category_id == filters.category_id)
        if filters.payment_method is not None:
            query = query.where(
                FinanceTransaction.payment_method
                == _coerce(PaymentMethod, filters.payment_method, "payment method")
            )
        if filters.date_from is not None:
            query = query.where(FinanceTransaction.occurred_at >= _range_start(filters.date_from))
        if filters.date_to is not None:
            # The upper bound always covers the whole day
            query = query.where(FinanceTransaction.occurred_at <= end_of_day(_naive(filters.date_to)))
        if filters.q and filters.q.strip():
            query = query.where(FinanceTransaction.note.icontains(filters.q.strip(), autoescape=True))

        count_query = select(func.count()).select_from(query.subquery())
        total = await self.session.scalar(count_query) or 0

        query = (
            query.options(
                selectinload(FinanceTransaction.category),
                selectinload(FinanceTransaction.created_by_user),
            )
            .order_by(FinanceTransaction.occurred_at.desc(), FinanceTransaction.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.session.execute(query)

        return TransactionPage(
            items=list(result.scalars().all()),
            page=page,
            page_size=page_size,
            total=total,
        )

    async def create(
        self,
        *,
        finance_type: FinanceType | str,
        category_id: UUID,
        amount: Decimal | int | float | str,
        payment_method: PaymentMethod | str,
        occurred_at: datetime,
        created_by_user_id: UUID,
        currency: Currency | str | None = None,
        note: str | None = None,
        reference_type: ReferenceType | str | None = None,
        reference_id: UUID | str | None = None,
    ) -> FinanceTransaction:
        """Create a manual ledger entry."""
        type_value = _coerce(FinanceType, finance_type, "type")
        amount = to_decimal(amount)
        if amount <= 0:
            raise ValidationError("Amount must be positive")

        category = await self.categories.get(category_id)
        _ensure_category_matches(category, type_value)

        ref_type, ref_id = await self._validate_reference(reference_type, reference_id)

        transaction = FinanceTransaction(
            type=type_value,
            category_id=category.id,
            amount=amount,
            currency=_coerce(Currency, currency or _default_currency(), "currency"),
            payment_method=_coerce(PaymentMethod, payment_method, "payment method"),
            occurred_at=to_naive_utc(occurred_at),
            note=_clean_note(note),
            reference_type=ref_type,
            reference_id=ref_id,
            created_by_user_id=created_by_user_id,
            is_deleted=False,
        )
        self.session.add(transaction)
        await self.session.flush()

        logger.info(
            "Recorded %s transaction %s amount=%s category=%s",
            type_value,
            transaction.id,
            amount,
            category.name,
        )
        return await self.get(transaction.id)

    async def update(self, transaction_id: UUID, changes: dict[str, Any]) -> FinanceTransaction:
        """Patch a live transaction. ``type`` cannot change."""
        if "type" in changes or "finance_type" in changes:
            raise ValidationError("Transaction type is immutable")
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update transaction fields: {', '.join(sorted(unknown))}")

        transaction = await self.get(transaction_id)

        if changes.get("category_id") is not None:
            category = await self.categories.get(changes["category_id"])
            _ensure_category_matches(category, transaction.type)
            transaction.category_id = category.id
        if changes.get("amount") is not None:
            amount = to_decimal(changes["amount"])
            if amount <= 0:
                raise ValidationError("Amount must be positive")
            transaction.amount = amount
        if changes.get("currency") is not None:
            transaction.currency = _coerce(Currency, changes["currency"], "currency")
        if changes.get("payment_method") is not None:
            transaction.payment_method = _coerce(
                PaymentMethod, changes["payment_method"], "payment method"
            )
        if changes.get("occurred_at") is not None:
            transaction.occurred_at = to_naive_utc(changes["occurred_at"])
        if "note" in changes:
            transaction.note = _clean_note(changes["note"])
        if "reference_type" in changes or "reference_id" in changes:
            ref_type, ref_id = await self._validate_reference(
                changes.get("reference_type", transaction.reference_type),
                changes.get("reference_id", transaction.reference_id),
                transaction_id=transaction.id,
            )
            transaction.reference_type = ref_type
            transaction.reference_id = ref_id

        await self.session.flush()
        return await self.get(transaction.id)

    async def soft_delete(self, transaction_id: UUID) -> UUID:
        """Mark a transaction deleted. Deleting twice fails the lookup."""
        transaction = await self.get(transaction_id)
        transaction.is_deleted = True
        await self.session.flush()
        logger.info("Soft-deleted transaction %s", transaction_id)
        return transaction.id

    async def record_linked(
        self,
        *,
        reference_type: ReferenceType,
        reference_id: UUID,
        category: FinanceCategory,
        finance_type: FinanceType,
        amount: Decimal,
        payment_method: str,
        currency: str,
        occurred_at: datetime,
        created_by_user_id: UUID,
        note: str | None = None,
    ) -> FinanceTransaction:
        """Write the entry that mirrors a book sale or payroll payment.

        Linked amounts are derived, so the positive-amount rule does not
        apply (a sale below cost books a negative profit).
        """
        _ensure_category_matches(category, finance_type.value)

        transaction = FinanceTransaction(
            type=finance_type.value,
            category_id=category.id,
            amount=amount,
            currency=currency,
            payment_method=payment_method,
            occurred_at=occurred_at,
            note=note,
            reference_type=reference_type.value,
            reference_id=reference_id,
            created_by_user_id=created_by_user_id,
            is_deleted=False,
        )
        self.session.add(transaction)
        await self.session.flush()
        return transaction

    async def find_linked(
        self, reference_type: ReferenceType, reference_id: UUID
    ) -> FinanceTransaction | None:
        """The live entry linked to a book sale or payroll row, if any."""
        result = await self.session.execute(
            select(FinanceTransaction)
            .where(
                FinanceTransaction.reference_type == reference_type.value,
                FinanceTransaction.reference_id == reference_id,
                FinanceTransaction.is_deleted.is_(False),
            )
            .order_by(FinanceTransaction.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def sync_linked(
        self,
        transaction: FinanceTransaction,
        *,
        amount: Decimal,
        occurred_at: datetime,
        note: str | None,
        payment_method: str,
        currency: str,
    ) -> FinanceTransaction:
        """Bring a linked entry in line with its source record."""
        transaction.amount = amount
        transaction.occurred_at = occurred_at
        transaction.note = note
        transaction.payment_method = payment_method
        transaction.currency = currency
        await self.session.flush()
        return transaction

    async def _validate_reference(
        self,
        reference_type: ReferenceType | str | None,
        reference_id: UUID | str | None,
        transaction_id: UUID | None = None,
    ) -> tuple[str | None, UUID | None]:
        """Validate the tagged reference and dereference its target.

        ``transaction_id`` is the entry being updated, which may keep its own
        link.
        """
        if reference_type is None and reference_id is None:
            return None, None
        if reference_type is None or reference_id is None:
            raise ValidationError("reference_type and reference_id must be set together")

        tag = _coerce(ReferenceType, reference_type, "reference type")
        try:
            target_id = reference_id if isinstance(reference_id, UUID) else UUID(str(reference_id))
        except ValueError as e:
            raise ValidationError(f"Invalid reference id: {reference_id!r}") from e

        target_model = _REFERENCE_TARGETS[tag]
        target = await self.session.get(target_model, target_id)
        if target is None:
            raise NotFoundError(target_model.__name__, target_id)

        # A payroll is linked only by its payment
        if tag == ReferenceType.PAYROLL.value and target.status != PayrollStatus.PAID.value:
            raise ValidationError(
                f"Payroll {target_id} is not paid and cannot be referenced",
                context={"reference_type": tag, "reference_id": str(target_id)},
            )

        # One live linked entry per sale or payroll
        existing = await self.find_linked(ReferenceType(tag), target_id)
        if existing is not None and existing.id != transaction_id:
            raise ValidationError(
                f"{target_model.__name__} {target_id} already has a linked transaction",
                context={"reference_type": tag, "reference_id": str(target_id)},
            )
        return tag, target_id


def _ensure_category_matches(category: FinanceCategory, type_value: str) -> None:
    if category.type != type_value:
        raise CategoryTypeMismatchError(category.type, type_value)


def _coerce(enum_cls: type, value: Any, label: str) -> str:
    try:
        return enum_cls(value).value
    except ValueError as e:
        raise ValidationError(f"Invalid {label}: {value!r}") from e


def _clean_note(note: str | None) -> str | None:
    if note is None:
        return None
    if len(note) > MAX_NOTE_LENGTH:
        raise ValidationError(f"Note must be at most {MAX_NOTE_LENGTH} characters")
    return note


def _naive(value: date | datetime) -> date | datetime:
    return to_naive_utc(value) if isinstance(value, datetime) else value


def _range_start(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return to_naive_utc(value)
    return start_of_day(value)


def _default_currency() -> str:
    return get_settings().default_currency
