"""Book sale service - multi-item sales with one linked revenue entry each."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from school_finance.config import get_settings
from school_finance.database import unit_of_work
from school_finance.errors import NotFoundError, ValidationError
from school_finance.models import (
    BookSale,
    BookSaleItem,
    Currency,
    PaymentMethod,
    ReferenceType,
)
from school_finance.services.book_service import BookService
from school_finance.services.calculations import SaleLine, compute_sale_totals, to_decimal
from school_finance.services.category_registry import BOOK_SALES_CATEGORY, CategoryRegistry
from school_finance.services.ledger_service import LedgerService
from school_finance.services.periods import end_of_day, start_of_day, to_naive_utc

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {"sold_at", "customer_name", "payment_method", "currency", "items"}


@dataclass(frozen=True)
class SaleItemInput:
    """A requested sale line. ``id`` is set when editing an existing line."""

    book_id: UUID
    qty: int
    unit_price: Decimal | int | float | str
    id: UUID | None = None


@dataclass
class BookSaleResult:
    """A sale plus the non-fatal cost warning."""

    sale: BookSale
    cost_price_missing_warning: bool


class BookSaleService:
    """Service for recording and correcting book sales.

    Operations:
    - create: persist sale + items and the linked BOOK_SALE revenue entry
    - update: reconcile items by id, recompute totals, resync the entry
    - list: read model with item lines and creator identity

    Sales are never deleted; corrections go through update.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.books = BookService(session)
        self.categories = CategoryRegistry(session)
        self.ledger = LedgerService(session)

    async def get(self, sale_id: UUID) -> BookSale:
        """Load a sale with items, books and creator."""
        result = await self.session.execute(
            _with_read_model(select(BookSale).where(BookSale.id == sale_id))
            .execution_options(populate_existing=True)
        )
        sale = result.scalar_one_or_none()
        if sale is None:
            raise NotFoundError("Book sale", sale_id)
        return sale

    async def list(
        self,
        date_from: date | datetime | None = None,
        date_to: date | datetime | None = None,
    ) -> list[BookSale]:
        """Sales in an inclusive date range, newest first."""
        query = select(BookSale)
        if date_from is not None:
            start = to_naive_utc(date_from) if isinstance(date_from, datetime) else start_of_day(date_from)
            query = query.where(BookSale.sold_at >= start)
        if date_to is not None:
            end = to_naive_utc(date_to) if isinstance(date_to, datetime) else date_to
            query = query.where(BookSale.sold_at <= end_of_day(end))

        result = await self.session.execute(
            _with_read_model(query).order_by(BookSale.sold_at.desc())
        )
        return list(result.scalars().unique().all())

    async def create(
        self,
        *,
        sold_at: datetime,
        payment_method: PaymentMethod | str,
        items: Sequence[SaleItemInput],
        created_by_user_id: UUID,
        customer_name: str | None = None,
        currency: Currency | str | None = None,
    ) -> BookSaleResult:
        """Record a sale atomically with its ledger entry."""
        lines = _validate_items(items)
        method = _coerce(PaymentMethod, payment_method, "payment method")
        currency_value = _coerce(Currency, currency or get_settings().default_currency, "currency")
        sold_at = to_naive_utc(sold_at)

        costs = await self.books.cost_prices(line.book_id for line in lines)
        totals = compute_sale_totals(lines, costs)

        async with unit_of_work(self.session):
            sale = BookSale(
                sold_at=sold_at,
                customer_name=_clean_customer(customer_name),
                payment_method=method,
                currency=currency_value,
                total_amount=totals.total_amount,
                profit_amount=totals.total_profit,
                created_by_user_id=created_by_user_id,
            )
            self.session.add(sale)
            await self.session.flush()

            self.session.add_all(
                [
                    BookSaleItem(
                        sale_id=sale.id,
                        book_id=line.book_id,
                        qty=line.qty,
                        unit_price=line.unit_price,
                    )
                    for line in lines
                ]
            )
            await self.session.flush()

            category = await self.categories.get_or_create(*BOOK_SALES_CATEGORY)
            await self.ledger.record_linked(
                reference_type=ReferenceType.BOOK_SALE,
                reference_id=sale.id,
                category=category,
                finance_type=BOOK_SALES_CATEGORY[0],
                amount=totals.total_profit,
                payment_method=method,
                currency=currency_value,
                occurred_at=sold_at,
                created_by_user_id=created_by_user_id,
                note=totals.ledger_note,
            )

        logger.info(
            "Recorded book sale %s gross=%s profit=%s cost_missing=%s",
            sale.id,
            totals.total_amount,
            totals.total_profit,
            totals.cost_price_missing,
        )
        return BookSaleResult(
            sale=await self.get(sale.id),
            cost_price_missing_warning=totals.cost_price_missing,
        )

    async def update(self, sale_id: UUID, changes: dict[str, Any]) -> BookSaleResult:
        """Correct a sale.

        Items are reconciled by id: payload lines without an id are inserted,
        lines whose id is present in both are updated in place, and current
        lines absent from the payload are deleted. Totals are recomputed from
        the books' current cost prices. If the linked ledger entry has been
        soft-deleted the sale is still updated and no replacement is created.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update sale fields: {', '.join(sorted(unknown))}")
        if "items" not in changes:
            raise ValidationError("At least one item is required")

        requested = list(changes["items"] or [])
        lines = _validate_items(requested)

        sale = await self.get(sale_id)
        current = {item.id: item for item in sale.items}

        payload_ids = [item.id for item in requested if item.id is not None]
        if len(payload_ids) != len(set(payload_ids)):
            raise ValidationError("Duplicate item id in payload")
        for item_id in payload_ids:
            if item_id not in current:
                raise NotFoundError("Book sale item", item_id)

        # Fail on unknown books before touching anything
        await self.books.cost_prices(line.book_id for line in lines)

        async with unit_of_work(self.session):
            keep = set(payload_ids)
            for item_id, item in current.items():
                if item_id not in keep:
                    sale.items.remove(item)

            for requested_item, line in zip(requested, lines):
                if requested_item.id is not None:
                    item = current[requested_item.id]
                    item.book_id = line.book_id
                    item.qty = line.qty
                    item.unit_price = line.unit_price
                else:
                    sale.items.append(
                        BookSaleItem(
                            sale_id=sale.id,
                            book_id=line.book_id,
                            qty=line.qty,
                            unit_price=line.unit_price,
                        )
                    )
            await self.session.flush()

            items_after = [
                SaleLine(book_id=item.book_id, qty=item.qty, unit_price=item.unit_price)
                for item in sale.items
            ]
            costs = await self.books.cost_prices(line.book_id for line in items_after)
            totals = compute_sale_totals(items_after, costs)

            if changes.get("sold_at") is not None:
                sale.sold_at = to_naive_utc(changes["sold_at"])
            if "customer_name" in changes:
                sale.customer_name = _clean_customer(changes["customer_name"])
            if changes.get("payment_method") is not None:
                sale.payment_method = _coerce(PaymentMethod, changes["payment_method"], "payment method")
            if changes.get("currency") is not None:
                sale.currency = _coerce(Currency, changes["currency"], "currency")
            sale.total_amount = totals.total_amount
            sale.profit_amount = totals.total_profit
            await self.session.flush()

            linked = await self.ledger.find_linked(ReferenceType.BOOK_SALE, sale.id)
            if linked is not None:
                await self.ledger.sync_linked(
                    linked,
                    amount=totals.total_profit,
                    occurred_at=sale.sold_at,
                    note=totals.ledger_note,
                    payment_method=sale.payment_method,
                    currency=sale.currency,
                )
            else:
                logger.warning(
                    "Book sale %s has no live ledger entry; totals updated without one",
                    sale.id,
                )

        logger.info(
            "Updated book sale %s gross=%s profit=%s",
            sale.id,
            totals.total_amount,
            totals.total_profit,
        )
        return BookSaleResult(
            sale=await self.get(sale.id),
            cost_price_missing_warning=totals.cost_price_missing,
        )


def _with_read_model(query):
    return query.options(
        selectinload(BookSale.items).selectinload(BookSaleItem.book),
        selectinload(BookSale.created_by_user),
    )


def _validate_items(items: Sequence[SaleItemInput]) -> list[SaleLine]:
    if not items:
        raise ValidationError("At least one item is required")

    lines = []
    for item in items:
        if isinstance(item.qty, bool) or not isinstance(item.qty, int) or item.qty <= 0:
            raise ValidationError(f"Item quantity must be a positive integer: {item.qty!r}")
        unit_price = to_decimal(item.unit_price, "unit price")
        if unit_price < 0:
            raise ValidationError("Unit price must not be negative")
        lines.append(SaleLine(book_id=item.book_id, qty=item.qty, unit_price=unit_price))
    return lines


def _coerce(enum_cls: type, value: Any, label: str) -> str:
    try:
        return enum_cls(value).value
    except ValueError as e:
        raise ValidationError(f"Invalid {label}: {value!r}") from e


def _clean_customer(name: str | None) -> str | None:
    if name is None:
        return None
    if len(name) > 200:
        raise ValidationError("Customer name must be at most 200 characters")
    return name
