"""Book catalogue service."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_finance.errors import NotFoundError, ValidationError
from school_finance.models import Book
from school_finance.services.calculations import to_decimal

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {"title", "sku", "sale_price", "cost_price", "is_active"}


class BookService:
    """Catalogue CRUD and the price lookups book sales depend on."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, book_id: UUID) -> Book:
        """Load a book or raise NotFoundError."""
        book = await self.session.get(Book, book_id)
        if book is None:
            raise NotFoundError("Book", book_id)
        return book

    async def list(self, active_only: bool = True) -> list[Book]:
        """Books ordered by title."""
        query = select(Book).order_by(Book.title)
        if active_only:
            query = query.where(Book.is_active.is_(True))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def create(
        self,
        title: str,
        sale_price: Decimal | int | float | str,
        sku: str | None = None,
        cost_price: Decimal | int | float | str | None = None,
        is_active: bool = True,
    ) -> Book:
        """Add a book to the catalogue."""
        book = Book(
            title=_clean_title(title),
            sku=sku,
            sale_price=_price(sale_price, "sale price"),
            cost_price=_price(cost_price, "cost price") if cost_price is not None else None,
            is_active=is_active,
        )
        self.session.add(book)
        await self.session.flush()
        logger.info("Created book %s (%s)", book.title, book.id)
        return book

    async def update(self, book_id: UUID, changes: dict[str, Any]) -> Book:
        """Patch a book. ``cost_price`` set to None clears it."""
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update book fields: {', '.join(sorted(unknown))}")

        book = await self.get(book_id)
        if changes.get("title") is not None:
            book.title = _clean_title(changes["title"])
        if "sku" in changes:
            book.sku = changes["sku"]
        if changes.get("sale_price") is not None:
            book.sale_price = _price(changes["sale_price"], "sale price")
        if "cost_price" in changes:
            cost = changes["cost_price"]
            book.cost_price = _price(cost, "cost price") if cost is not None else None
        if changes.get("is_active") is not None:
            book.is_active = bool(changes["is_active"])

        await self.session.flush()
        return book

    async def deactivate(self, book_id: UUID) -> UUID:
        """Soft-delete a book; past sales keep referencing it."""
        book = await self.get(book_id)
        book.is_active = False
        await self.session.flush()
        logger.info("Deactivated book %s", book_id)
        return book.id

    async def cost_prices(self, book_ids: Iterable[UUID]) -> dict[UUID, Decimal | None]:
        """Current cost price per book id.

        Raises NotFoundError for the first id that does not resolve.
        """
        wanted = set(book_ids)
        if not wanted:
            return {}
        result = await self.session.execute(
            select(Book.id, Book.cost_price).where(Book.id.in_(wanted))
        )
        costs = {row.id: row.cost_price for row in result}
        missing = wanted - costs.keys()
        if missing:
            raise NotFoundError("Book", sorted(missing, key=str)[0])
        return costs


def _clean_title(title: str) -> str:
    title = (title or "").strip()
    if not title or len(title) > 500:
        raise ValidationError("Book title must be 1-500 characters")
    return title


def _price(value: Any, label: str) -> Decimal:
    price = to_decimal(value, label)
    if price < 0:
        raise ValidationError(f"{label.capitalize()} must not be negative")
    return price
