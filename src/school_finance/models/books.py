"""Book catalogue and book sale models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from school_finance.models.base import Base, TimestampMixin
from school_finance.models.enums import Currency, PaymentMethod, sql_in

if TYPE_CHECKING:
    from school_finance.models.users import User


class Book(Base, TimestampMixin):
    """Catalogue entry. Deactivated instead of deleted."""

    __tablename__ = "book"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sale_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    cost_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("sale_price >= 0", name="book_sale_price_check"),
        CheckConstraint("cost_price IS NULL OR cost_price >= 0", name="book_cost_price_check"),
    )


class BookSale(Base, TimestampMixin):
    """A multi-item sale. Totals are derived from the items."""

    __tablename__ = "book_sale"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    sold_at: Mapped[datetime] = mapped_column(nullable=False)
    customer_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    payment_method: Mapped[str] = mapped_column(String(10), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=Currency.MMK.value)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    profit_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    created_by_user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(f"currency IN ({sql_in(Currency)})", name="book_sale_currency_check"),
        CheckConstraint(
            f"payment_method IN ({sql_in(PaymentMethod)})",
            name="book_sale_payment_method_check",
        ),
    )

    # Relationships
    items: Mapped[list[BookSaleItem]] = relationship(
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="BookSaleItem.created_at",
    )
    created_by_user: Mapped[User] = relationship()


class BookSaleItem(Base, TimestampMixin):
    """One line of a book sale."""

    __tablename__ = "book_sale_item"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    sale_id: Mapped[UUID] = mapped_column(
        ForeignKey("book_sale.id", ondelete="CASCADE"),
        nullable=False,
    )
    book_id: Mapped[UUID] = mapped_column(ForeignKey("book.id"), nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("qty > 0", name="book_sale_item_qty_check"),
        CheckConstraint("unit_price >= 0", name="book_sale_item_unit_price_check"),
    )

    # Relationships
    sale: Mapped[BookSale] = relationship(back_populates="items")
    book: Mapped[Book] = relationship()

    @property
    def line_total(self) -> Decimal:
        """qty x unit_price; computed, never stored."""
        return self.unit_price * self.qty
