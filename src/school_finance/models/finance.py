"""Finance category and ledger transaction models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from school_finance.models.base import Base, TimestampMixin
from school_finance.models.enums import (
    Currency,
    FinanceType,
    PaymentMethod,
    ReferenceType,
    sql_in,
)

if TYPE_CHECKING:
    from school_finance.models.users import User


class FinanceCategory(Base, TimestampMixin):
    """Revenue or expense category; categories form a tree via parent_id."""

    __tablename__ = "finance_category"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    parent_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("finance_category.id"),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("type", "name", name="finance_category_type_name_unique"),
        CheckConstraint(f"type IN ({sql_in(FinanceType)})", name="finance_category_type_check"),
    )

    # Relationships
    parent: Mapped[FinanceCategory | None] = relationship(remote_side="FinanceCategory.id")


class FinanceTransaction(Base, TimestampMixin):
    """A single ledger entry.

    Manual entries always carry a positive amount. Entries derived from book
    sales carry the sale's profit, which may be zero or negative.
    """

    __tablename__ = "finance_transaction"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    category_id: Mapped[UUID] = mapped_column(
        ForeignKey("finance_category.id"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=Currency.MMK.value)
    payment_method: Mapped[str] = mapped_column(String(10), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    reference_id: Mapped[UUID | None] = mapped_column(nullable=True)
    created_by_user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint(f"type IN ({sql_in(FinanceType)})", name="finance_transaction_type_check"),
        CheckConstraint(
            f"currency IN ({sql_in(Currency)})",
            name="finance_transaction_currency_check",
        ),
        CheckConstraint(
            f"payment_method IN ({sql_in(PaymentMethod)})",
            name="finance_transaction_payment_method_check",
        ),
        CheckConstraint(
            f"reference_type IS NULL OR reference_type IN ({sql_in(ReferenceType)})",
            name="finance_transaction_reference_type_check",
        ),
        CheckConstraint(
            "(reference_type IS NULL) = (reference_id IS NULL)",
            name="finance_transaction_reference_pair_check",
        ),
        Index("ix_finance_transaction_occurred_at", "is_deleted", "occurred_at"),
        Index("ix_finance_transaction_reference", "reference_type", "reference_id"),
    )

    # Relationships
    category: Mapped[FinanceCategory] = relationship()
    created_by_user: Mapped[User] = relationship()
