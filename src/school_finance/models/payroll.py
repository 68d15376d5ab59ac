"""Monthly teacher payroll model."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from school_finance.models.base import Base, TimestampMixin
from school_finance.models.enums import Currency, PaymentMethod, PayrollStatus, sql_in

if TYPE_CHECKING:
    from school_finance.models.users import User


class Payroll(Base, TimestampMixin):
    """One teacher's pay for one month."""

    __tablename__ = "payroll"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    teacher_user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    period_month: Mapped[date] = mapped_column(Date, nullable=False)
    base_salary: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    bonus: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    deduction: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    net_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default=PayrollStatus.DRAFT.value
    )
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(10), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=Currency.MMK.value)
    created_by_user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)

    __table_args__ = (
        UniqueConstraint("teacher_user_id", "period_month", name="payroll_teacher_month_unique"),
        CheckConstraint(f"status IN ({sql_in(PayrollStatus)})", name="payroll_status_check"),
        CheckConstraint(f"currency IN ({sql_in(Currency)})", name="payroll_currency_check"),
        CheckConstraint(
            f"payment_method IS NULL OR payment_method IN ({sql_in(PaymentMethod)})",
            name="payroll_payment_method_check",
        ),
        CheckConstraint("net_pay >= 0", name="payroll_net_pay_check"),
        CheckConstraint(
            "(status = 'PAID') = (paid_at IS NOT NULL)",
            name="payroll_paid_at_check",
        ),
    )

    # Relationships
    teacher_user: Mapped[User] = relationship(foreign_keys=[teacher_user_id])
    created_by_user: Mapped[User] = relationship(foreign_keys=[created_by_user_id])
