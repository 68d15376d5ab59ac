"""Finance reports over the ledger and the payroll table.

Transactions are matched on ``occurred_at``. Payroll is matched on
``period_month`` over every month the range touches, so a day or partial
range report carries the whole month's payroll total. Reports never write.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from school_finance.models import FinanceTransaction, FinanceType, Payroll
from school_finance.services.calculations import ZERO, to_decimal
from school_finance.services.periods import (
    end_of_day,
    first_of_month,
    last_of_month,
    start_of_day,
    to_naive_utc,
)


@dataclass
class CategoryTotal:
    """Sum of live transactions in one category."""

    category_id: UUID
    name: str
    type: str
    total: Decimal = ZERO


@dataclass
class PaymentMethodTotal:
    """Revenue and expense moved through one payment method."""

    payment_method: str
    total_revenue: Decimal = ZERO
    total_expense: Decimal = ZERO


@dataclass
class ReportResult:
    """Summary figures and breakdowns for a period."""

    total_revenue: Decimal = ZERO
    total_expense: Decimal = ZERO
    total_payroll: Decimal = ZERO
    by_category: list[CategoryTotal] = field(default_factory=list)
    by_payment_method: list[PaymentMethodTotal] = field(default_factory=list)

    @property
    def net(self) -> Decimal:
        return self.total_revenue - self.total_expense - self.total_payroll


def aggregate_transactions(
    transactions: Iterable[FinanceTransaction],
    total_payroll: Decimal = ZERO,
) -> ReportResult:
    """Fold transactions into totals and breakdowns.

    Breakdown entries appear in first-seen order and only for categories or
    methods with at least one transaction.
    """
    report = ReportResult(total_payroll=total_payroll)
    categories: dict[UUID, CategoryTotal] = {}
    methods: dict[str, PaymentMethodTotal] = {}

    for tx in transactions:
        amount = to_decimal(tx.amount)
        is_revenue = tx.type == FinanceType.REVENUE.value

        if is_revenue:
            report.total_revenue += amount
        else:
            report.total_expense += amount

        entry = categories.get(tx.category_id)
        if entry is None:
            category = tx.category
            entry = categories[tx.category_id] = CategoryTotal(
                category_id=tx.category_id,
                name=category.name if category is not None else "",
                type=category.type if category is not None else tx.type,
            )
        entry.total += amount

        method = methods.get(tx.payment_method)
        if method is None:
            method = methods[tx.payment_method] = PaymentMethodTotal(tx.payment_method)
        if is_revenue:
            method.total_revenue += amount
        else:
            method.total_expense += amount

    report.by_category = list(categories.values())
    report.by_payment_method = list(methods.values())
    return report


class ReportService:
    """Read-only aggregation for the reports endpoints."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def range_report(
        self,
        start: date | datetime | None,
        end: date | datetime | None,
    ) -> ReportResult:
        """Report over an inclusive range; a missing bound is open."""
        start_at = _as_start(start) if start is not None else None
        end_at = _as_end(end) if end is not None else None

        transactions = await self._transactions(start_at, end_at)
        total_payroll = await self._payroll_total(
            start_at.date() if start_at is not None else None,
            end_at.date() if end_at is not None else None,
        )
        return aggregate_transactions(transactions, total_payroll)

    async def all_report(self) -> ReportResult:
        """Report over all time."""
        return await self.range_report(None, None)

    async def year_report(self, year: int) -> ReportResult:
        return await self.range_report(date(year, 1, 1), date(year, 12, 31))

    async def month_report(self, year: int, month: int) -> ReportResult:
        first = date(year, month, 1)
        return await self.range_report(first, last_of_month(first))

    async def day_report(self, day: date) -> ReportResult:
        """Report for one day, with the whole month's payroll attributed."""
        return await self.range_report(day, day)

    async def _transactions(
        self, start_at: datetime | None, end_at: datetime | None
    ) -> Sequence[FinanceTransaction]:
        query = select(FinanceTransaction).where(FinanceTransaction.is_deleted.is_(False))
        if start_at is not None:
            query = query.where(FinanceTransaction.occurred_at >= start_at)
        if end_at is not None:
            query = query.where(FinanceTransaction.occurred_at <= end_at)

        result = await self.session.execute(
            query.options(selectinload(FinanceTransaction.category)).order_by(
                FinanceTransaction.occurred_at
            )
        )
        return result.scalars().all()

    async def _payroll_total(self, start: date | None, end: date | None) -> Decimal:
        # Every status counts, and the lower bound snaps to its month start
        query = select(func.coalesce(func.sum(Payroll.net_pay), 0))
        if start is not None:
            query = query.where(Payroll.period_month >= first_of_month(start))
        if end is not None:
            query = query.where(Payroll.period_month <= end)
        return to_decimal(await self.session.scalar(query) or 0)


def _as_start(value: date | datetime) -> datetime:
    return to_naive_utc(value) if isinstance(value, datetime) else start_of_day(value)


def _as_end(value: date | datetime) -> datetime:
    return to_naive_utc(value) if isinstance(value, datetime) else end_of_day(value)
