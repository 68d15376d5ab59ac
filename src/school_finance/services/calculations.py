"""Pure money rules for book sales and payroll.

Nothing here touches the database, so these functions are the ones the
property tests exercise directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping
from uuid import UUID

from school_finance.errors import ValidationError

ZERO = Decimal("0")


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """Coerce an API or service input to Decimal, rejecting NaN/inf."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}: {value!r}")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValidationError(f"Invalid {field}: {value!r}") from e
    if not result.is_finite():
        raise ValidationError(f"Invalid {field}: {value!r}")
    return result


def plain(value: Decimal) -> str:
    """Render an amount without exponent or trailing zeros (3000.00 -> 3000)."""
    text = format(value.normalize(), "f")
    return "0" if text in ("-0", "0") else text


def compute_net_pay(base_salary: Decimal, bonus: Decimal, deduction: Decimal) -> Decimal:
    """Net pay = max(0, base + bonus - deduction)."""
    return max(ZERO, base_salary + bonus - deduction)


@dataclass(frozen=True)
class SaleLine:
    """A sale line as far as totals are concerned."""

    book_id: UUID
    qty: int
    unit_price: Decimal


@dataclass(frozen=True)
class SaleTotals:
    """Derived figures for a book sale."""

    total_amount: Decimal
    total_profit: Decimal
    cost_price_missing: bool

    @property
    def ledger_note(self) -> str:
        """Note written on the linked ledger entry."""
        return f"Book sale gross={plain(self.total_amount)}, profit={plain(self.total_profit)}"


def compute_sale_totals(
    lines: Iterable[SaleLine],
    cost_by_book: Mapping[UUID, Decimal | None],
) -> SaleTotals:
    """Gross and profit for a set of lines.

    A book without a cost price is costed at zero and flags the result; the
    profit is then overstated and callers surface a warning, not an error.
    """
    total_amount = ZERO
    total_profit = ZERO
    cost_price_missing = False

    for line in lines:
        cost = cost_by_book.get(line.book_id)
        if cost is None:
            cost_price_missing = True
            cost = ZERO
        total_amount += line.unit_price * line.qty
        total_profit += (line.unit_price - cost) * line.qty

    return SaleTotals(
        total_amount=total_amount,
        total_profit=total_profit,
        cost_price_missing=cost_price_missing,
    )
