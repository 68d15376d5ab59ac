"""String enums shared by models, services and API schemas."""

from __future__ import annotations

from enum import Enum


class FinanceType(str, Enum):
    """Direction of a category or ledger entry."""

    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


class PaymentMethod(str, Enum):
    """How money moved."""

    CASH = "CASH"
    KBZPAY = "KBZPAY"
    WAVEPAY = "WAVEPAY"
    BANK = "BANK"
    CARD = "CARD"


class Currency(str, Enum):
    """Supported currencies. Amounts are never converted between them."""

    MMK = "MMK"
    KRW = "KRW"
    USD = "USD"


class ReferenceType(str, Enum):
    """Discriminator for the record a linked ledger entry points back to."""

    BOOK_SALE = "BOOK_SALE"
    PAYROLL = "PAYROLL"


class PayrollStatus(str, Enum):
    """Payroll status values."""

    DRAFT = "DRAFT"
    CONFIRMED = "CONFIRMED"
    PAID = "PAID"


def sql_in(enum_cls: type[Enum]) -> str:
    """Render an enum's values as a SQL IN list for check constraints."""
    return ", ".join(f"'{member.value}'" for member in enum_cls)
