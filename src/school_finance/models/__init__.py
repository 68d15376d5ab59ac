"""ORM models for the school finance ledger."""

from school_finance.models.base import Base, TimestampMixin, utcnow
from school_finance.models.books import Book, BookSale, BookSaleItem
from school_finance.models.enums import (
    Currency,
    FinanceType,
    PaymentMethod,
    PayrollStatus,
    ReferenceType,
)
from school_finance.models.finance import FinanceCategory, FinanceTransaction
from school_finance.models.payroll import Payroll
from school_finance.models.users import User

__all__ = [
    "Base",
    "TimestampMixin",
    "utcnow",
    "Book",
    "BookSale",
    "BookSaleItem",
    "Currency",
    "FinanceType",
    "PaymentMethod",
    "PayrollStatus",
    "ReferenceType",
    "FinanceCategory",
    "FinanceTransaction",
    "Payroll",
    "User",
]
