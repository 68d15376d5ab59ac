"""School finance services."""

from school_finance.services.book_sale_service import BookSaleResult, BookSaleService, SaleItemInput
from school_finance.services.book_service import BookService
from school_finance.services.category_registry import (
    BOOK_SALES_CATEGORY,
    PAYROLL_CATEGORY,
    CategoryRegistry,
)
from school_finance.services.ledger_service import LedgerService, TransactionFilters, TransactionPage
from school_finance.services.payroll_service import GenerateResult, PayrollService
from school_finance.services.report_service import ReportResult, ReportService
from school_finance.services.state_machine import PayrollStateMachine

__all__ = [
    "BOOK_SALES_CATEGORY",
    "PAYROLL_CATEGORY",
    "BookSaleResult",
    "BookSaleService",
    "BookService",
    "CategoryRegistry",
    "GenerateResult",
    "LedgerService",
    "PayrollService",
    "PayrollStateMachine",
    "ReportResult",
    "ReportService",
    "SaleItemInput",
    "TransactionFilters",
    "TransactionPage",
]
