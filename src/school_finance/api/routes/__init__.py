"""API routes."""

from school_finance.api.routes.book_sales import router as book_sales_router
from school_finance.api.routes.books import router as books_router
from school_finance.api.routes.categories import router as categories_router
from school_finance.api.routes.health import router as health_router
from school_finance.api.routes.payroll import router as payroll_router
from school_finance.api.routes.reports import router as reports_router
from school_finance.api.routes.transactions import router as transactions_router

__all__ = [
    "book_sales_router",
    "books_router",
    "categories_router",
    "health_router",
    "payroll_router",
    "reports_router",
    "transactions_router",
]
