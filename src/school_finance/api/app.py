"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from school_finance import __version__
from school_finance.api.routes import (
    book_sales_router,
    books_router,
    categories_router,
    health_router,
    payroll_router,
    reports_router,
    transactions_router,
)
from school_finance.database import dispose_db, init_db
from school_finance.errors import FinanceError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    init_db()
    yield
    # Shutdown
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="School Finance API",
        description="Ledger, book sales, payroll and reports",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(FinanceError)
    async def finance_error_handler(request: Request, exc: FinanceError) -> JSONResponse:
        """Map domain errors to their HTTP status."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(categories_router, prefix="/api/v1/finance")
    app.include_router(transactions_router, prefix="/api/v1/finance")
    app.include_router(reports_router, prefix="/api/v1/finance")
    app.include_router(books_router, prefix="/api/v1")
    app.include_router(book_sales_router, prefix="/api/v1")
    app.include_router(payroll_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
