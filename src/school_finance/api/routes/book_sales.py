"""Book sale endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from school_finance.api.dependencies import CurrentUserId, DbSession
from school_finance.api.schemas import (
    BookSaleCreate,
    BookSaleResponse,
    BookSaleUpdate,
    BookSaleWriteResponse,
    ErrorResponse,
)
from school_finance.services.book_sale_service import BookSaleResult, BookSaleService, SaleItemInput

router = APIRouter(prefix="/book-sales", tags=["book-sales"])


def _write_response(result: BookSaleResult) -> BookSaleWriteResponse:
    return BookSaleWriteResponse(
        sale=BookSaleResponse.model_validate(result.sale),
        cost_price_missing_warning=result.cost_price_missing_warning,
    )


@router.get("", response_model=list[BookSaleResponse])
async def list_book_sales(
    db: DbSession,
    user_id: CurrentUserId,
    date_from: Annotated[date | None, Query(alias="from")] = None,
    date_to: Annotated[date | None, Query(alias="to")] = None,
) -> list[BookSaleResponse]:
    """List sales in a date range, newest first."""
    sales = await BookSaleService(db).list(date_from, date_to)
    return [BookSaleResponse.model_validate(s) for s in sales]


@router.post(
    "",
    response_model=BookSaleWriteResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_book_sale(
    db: DbSession,
    user_id: CurrentUserId,
    payload: BookSaleCreate,
) -> BookSaleWriteResponse:
    """Record a sale and its revenue entry."""
    result = await BookSaleService(db).create(
        sold_at=payload.sold_at,
        customer_name=payload.customer_name,
        payment_method=payload.payment_method,
        currency=payload.currency,
        items=[
            SaleItemInput(book_id=item.book_id, qty=item.qty, unit_price=item.unit_price)
            for item in payload.items
        ],
        created_by_user_id=user_id,
    )
    await db.commit()
    return _write_response(result)


@router.patch(
    "/{sale_id}",
    response_model=BookSaleWriteResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_book_sale(
    db: DbSession,
    user_id: CurrentUserId,
    sale_id: Annotated[UUID, Path()],
    payload: BookSaleUpdate,
) -> BookSaleWriteResponse:
    """Correct a sale; the item list is reconciled by id."""
    changes = payload.model_dump(exclude_unset=True, exclude={"items"})
    changes["items"] = [
        SaleItemInput(
            id=item.id,
            book_id=item.book_id,
            qty=item.qty,
            unit_price=item.unit_price,
        )
        for item in payload.items
    ]
    result = await BookSaleService(db).update(sale_id, changes)
    await db.commit()
    return _write_response(result)
