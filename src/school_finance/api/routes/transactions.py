"""Finance transaction endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from school_finance.api.dependencies import CurrentUserId, DbSession
from school_finance.api.schemas import (
    DeletedResponse,
    ErrorResponse,
    Pagination,
    TransactionCreate,
    TransactionListResponse,
    TransactionResponse,
    TransactionUpdate,
)
from school_finance.services.ledger_service import LedgerService, TransactionFilters

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get(
    "",
    response_model=TransactionListResponse,
    responses={400: {"model": ErrorResponse}},
)
async def list_transactions(
    db: DbSession,
    user_id: CurrentUserId,
    type_filter: Annotated[str | None, Query(alias="type")] = None,
    date_from: Annotated[date | None, Query(alias="from")] = None,
    date_to: Annotated[date | None, Query(alias="to")] = None,
    category_id: Annotated[UUID | None, Query(alias="categoryId")] = None,
    payment_method: Annotated[str | None, Query(alias="paymentMethod")] = None,
    q: str | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(alias="pageSize", ge=1, le=100)] = 20,
) -> TransactionListResponse:
    """List live transactions with filters, newest first."""
    result = await LedgerService(db).list(
        TransactionFilters(
            finance_type=type_filter,
            date_from=date_from,
            date_to=date_to,
            category_id=category_id,
            payment_method=payment_method,
            q=q,
            page=page,
            page_size=page_size,
        )
    )
    return TransactionListResponse(
        items=[TransactionResponse.model_validate(tx) for tx in result.items],
        pagination=Pagination(
            page=result.page,
            page_size=result.page_size,
            total=result.total,
            total_pages=result.total_pages,
        ),
    )


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_transaction(
    db: DbSession,
    user_id: CurrentUserId,
    payload: TransactionCreate,
) -> TransactionResponse:
    """Record a manual ledger entry."""
    transaction = await LedgerService(db).create(
        finance_type=payload.type,
        category_id=payload.category_id,
        amount=payload.amount,
        currency=payload.currency,
        payment_method=payload.payment_method,
        occurred_at=payload.occurred_at,
        note=payload.note,
        reference_type=payload.reference_type,
        reference_id=payload.reference_id,
        created_by_user_id=user_id,
    )
    await db.commit()
    return TransactionResponse.model_validate(transaction)


@router.patch(
    "/{transaction_id}",
    response_model=TransactionResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_transaction(
    db: DbSession,
    user_id: CurrentUserId,
    transaction_id: Annotated[UUID, Path()],
    payload: TransactionUpdate,
) -> TransactionResponse:
    """Patch a live transaction."""
    transaction = await LedgerService(db).update(
        transaction_id, payload.model_dump(exclude_unset=True)
    )
    await db.commit()
    return TransactionResponse.model_validate(transaction)


@router.delete(
    "/{transaction_id}",
    response_model=DeletedResponse,
    responses={404: {"model": ErrorResponse}},
)
async def delete_transaction(
    db: DbSession,
    user_id: CurrentUserId,
    transaction_id: Annotated[UUID, Path()],
) -> DeletedResponse:
    """Soft-delete a transaction."""
    deleted_id = await LedgerService(db).soft_delete(transaction_id)
    await db.commit()
    return DeletedResponse(id=deleted_id)
