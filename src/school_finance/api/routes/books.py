"""Book catalogue endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from school_finance.api.dependencies import CurrentUserId, DbSession
from school_finance.api.schemas import (
    BookCreate,
    BookResponse,
    BookUpdate,
    DeactivatedResponse,
    ErrorResponse,
)
from school_finance.services.book_service import BookService

router = APIRouter(prefix="/books", tags=["books"])


@router.get("", response_model=list[BookResponse])
async def list_books(
    db: DbSession,
    user_id: CurrentUserId,
    active_only: Annotated[bool, Query(alias="activeOnly")] = True,
) -> list[BookResponse]:
    """List books ordered by title."""
    books = await BookService(db).list(active_only=active_only)
    return [BookResponse.model_validate(b) for b in books]


@router.post(
    "",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_book(
    db: DbSession,
    user_id: CurrentUserId,
    payload: BookCreate,
) -> BookResponse:
    """Add a book to the catalogue."""
    book = await BookService(db).create(
        title=payload.title,
        sku=payload.sku,
        sale_price=payload.sale_price,
        cost_price=payload.cost_price,
        is_active=payload.is_active,
    )
    await db.commit()
    return BookResponse.model_validate(book)


@router.patch(
    "/{book_id}",
    response_model=BookResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_book(
    db: DbSession,
    user_id: CurrentUserId,
    book_id: Annotated[UUID, Path()],
    payload: BookUpdate,
) -> BookResponse:
    """Patch a book."""
    book = await BookService(db).update(book_id, payload.model_dump(exclude_unset=True))
    await db.commit()
    return BookResponse.model_validate(book)


@router.delete(
    "/{book_id}",
    response_model=DeactivatedResponse,
    responses={404: {"model": ErrorResponse}},
)
async def delete_book(
    db: DbSession,
    user_id: CurrentUserId,
    book_id: Annotated[UUID, Path()],
) -> DeactivatedResponse:
    """Deactivate a book; sales history keeps it."""
    deactivated_id = await BookService(db).deactivate(book_id)
    await db.commit()
    return DeactivatedResponse(id=deactivated_id)
