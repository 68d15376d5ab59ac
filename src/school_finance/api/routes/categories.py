"""Finance category endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from school_finance.api.dependencies import CurrentUserId, DbSession
from school_finance.api.schemas import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    ErrorResponse,
)
from school_finance.services.category_registry import CategoryRegistry

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get(
    "",
    response_model=list[CategoryResponse],
    responses={400: {"model": ErrorResponse}},
)
async def list_categories(
    db: DbSession,
    user_id: CurrentUserId,
    type_filter: Annotated[str | None, Query(alias="type")] = None,
) -> list[CategoryResponse]:
    """List active categories, optionally of one type."""
    categories = await CategoryRegistry(db).list(type_filter)
    return [CategoryResponse.model_validate(c) for c in categories]


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_category(
    db: DbSession,
    user_id: CurrentUserId,
    payload: CategoryCreate,
) -> CategoryResponse:
    """Create a category."""
    category = await CategoryRegistry(db).create(
        finance_type=payload.type,
        name=payload.name,
        parent_id=payload.parent_id,
        is_active=payload.is_active,
    )
    await db.commit()
    return CategoryResponse.model_validate(category)


@router.patch(
    "/{category_id}",
    response_model=CategoryResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_category(
    db: DbSession,
    user_id: CurrentUserId,
    category_id: Annotated[UUID, Path()],
    payload: CategoryUpdate,
) -> CategoryResponse:
    """Rename, reparent or (de)activate a category."""
    category = await CategoryRegistry(db).update(
        category_id, payload.model_dump(exclude_unset=True)
    )
    await db.commit()
    return CategoryResponse.model_validate(category)
