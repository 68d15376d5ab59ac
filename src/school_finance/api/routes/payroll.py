"""Payroll endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from school_finance.api.dependencies import CurrentUserId, DbSession
from school_finance.api.schemas import (
    ErrorResponse,
    PayrollGenerateResponse,
    PayrollPay,
    PayrollResponse,
    PayrollUpdate,
)
from school_finance.services.payroll_service import PayrollService
from school_finance.services.periods import parse_month

router = APIRouter(prefix="/payroll", tags=["payroll"])


@router.get(
    "",
    response_model=list[PayrollResponse],
    responses={400: {"model": ErrorResponse}},
)
async def list_payroll(
    db: DbSession,
    user_id: CurrentUserId,
    month: Annotated[str | None, Query()] = None,
) -> list[PayrollResponse]:
    """Payroll rows for a month (``month=YYYY-MM``)."""
    payrolls = await PayrollService(db).list(parse_month(month))
    return [PayrollResponse.model_validate(p) for p in payrolls]


@router.post(
    "/generate",
    response_model=PayrollGenerateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def generate_payroll(
    db: DbSession,
    user_id: CurrentUserId,
    month: Annotated[str | None, Query()] = None,
) -> PayrollGenerateResponse:
    """Create DRAFT rows for active teachers missing one this month."""
    result = await PayrollService(db).generate(parse_month(month), created_by_user_id=user_id)
    await db.commit()
    return PayrollGenerateResponse.model_validate(result)


@router.patch(
    "/{payroll_id}",
    response_model=PayrollResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def update_payroll(
    db: DbSession,
    user_id: CurrentUserId,
    payroll_id: Annotated[UUID, Path()],
    payload: PayrollUpdate,
) -> PayrollResponse:
    """Edit amounts or confirm a payroll."""
    payroll = await PayrollService(db).update(payroll_id, payload.model_dump(exclude_unset=True))
    await db.commit()
    return PayrollResponse.model_validate(payroll)


@router.post(
    "/{payroll_id}/pay",
    response_model=PayrollResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def pay_payroll(
    db: DbSession,
    user_id: CurrentUserId,
    payroll_id: Annotated[UUID, Path()],
    payload: PayrollPay,
) -> PayrollResponse:
    """Pay a payroll and record the expense. Irreversible."""
    payroll = await PayrollService(db).pay(payroll_id, payload.payment_method, user_id)
    await db.commit()
    return PayrollResponse.model_validate(payroll)
