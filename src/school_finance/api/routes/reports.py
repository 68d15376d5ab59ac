"""Finance report endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query

from school_finance.api.dependencies import CurrentUserId, DbSession
from school_finance.api.schemas import ErrorResponse, ReportResponse
from school_finance.services.periods import parse_day, parse_month, parse_year
from school_finance.services.report_service import ReportService

router = APIRouter(
    prefix="/reports",
    tags=["reports"],
    responses={400: {"model": ErrorResponse}},
)


@router.get("/all", response_model=ReportResponse)
async def all_time_report(db: DbSession, user_id: CurrentUserId) -> ReportResponse:
    """Totals over all time."""
    return ReportResponse.model_validate(await ReportService(db).all_report())


@router.get("/yearly", response_model=ReportResponse)
async def yearly_report(
    db: DbSession,
    user_id: CurrentUserId,
    year: Annotated[str | None, Query()] = None,
) -> ReportResponse:
    """Totals for one calendar year (``year=YYYY``)."""
    report = await ReportService(db).year_report(parse_year(year))
    return ReportResponse.model_validate(report)


@router.get("/monthly", response_model=ReportResponse)
async def monthly_report(
    db: DbSession,
    user_id: CurrentUserId,
    month: Annotated[str | None, Query()] = None,
) -> ReportResponse:
    """Totals for one month (``month=YYYY-MM``)."""
    first = parse_month(month)
    report = await ReportService(db).month_report(first.year, first.month)
    return ReportResponse.model_validate(report)


@router.get("/daily", response_model=ReportResponse)
async def daily_report(
    db: DbSession,
    user_id: CurrentUserId,
    day: Annotated[str | None, Query(alias="date")] = None,
) -> ReportResponse:
    """Totals for one day (``date=YYYY-MM-DD``); payroll covers the whole month."""
    report = await ReportService(db).day_report(parse_day(day))
    return ReportResponse.model_validate(report)
