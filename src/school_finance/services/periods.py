"""Date and period helpers shared by the ledger, payroll and reports."""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, time, timezone

from school_finance.errors import ValidationError

_YEAR_RE = re.compile(r"^\d{4}$")
_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def start_of_day(value: date | datetime) -> datetime:
    """Midnight at the start of the given day."""
    day = value.date() if isinstance(value, datetime) else value
    return datetime.combine(day, time.min)


def end_of_day(value: date | datetime) -> datetime:
    """Last representable instant of the given day."""
    day = value.date() if isinstance(value, datetime) else value
    return datetime.combine(day, time.max)


def first_of_month(value: date) -> date:
    """First day of the month containing value."""
    return value.replace(day=1)


def last_of_month(value: date) -> date:
    """Last day of the month containing value."""
    return value.replace(day=calendar.monthrange(value.year, value.month)[1])


def parse_year(text: str | None) -> int:
    """Parse a YYYY query value."""
    if not text or not _YEAR_RE.match(text):
        raise ValidationError("Query year is required and must be YYYY")
    return int(text)


def parse_month(text: str | None) -> date:
    """Parse a YYYY-MM query value into the first day of that month."""
    match = _MONTH_RE.match(text or "")
    if match is None:
        raise ValidationError("Query month is required and must be YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month: {text}")
    return date(year, month, 1)


def parse_day(text: str | None) -> date:
    """Parse a YYYY-MM-DD query value."""
    if not text or not _DAY_RE.match(text):
        raise ValidationError("Query date is required and must be YYYY-MM-DD")
    try:
        return date.fromisoformat(text)
    except ValueError as e:
        raise ValidationError(f"Invalid date: {text}") from e


def format_month(value: date) -> str:
    """Render a month as YYYY-MM."""
    return f"{value.year:04d}-{value.month:02d}"
