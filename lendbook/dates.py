"""
Calendar Stepper Module

Pure calendar-date arithmetic used to lay out repayment due dates.
Everything operates on ``datetime.date`` values (year/month/day, no time of
day), never on timestamps or UTC offsets, so a due date can't drift by a day
around daylight-saving changes or serialization boundaries.
"""

from datetime import date, datetime, timedelta
from typing import Union
import calendar

from .exceptions import ValidationError

DateLike = Union[date, str]


def parse_date(value: DateLike) -> date:
    """
    Coerce an ISO calendar date string or ``date`` to ``date``

    Args:
        value: ``date`` instance or ``YYYY-MM-DD`` string

    Returns:
        Calendar date

    Raises:
        ValidationError: If the value is not a calendar date
    """
    if isinstance(value, datetime):
        # datetimes carry a time of day (and maybe a zone); refuse to guess
        raise ValidationError("Expected a calendar date, got a datetime")
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError(f"Malformed date: {value!r} (expected YYYY-MM-DD)")
    raise ValidationError(f"Expected a date, got {type(value).__name__}")


def add_days(value: DateLike, days: int) -> date:
    """Add (or subtract) whole days"""
    return parse_date(value) + timedelta(days=days)


def add_weeks(value: DateLike, weeks: int) -> date:
    """Add (or subtract) whole weeks"""
    return add_days(value, weeks * 7)


def add_months(value: DateLike, months: int) -> date:
    """Add months to a date, clamping the day to the target month's length"""
    start_date = parse_date(value)
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def days_between(start: DateLike, end: DateLike) -> int:
    """Absolute number of days between two dates"""
    return abs((parse_date(end) - parse_date(start)).days)


def month_start(value: DateLike) -> date:
    """First day of the month containing ``value``"""
    return parse_date(value).replace(day=1)


def month_key(value: DateLike) -> str:
    """Calendar-month bucket key, e.g. '2025-09'"""
    d = parse_date(value)
    return f"{d.year:04d}-{d.month:02d}"
