"""
Numeric and Date Utilities

Decimal rounding and calendar helpers shared by the schedule generator and the
delinquency jobs. NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from datetime import date, datetime
from typing import Union
import calendar

from .exceptions import InvalidArgumentError

# High precision for compound interest factors
getcontext().prec = 28

CENT = Decimal("0.01")
ZERO = Decimal("0")

Numeric = Union[Decimal, int, float, str]


def to_decimal(value: Numeric) -> Decimal:
    """Convert a numeric value to Decimal without binary float artifacts"""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise InvalidArgumentError(f"Not a number: {value!r}")


def round_money(value: Numeric) -> Decimal:
    """Round to 2 decimal places using round-half-up"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, falling back to the last day of shorter months"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def days_between(start: date, end: date) -> int:
    """Whole days from start to end (negative when end is earlier)"""
    return (as_date(end) - as_date(start)).days


def as_date(value: Union[date, datetime, str]) -> date:
    """Normalize a datetime or ISO string to a calendar date"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        if "T" in value or " " in value:
            return datetime.fromisoformat(value).date()
        return date.fromisoformat(value)
    raise TypeError(f"Cannot convert {type(value).__name__} to date")
