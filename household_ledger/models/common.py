"""
Shared model helpers: money rounding, timestamps and month arithmetic.

DESIGN DECISION: Money is always Decimal quantized to cents with
ROUND_HALF_UP. Months are represented by their first day so they sort and
compare like dates, and are exchanged as "YYYY-MM" strings.
"""

import calendar
import re
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

CENT = Decimal("0.01")

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_money(value: Union[Decimal, int, str]) -> Decimal:
    """Quantize to two decimal places, half-up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_month(value: Union[str, date]) -> date:
    """
    Parse "YYYY-MM" (or any date) into the first day of that month.

    Raises ValueError on malformed input.
    """
    if isinstance(value, date):
        return value.replace(day=1)
    match = _MONTH_RE.match(value.strip())
    if not match:
        raise ValueError(f"invalid month format, expected YYYY-MM: {value!r}")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"invalid month: {value!r}")
    return date(year, month, 1)


def format_month(month: date) -> str:
    return f"{month.year:04d}-{month.month:02d}"


def last_day_of_month(month: date) -> date:
    return month.replace(day=calendar.monthrange(month.year, month.month)[1])


def previous_month(month: date) -> date:
    if month.month == 1:
        return date(month.year - 1, 12, 1)
    return date(month.year, month.month - 1, 1)


def next_month(month: date) -> date:
    if month.month == 12:
        return date(month.year + 1, 1, 1)
    return date(month.year, month.month + 1, 1)


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date, clamping `day` to the last day of the month (31 -> 28 in Feb)."""
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))
