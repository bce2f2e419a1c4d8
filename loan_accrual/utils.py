"""Utility functions for the accrual engine.

This module provides helpers for coercing user input into Python data types,
for day-granular date arithmetic (adding months or weeks, counting days) and
for the rate conversions shared by the ledger, the amortization models and the
settlement calculator.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, getcontext
from typing import Any

from .config import DAYS_IN_YEAR, DECIMAL_PRECISION, PERIOD_DAYS, PERIODS_PER_YEAR

getcontext().prec = DECIMAL_PRECISION  # increase decimal precision to avoid rounding errors

CENT = Decimal("0.01")
ZERO = Decimal("0")


def parse_date(value: Any) -> date:
    """Coerce ``value`` into a ``date``, dropping any time-of-day component.

    Accepts ``date`` and ``datetime`` objects as well as ISO strings such as
    ``"2024-01-31"`` or ``"2024-01-31T14:30:00Z"``.

    Raises
    ------
    ValueError
        If the value cannot be interpreted as a calendar date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError as exc:
            raise ValueError(f"Invalid date string: {value}") from exc
    raise ValueError(f"Invalid date value: {value!r}")


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def advance_period(dt: date, period: str, count: int = 1) -> date:
    """Advance ``dt`` by ``count`` monthly or weekly periods."""
    if period == "Monthly":
        return add_months(dt, count)
    return dt + timedelta(weeks=count)


def to_decimal(value: Any) -> Decimal:
    """Convert a number or numeric string into a ``Decimal``.

    Strings may carry thousands separators. Floats go through ``str`` so that
    ``0.1`` becomes ``Decimal("0.1")`` rather than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid numeric value: {value}")
    try:
        if isinstance(value, (int, float)):
            return Decimal(str(value))
        cleaned = str(value).replace(",", "").strip()
        result = Decimal(cleaned)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def days_between(start: date, end: date) -> int:
    """Whole calendar days from ``start`` to ``end`` (negative if reversed)."""
    return (end - start).days


def daily_rate(annual_rate: Decimal) -> Decimal:
    """ACT/365 daily rate as a fraction for an annual percentage rate."""
    return annual_rate / Decimal(100) / DAYS_IN_YEAR


def period_rate(annual_rate: Decimal, period: str) -> Decimal:
    """Per-period rate as a fraction (12 periods a year monthly, 52 weekly)."""
    return annual_rate / Decimal(100) / Decimal(periods_per_year(period))


def periods_per_year(period: str) -> int:
    return PERIODS_PER_YEAR.get(period, PERIODS_PER_YEAR["Monthly"])


def period_length_days(period: str) -> Decimal:
    return PERIOD_DAYS.get(period, PERIOD_DAYS["Monthly"])


def round_money(value: Decimal) -> Decimal:
    """Round to currency precision (2 decimal places, half up)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
