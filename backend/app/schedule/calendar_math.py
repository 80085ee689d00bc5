from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Optional, Tuple, Union


def days_in_month(year: int, month: int) -> int:
    _, month_days = calendar.monthrange(year, month)
    return month_days


def clamp_day(year: int, month: int, day: int) -> int:
    return min(day, days_in_month(year, month))


def shift_month(year: int, month: int, n: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + n
    return index // 12, index % 12 + 1


def as_calendar_day(value: Union[date, datetime]) -> date:
    # datetime is a date subclass; compare on the calendar day only
    if isinstance(value, datetime):
        return value.date()
    return value


def nth_occurrence(
    start_date: date,
    periodicity: str,
    n: int,
    due_day: Optional[int] = None,
) -> date:
    """
    Return the n-th (0-based) occurrence of a schedule anchored at start_date.

    weekly:  start_date + 7n days
    monthly: due_day (default: day of start_date) in month start_month + n
    annual:  due_day (default: day of start_date) in start_month of year start_year + n

    Monthly/annual days are clamped to the month length, so a 31 anchor lands
    on Feb 28/29 and a Feb 29 anchor lands on Feb 28 in common years.
    """
    if n < 0:
        raise ValueError("n must be >= 0")

    if periodicity == "weekly":
        return start_date + timedelta(days=7 * n)

    day = due_day or start_date.day
    if periodicity == "monthly":
        year, month = shift_month(start_date.year, start_date.month, n)
    elif periodicity == "annual":
        year, month = start_date.year + n, start_date.month
    else:
        raise ValueError(f"unknown periodicity: {periodicity!r}")
    return date(year, month, clamp_day(year, month, day))


def first_index_reaching(start_date: date, periodicity: str, target: date) -> int:
    """
    Smallest n whose occurrence may fall on or after target.

    Every index below the returned one is strictly earlier than target.
    """
    if target <= start_date:
        return 0
    if periodicity == "weekly":
        return (target - start_date).days // 7
    if periodicity == "monthly":
        return (target.year - start_date.year) * 12 + (target.month - start_date.month)
    if periodicity == "annual":
        return target.year - start_date.year
    raise ValueError(f"unknown periodicity: {periodicity!r}")
