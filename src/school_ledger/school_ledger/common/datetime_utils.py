"""Calendar math on plain date components.

Nothing in here looks at the local wall clock except ``SystemClock``; every
other helper works on ``date`` objects only so results do not depend on the
process timezone.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime
from typing import Protocol

from ..core.exceptions import ValidationError


def _require_month(year: int, month: int) -> None:
    if not 1 <= int(month) <= 12:
        raise ValidationError(f"Invalid month: {month}")
    if not 1 <= int(year) <= 9999:
        raise ValidationError(f"Invalid year: {year}")


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date (YYYY-MM-DD): {value!r}")


def days_in_month(year: int, month: int) -> int:
    _require_month(year, month)
    return calendar.monthrange(int(year), int(month))[1]


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of the month."""
    last = days_in_month(year, month)
    return date(int(year), int(month), 1), date(int(year), int(month), last)


def enumerate_days(year: int, month: int) -> list[date]:
    last = days_in_month(year, month)
    return [date(int(year), int(month), day) for day in range(1, last + 1)]


def add_months(value: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month length."""
    index = value.year * 12 + (value.month - 1) + int(months)
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(value.day, days_in_month(year, month)))


def months_elapsed(start: date, end: date) -> int:
    """Number of whole months from ``start`` to ``end``.

    A month counts once ``add_months(start, n)`` is on or before ``end``, so
    Jan 31 -> Feb 29 is one month in a leap year. Returns 0 when ``end``
    precedes ``start``.
    """
    if end <= start:
        return 0
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if add_months(start, months) > end:
        months -= 1
    return max(months, 0)


class Clock(Protocol):
    def today(self) -> date:
        raise NotImplementedError


class SystemClock:
    """Current local date.

    Note: Wrapped so tests can inject a fixed date instead of patching.
    """

    def today(self) -> date:
        return datetime.now().date()


@dataclass
class FixedClock:
    current: date

    def today(self) -> date:
        return self.current
