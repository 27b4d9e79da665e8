"""
dates.py - Calendar arithmetic and date parsing

Provides:
1. add_months() - Calendar month arithmetic clamped to month end
2. days_between() - Absolute day count between two dates
3. parse_iso_date() - Result-style parser returning DateResult
4. to_date() - Coerce date/datetime/ISO string for internal use

Parsing never raises on bad input: it returns a DateResult carrying either
the parsed date or a DateError, and the caller decides whether to raise or
fall back.
"""

from __future__ import annotations
from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from .core import DateError


def add_months(start: date, months: int) -> date:
    """
    Shift a date by a whole number of calendar months.

    When the target month is shorter than the start day the result is
    clamped to the target month's last day (Jan 31 + 1 month = Feb 28/29).

    Example:
        >>> add_months(date(2024, 1, 31), 1)
        datetime.date(2024, 2, 29)
        >>> add_months(date(2024, 11, 15), 3)
        datetime.date(2025, 2, 15)
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, monthrange(year, month)[1])
    return date(year, month, day)


def days_between(start: date, end: date) -> int:
    """Absolute number of days between two dates."""
    return abs((end - start).days)


@dataclass(frozen=True, slots=True)
class DateResult:
    """
    Either a parsed date or the reason parsing failed.

    Attributes:
        value: Parsed date, or None on failure.
        error: DateError describing the failure, or None on success.
    """
    value: Optional[date] = None
    error: Optional[DateError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> date:
        """Return the date or raise the stored DateError."""
        if self.error is not None:
            raise self.error
        return self.value

    def unwrap_or(self, fallback: date) -> date:
        return self.value if self.error is None else fallback


def parse_iso_date(value: Any) -> DateResult:
    """
    Parse an ISO-8601 date (YYYY-MM-DD, or a full timestamp whose date part
    is taken).

    Accepts date and datetime instances unchanged (datetime is truncated).
    """
    if isinstance(value, datetime):
        return DateResult(value=value.date())
    if isinstance(value, date):
        return DateResult(value=value)
    if not isinstance(value, str) or not value.strip():
        return DateResult(error=DateError(value, "expected a non-empty ISO date string"))

    text = value.strip()
    try:
        if len(text) > 10:
            return DateResult(value=datetime.fromisoformat(text.replace("Z", "+00:00")).date())
        return DateResult(value=date.fromisoformat(text))
    except ValueError as exc:
        return DateResult(error=DateError(value, str(exc)))


def to_date(value: Any) -> date:
    """Coerce a date-like value, raising DateError when it cannot be parsed."""
    return parse_iso_date(value).unwrap()
