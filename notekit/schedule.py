"""
schedule.py - Coupon and observation schedule generation

This module provides date schedules for note lifecycles:
1. generate_coupon_schedule() - Coupon payment dates from inception and tenor
2. generate_observation_schedule() - Same algorithm with an explicit first offset
3. coupon_count() - Number of coupon periods over a tenor
4. frequency_to_string() / frequency_from_string() - Frequency encoding

Schedule algorithm:
    step = 12 / frequency months
    dates = start + (first_offset + k * step) months, while <= start + tenor
    the tenor end date is appended if it is not already the last date

Every date is computed from the anchor start date, so month-end clamping
(Jan 31 -> Feb 29) never drifts into later dates.
"""

from __future__ import annotations
from datetime import date
from typing import List, Optional

from .core import CouponFrequency
from .dates import add_months
from .logging_config import get_logger

logger = get_logger(__name__)


# ============================================================================
# FREQUENCY ENCODING
# ============================================================================

_FREQUENCY_LABELS = {
    CouponFrequency.MONTHLY: "Monthly",
    CouponFrequency.QUARTERLY: "Quarterly",
    CouponFrequency.SEMI_ANNUAL: "Semi-Annual",
    CouponFrequency.ANNUAL: "Annual",
}

_FREQUENCY_BY_NAME = {
    "monthly": CouponFrequency.MONTHLY,
    "quarterly": CouponFrequency.QUARTERLY,
    "semi-annual": CouponFrequency.SEMI_ANNUAL,
    "annual": CouponFrequency.ANNUAL,
}


def frequency_to_string(freq: int) -> str:
    """Human label for a frequency, "Unknown" for values outside the enumeration."""
    try:
        return _FREQUENCY_LABELS[CouponFrequency(freq)]
    except ValueError:
        return "Unknown"


def frequency_from_string(name: str) -> CouponFrequency:
    """
    Parse a frequency label, case-insensitively.

    Unrecognized labels fall back to quarterly.

    Example:
        >>> frequency_from_string("Monthly")
        <CouponFrequency.MONTHLY: 12>
        >>> frequency_from_string("fortnightly")
        <CouponFrequency.QUARTERLY: 4>
    """
    freq = _FREQUENCY_BY_NAME.get((name or "").strip().lower())
    if freq is None:
        logger.warning("unknown_frequency_defaulted", value=name, default=int(CouponFrequency.QUARTERLY))
        return CouponFrequency.QUARTERLY
    return freq


def months_per_period(freq: int) -> int:
    """Months between two payments; frequency must divide 12."""
    if freq not in (1, 2, 4, 12):
        raise ValueError(f"Frequency must be 1, 2, 4, or 12, got {freq}")
    return 12 // freq


# ============================================================================
# SCHEDULES
# ============================================================================

def coupon_count(tenor_months: int, freq_per_year: int) -> int:
    """
    Number of coupon periods over the tenor: round(tenor / 12 * freq).

    Halves round away from zero.
    """
    periods = tenor_months / 12 * freq_per_year
    return int(periods + 0.5) if periods >= 0 else -int(-periods + 0.5)


def generate_observation_schedule(
    start: date,
    tenor_months: int,
    freq_per_year: int,
    first_offset_months: int,
) -> List[date]:
    """
    Generate observation dates (autocall checks, coupon dates, ...).

    Args:
        start: Inception date.
        tenor_months: Life of the note in months.
        freq_per_year: Observations per year (1, 2, 4, or 12).
        first_offset_months: Months from start to the first observation.

    Returns:
        Ascending dates; the last one is always start + tenor_months.

    Raises:
        ValueError: If the frequency is not 1, 2, 4, or 12.
    """
    step = months_per_period(freq_per_year)
    end = add_months(start, tenor_months)

    dates: List[date] = []
    offset = first_offset_months
    while True:
        current = add_months(start, offset)
        if current > end:
            break
        dates.append(current)
        offset += step

    if not dates or dates[-1] != end:
        dates.append(end)
    return dates


def generate_coupon_schedule(
    start: date,
    tenor_months: int,
    freq_per_year: int,
    first_payment_offset_months: Optional[int] = None,
) -> List[date]:
    """
    Generate coupon payment dates.

    The first payment defaults to one period after start.

    Example:
        >>> generate_coupon_schedule(date(2024, 1, 15), 12, 4)
        [datetime.date(2024, 4, 15), datetime.date(2024, 7, 15), datetime.date(2024, 10, 15), datetime.date(2025, 1, 15)]
    """
    first = first_payment_offset_months
    if first is None:
        first = months_per_period(freq_per_year)
    return generate_observation_schedule(start, tenor_months, freq_per_year, first)
