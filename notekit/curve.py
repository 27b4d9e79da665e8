"""
curve.py - Payoff curves for charting

Functions:
- generate_reverse_convertible_curve() - 151 points, final level 0% to 150%
- generate_capital_protected_curve() - 161 points, basket level 0% to 160%
- generate_curve() - Dispatch on product type

Every underlying is moved to the same ratio x, so the basket level at each
sample equals x whatever the basket rule. Points sitting on a key level
carry a short chart annotation.
"""

from __future__ import annotations
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .core import (
    CurvePoint, MarketData, CPPN_CURVE_MAX, CURVE_STEP,
    RC_CURVE_MAX, round_to,
)
from .products.capital_protected import CapitalProtectedTerms, compute_cppn_payoff_pct
from .products.reverse_convertible import (
    RCVariant,
    ReverseConvertibleTerms,
    calculate_rc_outcome,
)

# A sample is "on" an RC level when this close (decimal units).
RC_NOTE_TOLERANCE = 1e-9

# A sample is "on" a CPPN level when within this many percentage points.
CPPN_NOTE_TOLERANCE = 0.5


def curve_grid(upper: float, step: float = CURVE_STEP) -> np.ndarray:
    """
    Evenly spaced ratios 0..upper inclusive, rounded to the step precision.

    Example:
        >>> len(curve_grid(1.50))
        151
    """
    count = int(round(upper / step)) + 1
    return np.round(np.arange(count) * step, 10)


def _first_note(value: float, marks: Sequence[Tuple[str, Optional[float]]], tolerance: float) -> Optional[str]:
    for label, level in marks:
        if level is not None and abs(value - level) <= tolerance:
            return label
    return None


def generate_reverse_convertible_curve(terms: ReverseConvertibleTerms) -> List[CurvePoint]:
    """
    Redemption, coupon and total across worst-of final levels 0..1.50.

    Annotations: "Barrier" on the standard variant; "KI" (explicit knock-in)
    then "Strike" on the low strike variant.
    """
    # Unit fixings keep each level exactly equal to the sample ratio.
    count = max(1, len(terms.underlyings))
    fixings = (1.0,) * count

    if terms.variant == RCVariant.STANDARD_BARRIER:
        marks = [("Barrier", terms.barrier_pct)]
    else:
        marks = [("KI", terms.knock_in_barrier_pct), ("Strike", terms.strike_pct)]

    points = []
    for x in curve_grid(RC_CURVE_MAX):
        x = float(x)
        prices = (x,) * count
        outcome = calculate_rc_outcome(terms, MarketData(fixings, prices, prices))
        points.append(CurvePoint(
            x=x,
            redemption_pct=outcome.redemption_pct,
            total_pct=outcome.total_pct,
            coupon_pct=outcome.coupon_pct,
            note=_first_note(x, marks, RC_NOTE_TOLERANCE),
        ))
    return points


def generate_capital_protected_curve(terms: CapitalProtectedTerms) -> List[CurvePoint]:
    """
    Redemption across basket levels 0..1.60. No coupons on a CPPN.

    Annotations within half a point of a level, first match wins:
    "KI", "K" (participation start), "B" (bonus barrier), "Cap".
    """
    marks = [
        ("KI", terms.knock_in_level_pct if terms.knock_in_active else None),
        ("K", terms.participation_start_pct),
        ("B", terms.bonus_barrier_pct if terms.bonus_active else None),
        ("Cap", terms.cap_level_pct if terms.cap_enabled else None),
    ]

    points = []
    for x in curve_grid(CPPN_CURVE_MAX):
        x = float(x)
        level_pct = round_to(x * 100, 4)
        redemption = compute_cppn_payoff_pct(terms, level_pct).redemption_pct
        points.append(CurvePoint(
            x=x,
            redemption_pct=redemption,
            total_pct=redemption,
            coupon_pct=0.0,
            note=_first_note(level_pct, marks, CPPN_NOTE_TOLERANCE),
        ))
    return points


def generate_curve(terms) -> List[CurvePoint]:
    """Payoff curve for any term sheet."""
    if isinstance(terms, ReverseConvertibleTerms):
        return generate_reverse_convertible_curve(terms)
    if isinstance(terms, CapitalProtectedTerms):
        return generate_capital_protected_curve(terms)
    raise TypeError(f"Unsupported terms type: {type(terms).__name__}")
