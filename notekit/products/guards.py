"""
guards.py - Continuity guard for CPPN knock-in

When capital protection P is below 100 and a knock-in KI is enabled, an
under-constrained downside strike S can make the knock-in payoff just below
KI exceed the protected payoff at KI. The guard picks the smallest strike
that keeps the payoff continuous there:

    100 * c * (KI / S) = protected_payoff(KI)
    =>  S_min = 100 * c * KI / protected_payoff(KI)

Two paths use it:
- validation rejects an explicit strike below S_min (user-facing)
- the payoff engine silently raises any strike to S_min (safety net)

All levels in this module are whole-number Percents.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import math

from ..core import Percent


@dataclass(frozen=True, slots=True)
class ProtectedParams:
    """The subset of CPPN terms that shapes the protected payoff."""
    capital_protection_pct: Percent
    participation_direction: str
    participation_start_pct: Percent
    participation_rate_pct: Percent
    cap_type: str = "none"
    cap_level_pct: Optional[Percent] = None

    @property
    def cap_enabled(self) -> bool:
        return self.cap_type == "capped" and self.cap_level_pct is not None


@dataclass(frozen=True, slots=True)
class StrikeEnforcement:
    s_min: float
    s_enforced: float


def participation_delta(params: ProtectedParams, level_pct: float) -> float:
    """Points of participating move: above start for "up", below start for "down"."""
    if params.participation_direction == "up":
        return max(0.0, level_pct - params.participation_start_pct)
    return max(0.0, params.participation_start_pct - level_pct)


def protected_payoff_pct_at(params: ProtectedParams, level_pct: float) -> float:
    """
    Protected-regime payoff (in %) at a basket level.

    The cap bounds the participating payoff first; the protection floor is
    applied last:

        max(P, min(P + a * delta, C))
    """
    rate = params.participation_rate_pct / 100
    participating = params.capital_protection_pct + rate * participation_delta(params, level_pct)
    if params.cap_enabled:
        participating = min(participating, params.cap_level_pct)
    return max(params.capital_protection_pct, participating)


def compute_s_min(protected_at_ki: float, knock_in_pct: float, conversion_ratio: float = 1.0) -> float:
    """S_min from the protected payoff at KI; nan when any input is not positive."""
    if not (protected_at_ki > 0) or not (knock_in_pct > 0) or not (conversion_ratio > 0):
        return float("nan")
    return 100 * conversion_ratio * knock_in_pct / protected_at_ki


def compute_s_min_for_continuity(
    params: ProtectedParams,
    knock_in_pct: float,
    conversion_ratio: float = 1.0,
) -> float:
    return compute_s_min(protected_payoff_pct_at(params, knock_in_pct), knock_in_pct, conversion_ratio)


def enforce_strike_for_continuity(
    params: ProtectedParams,
    knock_in_pct: float,
    strike_pct: Optional[float] = None,
    conversion_ratio: float = 1.0,
) -> StrikeEnforcement:
    """
    Raise a requested downside strike to S_min when it falls short.

    The requested strike defaults to KI. When S_min is undefined (nan) the
    requested strike is used unchanged.

    Example:
        >>> params = ProtectedParams(90, "up", 100, 100)
        >>> round(enforce_strike_for_continuity(params, 70).s_enforced, 2)
        77.78
    """
    s_min = compute_s_min_for_continuity(params, knock_in_pct, conversion_ratio)
    requested = strike_pct if strike_pct is not None else knock_in_pct
    if not math.isnan(s_min):
        return StrikeEnforcement(s_min=s_min, s_enforced=max(requested, s_min))
    return StrikeEnforcement(s_min=s_min, s_enforced=requested)
