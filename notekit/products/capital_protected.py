"""
capital_protected.py - Capital Protected Participation Notes (CPPN)

This module provides CPPN term sheets and payoff processing:
1. CapitalProtectedTerms - Immutable term sheet (levels as whole-number Percents)
2. validate_capital_protected_terms() - Collects every term problem
3. compute_basket_level_pct() - Basket level X (%) from market data
4. compute_cppn_payoff_pct() - Redemption for a basket level
5. calculate_capital_protected_payoff() - Full PayoffResult with timeline
6. knock_in_settlement() - Physical or cash delivery once knocked in
7. calculate_cppn_break_even() - Break-even analysis per product shape

Notation (all in % of initial):
    X   final basket level (92 means -8%)
    P   capital protection floor
    K   participation start
    a   participation rate / 100
    C   cap level (optional)
    KI  knock-in level (optional, European)
    S   downside strike used only once KI triggers (defaults to KI)
    B   bonus barrier, BL bonus level (Bonus Certificate sub-mode)

Regimes, first match wins, every result floored at 0:
    1. bonus enabled:   X >= B -> max(BL, min(100 + a * max(X - K, 0), C))
                        X <  B -> X
    2. knock-in:        X <  KI -> 100 * X / S_enforced
    3. protected:       max(P, min(P + a * delta, C))
                        delta = max(X - K, 0) for "up", max(K - X, 0) for "down"

No coupons are paid on a CPPN.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional, Tuple
import math

from ..basket import calc_levels, basket_level
from ..core import (
    BasketType, CashflowEvent, CashflowEventType, MarketData, PayoffResult,
    PayoffTimeline, Percent, ProductType, SettlementType, TermsError, Underlying,
    ValidationResult,
    CONTINUITY_TOLERANCE, PCT_DECIMALS_CPPN,
    number_errors, round_to, safe_divide,
)
from ..dates import add_months
from ..logging_config import get_logger
from .guards import (
    ProtectedParams,
    compute_s_min_for_continuity,
    enforce_strike_for_continuity,
    protected_payoff_pct_at,
)

logger = get_logger(__name__)


class ParticipationDirection(str, Enum):
    UP = "up"
    DOWN = "down"


class CapType(str, Enum):
    NONE = "none"
    CAPPED = "capped"


class KnockInMode(str, Enum):
    EUROPEAN = "EUROPEAN"


# ============================================================================
# TERMS
# ============================================================================

@dataclass(frozen=True, slots=True)
class CapitalProtectedTerms:
    """
    CPPN term sheet, including the Bonus Certificate sub-mode.

    Level fields are whole-number Percents: 100 == 100% of initial.
    A Bonus Certificate has bonus_enabled=True and capital_protection_pct=0.
    """
    notional: float
    currency: str
    tenor_months: int
    underlyings: Tuple[Underlying, ...]
    initial_fixings: Tuple[float, ...]
    basket_type: BasketType = BasketType.SINGLE
    capital_protection_pct: Percent = Percent(100)
    participation_direction: ParticipationDirection = ParticipationDirection.UP
    participation_start_pct: Percent = Percent(100)
    participation_rate_pct: Percent = Percent(100)
    cap_type: CapType = CapType.NONE
    cap_level_pct: Optional[Percent] = None
    knock_in_enabled: bool = False
    knock_in_mode: KnockInMode = KnockInMode.EUROPEAN
    knock_in_level_pct: Optional[Percent] = None
    downside_strike_pct: Optional[Percent] = None
    bonus_enabled: bool = False
    bonus_level_pct: Optional[Percent] = None
    bonus_barrier_pct: Optional[Percent] = None
    product_type: ProductType = field(default=ProductType.CPPN, init=False)

    def __post_init__(self):
        object.__setattr__(self, "underlyings", tuple(
            u if isinstance(u, Underlying) else Underlying(ticker=str(u))
            for u in self.underlyings
        ))
        object.__setattr__(self, "initial_fixings", tuple(self.initial_fixings))
        try:
            object.__setattr__(self, "basket_type", BasketType(self.basket_type))
            object.__setattr__(
                self, "participation_direction", ParticipationDirection(self.participation_direction)
            )
            object.__setattr__(self, "cap_type", CapType(self.cap_type))
            object.__setattr__(self, "knock_in_mode", KnockInMode(self.knock_in_mode))
        except ValueError as exc:
            raise TermsError([str(exc)]) from exc

    @property
    def cap_enabled(self) -> bool:
        return self.cap_type == CapType.CAPPED and self.cap_level_pct is not None

    @property
    def knock_in_active(self) -> bool:
        return self.knock_in_enabled and self.knock_in_level_pct is not None

    @property
    def bonus_active(self) -> bool:
        return (
            self.bonus_enabled
            and self.bonus_level_pct is not None
            and self.bonus_barrier_pct is not None
        )

    @property
    def protected_params(self) -> ProtectedParams:
        return ProtectedParams(
            capital_protection_pct=self.capital_protection_pct,
            participation_direction=self.participation_direction.value,
            participation_start_pct=self.participation_start_pct,
            participation_rate_pct=self.participation_rate_pct,
            cap_type=self.cap_type.value,
            cap_level_pct=self.cap_level_pct,
        )

    def enforced_downside_strike(self) -> Optional[float]:
        """Downside strike after the continuity guard, None without a knock-in."""
        if not self.knock_in_active:
            return None
        return enforce_strike_for_continuity(
            self.protected_params, self.knock_in_level_pct, self.downside_strike_pct
        ).s_enforced


def default_capital_protected_terms() -> CapitalProtectedTerms:
    """Single-stock 12 month 100% protected note with 120% upside participation."""
    return CapitalProtectedTerms(
        notional=100000.0,
        currency="USD",
        tenor_months=12,
        underlyings=(Underlying("AAPL", "Apple Inc."),),
        initial_fixings=(100.0,),
        basket_type=BasketType.SINGLE,
        capital_protection_pct=Percent(100),
        participation_direction=ParticipationDirection.UP,
        participation_start_pct=Percent(100),
        participation_rate_pct=Percent(120),
    )


# ============================================================================
# VALIDATION
# ============================================================================

_CPPN_NUMBER_FIELDS = (
    "notional", "tenor_months", "capital_protection_pct", "participation_start_pct",
    "participation_rate_pct", "cap_level_pct", "knock_in_level_pct",
    "downside_strike_pct", "bonus_level_pct", "bonus_barrier_pct",
)


def validate_capital_protected_terms(terms: CapitalProtectedTerms) -> ValidationResult:
    """
    Check a CPPN term sheet.

    Never raises. Wrongly typed numeric fields are reported before any
    range check. Cross-field checks cover the cap against participation
    start and the downside strike against the continuity minimum.
    """
    errors = number_errors(terms, _CPPN_NUMBER_FIELDS, sequences=("initial_fixings",))
    if errors:
        return ValidationResult.from_errors(errors)

    if terms.notional is None or terms.notional <= 0:
        errors.append("Notional must be greater than 0")
    if terms.tenor_months is None or terms.tenor_months <= 0:
        errors.append("Tenor must be greater than 0 months")

    count = len(terms.underlyings)
    if count == 0:
        errors.append("At least one underlying must be specified")
    if terms.basket_type == BasketType.SINGLE and count != 1:
        errors.append("Single basket type requires exactly 1 underlying")
    if terms.basket_type != BasketType.SINGLE:
        if count < 2 or count > 3:
            errors.append("Basket requires 2 or 3 underlyings")
        tickers = [u.ticker for u in terms.underlyings]
        if len(set(tickers)) != len(tickers):
            errors.append("Underlying symbols must be unique")

    if len(terms.initial_fixings) != count:
        errors.append("Initial fixings array must match underlyings array length")
    elif any(f is None or f <= 0 for f in terms.initial_fixings):
        errors.append("All initial fixings must be greater than 0")

    protection = terms.capital_protection_pct
    start = terms.participation_start_pct
    rate = terms.participation_rate_pct
    if protection is None or protection < 0 or protection > 200:
        errors.append("Capital protection (%) must be 0 or between 1 and 200")
    if start is None or start <= 0 or start > 300:
        errors.append("Participation start (%) must be between 0 and 300")
    if rate is None or rate < 0 or rate > 500:
        errors.append("Participation rate (%) must be between 0 and 500")

    if terms.cap_type == CapType.CAPPED:
        if terms.cap_level_pct is None or start is None or terms.cap_level_pct <= start:
            errors.append("Cap level (%) must be greater than Participation start (%) when capped")

    if terms.knock_in_enabled:
        knock_in = terms.knock_in_level_pct
        if knock_in is None or knock_in <= 0 or knock_in > 300:
            errors.append("Knock-in level (%) must be between 0 and 300 when enabled")
        strike = terms.downside_strike_pct if terms.downside_strike_pct is not None else (knock_in or 0)
        if strike <= 0 or strike > 300:
            errors.append("Downside strike (%) must be between 0 and 300")

        if (
            protection is not None and protection < 100
            and knock_in is not None and knock_in > 0
            and start is not None and rate is not None
        ):
            params = terms.protected_params
            protected_at_ki = protected_payoff_pct_at(params, knock_in)
            s_min = compute_s_min_for_continuity(params, knock_in)
            if math.isnan(s_min):
                if not terms.bonus_enabled:
                    errors.append(
                        f"Knock-in cannot be made continuous: the protected payoff at "
                        f"KI={knock_in:g}% is {protected_at_ki:.2f}%, so no downside strike "
                        f"satisfies the continuity guard. Raise capital protection above 0% "
                        f"or disable the knock-in."
                    )
            elif strike + CONTINUITY_TOLERANCE < s_min:
                errors.append(
                    f"Invalid downside strike: would create a discontinuity at KI. "
                    f"Set S >= {s_min:.2f}% (computed from P={protected_at_ki:.2f}%, KI={knock_in:g}%)."
                )

    if terms.bonus_enabled:
        if protection != 0:
            errors.append("Bonus feature is only available when Capital Protection is 0%")
        if terms.bonus_level_pct is None or terms.bonus_level_pct <= 100 or terms.bonus_level_pct > 200:
            errors.append("Bonus level must be between 100% and 200%")
        if terms.bonus_barrier_pct is None or terms.bonus_barrier_pct <= 0 or terms.bonus_barrier_pct >= 100:
            errors.append("Bonus barrier must be between 0% and 100%")

    return ValidationResult.from_errors(errors)


# ============================================================================
# PURE PAYOFF CALCULATIONS
# ============================================================================

@dataclass(frozen=True, slots=True)
class CppnBasketLevel:
    basket_level_pct: float
    worst_underlying_index: Optional[int] = None
    best_underlying_index: Optional[int] = None


@dataclass(frozen=True, slots=True)
class CppnPayoff:
    redemption_pct: float
    knock_in_triggered: bool
    bonus_paid: bool


def compute_basket_level_pct(terms: CapitalProtectedTerms, market: MarketData) -> CppnBasketLevel:
    """Basket level X (%) on final prices, with the reference index where one exists."""
    levels = calc_levels(market.effective_final_prices, market.initial_fixings)
    aggregate = basket_level(levels, terms.basket_type)
    level_pct = round_to(aggregate.level * 100, 4)

    if terms.basket_type == BasketType.WORST_OF:
        return CppnBasketLevel(level_pct, worst_underlying_index=aggregate.index)
    if terms.basket_type == BasketType.BEST_OF:
        return CppnBasketLevel(level_pct, best_underlying_index=aggregate.index)
    return CppnBasketLevel(level_pct)


def knock_in_settlement(basket_type: BasketType) -> SettlementType:
    """
    How a knocked-in note settles: physical delivery of the reference
    underlying, or cash for an average basket, which has none.
    """
    if BasketType(basket_type) == BasketType.AVERAGE:
        return SettlementType.CASH
    return SettlementType.PHYSICAL


def _bonus_payoff_pct(terms: CapitalProtectedTerms, level_pct: float) -> float:
    rate = terms.participation_rate_pct / 100
    participating = 100 + rate * max(level_pct - terms.participation_start_pct, 0.0)
    if terms.cap_enabled:
        participating = min(participating, terms.cap_level_pct)
    return max(terms.bonus_level_pct, participating)


def compute_cppn_payoff_pct(
    terms: CapitalProtectedTerms,
    basket_level_pct: float,
    bonus_barrier_breached: Optional[bool] = None,
    knock_in_breached: Optional[bool] = None,
) -> CppnPayoff:
    """
    Redemption (fraction of notional) for a basket level X in %.

    Args:
        terms: CPPN term sheet.
        basket_level_pct: X, 100 == unchanged.
        bonus_barrier_breached: Force the bonus barrier state; None checks
            X < B at this level (European).
        knock_in_breached: Force the knock-in state; None checks X < KI.

    Example:
        >>> terms = default_capital_protected_terms()
        >>> compute_cppn_payoff_pct(terms, 110).redemption_pct
        1.12
    """
    level = basket_level_pct

    if terms.bonus_active:
        breached = bonus_barrier_breached
        if breached is None:
            breached = level < terms.bonus_barrier_pct
        if not breached:
            payoff_pct = _bonus_payoff_pct(terms, level)
            return CppnPayoff(round_to(max(0.0, payoff_pct) / 100, PCT_DECIMALS_CPPN), False, True)
        return CppnPayoff(round_to(max(0.0, level) / 100, PCT_DECIMALS_CPPN), False, False)

    if terms.knock_in_active:
        triggered = knock_in_breached
        if triggered is None:
            triggered = level < terms.knock_in_level_pct
        if triggered:
            strike = terms.enforced_downside_strike()
            payoff_pct = safe_divide(100 * level, strike)
            return CppnPayoff(round_to(max(0.0, payoff_pct) / 100, PCT_DECIMALS_CPPN), True, False)

    payoff_pct = protected_payoff_pct_at(terms.protected_params, level)
    return CppnPayoff(round_to(max(0.0, payoff_pct) / 100, PCT_DECIMALS_CPPN), False, False)


def calculate_capital_protected_payoff(
    terms: CapitalProtectedTerms,
    market: MarketData,
    start_date: date,
) -> PayoffResult:
    """
    Full CPPN payoff: basket level, regime outcome and a single maturity event.

    Logs a warning when the continuity guard raises the requested downside strike.
    """
    basket = compute_basket_level_pct(terms, market)
    payoff = compute_cppn_payoff_pct(terms, basket.basket_level_pct)

    if terms.knock_in_active:
        requested = terms.downside_strike_pct if terms.downside_strike_pct is not None else terms.knock_in_level_pct
        enforced = terms.enforced_downside_strike()
        if enforced > requested:
            logger.warning(
                "downside_strike_raised",
                requested_strike_pct=requested,
                enforced_strike_pct=round_to(enforced, 4),
                knock_in_level_pct=terms.knock_in_level_pct,
            )

    maturity_date = add_months(start_date, terms.tenor_months)
    maturity = CashflowEvent(
        date=maturity_date,
        event_type=CashflowEventType.MATURITY,
        amount=payoff.redemption_pct * terms.notional,
        description="Redemption at maturity",
        details=(
            ("basket_level_pct", basket.basket_level_pct),
            ("knock_in_triggered", payoff.knock_in_triggered),
            ("bonus_paid", payoff.bonus_paid),
        ),
    )
    physical = (
        payoff.knock_in_triggered
        and knock_in_settlement(terms.basket_type) == SettlementType.PHYSICAL
    )

    return PayoffResult(
        redemption_pct=payoff.redemption_pct,
        total_pct=payoff.redemption_pct,
        coupon_pct=0.0,
        timeline=PayoffTimeline(events=(maturity,), maturity_date=maturity_date),
        worst_underlying_index=basket.worst_underlying_index,
        best_underlying_index=basket.best_underlying_index,
        basket_level_pct=basket.basket_level_pct,
        knock_in_triggered=payoff.knock_in_triggered,
        bonus_paid=payoff.bonus_paid,
        physical_delivery=physical,
    )


# ============================================================================
# BREAK-EVEN
# ============================================================================

BREAK_EVEN_ALWAYS = "always"
BREAK_EVEN_LEVEL = "level"
BREAK_EVEN_IMPOSSIBLE = "impossible"
BREAK_EVEN_BONUS_CONDITIONAL = "bonus_conditional"
BREAK_EVEN_KNOCK_IN_CONDITIONAL = "knock_in_conditional"


@dataclass(frozen=True, slots=True)
class BreakEvenResult:
    """
    Break-even analysis of a CPPN at maturity (issuer risk ignored).

    Which optional fields are populated depends on kind:
        always               reason, min_return_pct
        level                level_pct, floor_pct
        impossible           reason, max_return_pct
        bonus_conditional    bonus_floor_pct, barrier_pct
        knock_in_conditional protected_break_even_pct (None: always profitable
                             or unreachable), knock_in_level_pct, capital_protection_pct
    """
    kind: str
    level_pct: Optional[float] = None
    floor_pct: Optional[float] = None
    reason: Optional[str] = None
    min_return_pct: Optional[float] = None
    max_return_pct: Optional[float] = None
    bonus_floor_pct: Optional[float] = None
    barrier_pct: Optional[float] = None
    protected_break_even_pct: Optional[float] = None
    knock_in_level_pct: Optional[float] = None
    capital_protection_pct: Optional[float] = None


def _max_protected_payoff_pct(terms: CapitalProtectedTerms) -> float:
    """Highest payoff the protected regime can reach; inf when unbounded."""
    params = terms.protected_params
    if terms.participation_direction == ParticipationDirection.UP:
        if terms.cap_enabled:
            return max(params.capital_protection_pct, terms.cap_level_pct)
        return float("inf") if terms.participation_rate_pct > 0 else params.capital_protection_pct
    return protected_payoff_pct_at(params, 0.0)


def _solve_protected_level(terms: CapitalProtectedTerms) -> float:
    rate = terms.participation_rate_pct / 100
    gap = (100 - terms.capital_protection_pct) / rate
    if terms.participation_direction == ParticipationDirection.UP:
        return terms.participation_start_pct + gap
    return terms.participation_start_pct - gap


def calculate_cppn_break_even(terms: CapitalProtectedTerms) -> BreakEvenResult:
    """
    Solve for the basket level X at which the payoff returns 100% of notional.
    """
    protection = terms.capital_protection_pct
    rate = terms.participation_rate_pct / 100

    if terms.bonus_active:
        bonus_level = terms.bonus_level_pct
        if bonus_level >= 100:
            return BreakEvenResult(
                kind=BREAK_EVEN_BONUS_CONDITIONAL,
                bonus_floor_pct=bonus_level,
                barrier_pct=terms.bonus_barrier_pct,
            )
        if terms.cap_enabled and terms.cap_level_pct < 100:
            return BreakEvenResult(
                kind=BREAK_EVEN_IMPOSSIBLE,
                reason="Bonus floor below 100% and cap prevents reaching break-even",
                max_return_pct=max(bonus_level, terms.cap_level_pct),
            )
        return BreakEvenResult(
            kind=BREAK_EVEN_LEVEL,
            level_pct=terms.participation_start_pct,
            floor_pct=bonus_level,
        )

    if terms.knock_in_active:
        protected_break_even = None
        if protection < 100 and rate > 0 and _max_protected_payoff_pct(terms) >= 100:
            protected_break_even = _solve_protected_level(terms)
        return BreakEvenResult(
            kind=BREAK_EVEN_KNOCK_IN_CONDITIONAL,
            protected_break_even_pct=protected_break_even,
            knock_in_level_pct=terms.knock_in_level_pct,
            capital_protection_pct=protection,
        )

    if protection >= 100:
        return BreakEvenResult(
            kind=BREAK_EVEN_ALWAYS,
            reason="Capital protection at or above 100%",
            min_return_pct=protection,
        )

    if rate <= 0:
        return BreakEvenResult(
            kind=BREAK_EVEN_IMPOSSIBLE,
            reason="Participation rate is zero - only receive capital protection floor",
            max_return_pct=protection,
        )

    max_payoff = _max_protected_payoff_pct(terms)
    if max_payoff < 100:
        reason = "Cap prevents payoff from reaching 100%" if terms.cap_enabled \
            else "Participation cannot lift payoff to 100%"
        return BreakEvenResult(kind=BREAK_EVEN_IMPOSSIBLE, reason=reason, max_return_pct=max_payoff)

    return BreakEvenResult(
        kind=BREAK_EVEN_LEVEL,
        level_pct=_solve_protected_level(terms),
        floor_pct=protection,
    )
