"""
reverse_convertible.py - Reverse Convertible terms, validation and payoff

This module provides:
1. ReverseConvertibleTerms - Immutable term sheet (levels as Fractions)
2. validate_reverse_convertible_terms() - Collects every term problem
3. calculate_standard_barrier_rc() - Barrier variant outcome
4. calculate_low_strike_geared_put() - Low-strike / geared put outcome
5. calculate_reverse_convertible_payoff() - Full PayoffResult with timeline
6. Break-even helpers: total coupons, break-even level, ending value

A Reverse Convertible pays an unconditional coupon and redeems at par unless
the worst-of level finishes below its trigger, in which case the holder
receives shares of the worst performer (or their geared equivalent).

Payoff Formula (worst-of level L, barrier B, strike K, conversion ratio CR):

    standard barrier:
        L >= B  -> redemption = 1.0 (cash)
        L <  B  -> shares = N / (S0_worst * CR)
                   redemption = shares * ST_worst / N

    low strike / geared put (KI defaults to K):
        L >= KI -> redemption = 1.0 (cash), gearing = 1 / K
        L <  KI -> redemption = L / K
                   shares = N / (S0_worst * K * CR)

    coupon = rate / freq * round(tenor / 12 * freq)
    total = redemption + coupon
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional, Tuple

from ..basket import calc_levels, worst_of
from ..core import (
    BasketType, CashflowEvent, CashflowEventType, CouponFrequency, Fraction,
    MarketData, PayoffResult, PayoffTimeline, ProductType, TermsError,
    Underlying, ValidationResult,
    PCT_DECIMALS_RC, QUANTITY_DECIMALS,
    number_errors, round_to, safe_divide,
)
from ..dates import add_months
from ..schedule import coupon_count, generate_coupon_schedule


class RCVariant(str, Enum):
    STANDARD_BARRIER = "standard_barrier_rc"
    LOW_STRIKE_GEARED_PUT = "low_strike_geared_put"


class CouponType(str, Enum):
    GUARANTEED = "guaranteed"
    CONDITIONAL = "conditional"


# ============================================================================
# TERMS
# ============================================================================

@dataclass(frozen=True, slots=True)
class ReverseConvertibleTerms:
    """
    Reverse Convertible term sheet.

    Level fields (barrier_pct, strike_pct, knock_in_barrier_pct,
    coupon_rate_pa, autocall_level_pct) are decimal Fractions: 0.70 == 70%.

    Attributes:
        notional: Invested principal.
        currency: Settlement currency code.
        tenor_months: Life of the note in months.
        underlyings: 1 to 3 reference assets.
        initial_fixings: Initial fixing per underlying, same order.
        coupon_rate_pa: Annual coupon rate (0.10 == 10% p.a.).
        coupon_freq_per_year: 12, 4, 2 or 1.
        variant: Standard barrier or low strike / geared put.
        basket_type: single or worst_of.
        coupon_type: guaranteed or conditional (conditional needs a trigger).
        coupon_trigger_level_pct: Coupon trigger for conditional coupons.
        conversion_ratio: Shares per unit of notional adjustment (default 1).
        barrier_pct: Barrier B, required for the standard variant.
        strike_pct: Strike K, required for the low strike variant.
        knock_in_barrier_pct: Optional KI for the low strike variant (defaults to K).
        autocall_enabled: Whether early redemption is observed.
        autocall_level_pct: Fixed autocall trigger level.
        autocall_frequency: Observations per year (defaults to coupon frequency).
        autocall_step_down: Use step_down_levels per observation.
        step_down_levels: Descending trigger levels, one per observation.
    """
    notional: float
    currency: str
    tenor_months: int
    underlyings: Tuple[Underlying, ...]
    initial_fixings: Tuple[float, ...]
    coupon_rate_pa: Fraction
    coupon_freq_per_year: int = CouponFrequency.QUARTERLY
    variant: RCVariant = RCVariant.STANDARD_BARRIER
    basket_type: BasketType = BasketType.SINGLE
    coupon_type: CouponType = CouponType.GUARANTEED
    coupon_trigger_level_pct: Optional[Fraction] = None
    conversion_ratio: float = 1.0
    barrier_pct: Optional[Fraction] = None
    strike_pct: Optional[Fraction] = None
    knock_in_barrier_pct: Optional[Fraction] = None
    autocall_enabled: bool = False
    autocall_level_pct: Optional[Fraction] = None
    autocall_frequency: Optional[int] = None
    autocall_step_down: bool = False
    step_down_levels: Tuple[float, ...] = ()
    product_type: ProductType = field(default=ProductType.RC, init=False)

    def __post_init__(self):
        object.__setattr__(self, "underlyings", tuple(
            u if isinstance(u, Underlying) else Underlying(ticker=str(u))
            for u in self.underlyings
        ))
        object.__setattr__(self, "initial_fixings", tuple(self.initial_fixings))
        object.__setattr__(self, "step_down_levels", tuple(self.step_down_levels))
        try:
            object.__setattr__(self, "variant", RCVariant(self.variant))
            object.__setattr__(self, "basket_type", BasketType(self.basket_type))
            object.__setattr__(self, "coupon_type", CouponType(self.coupon_type))
        except ValueError as exc:
            raise TermsError([str(exc)]) from exc

    @property
    def trigger_level(self) -> Optional[float]:
        """Level below which the note converts: barrier, or knock-in (defaulting to strike)."""
        if self.variant == RCVariant.STANDARD_BARRIER:
            return self.barrier_pct
        if self.knock_in_barrier_pct is not None:
            return self.knock_in_barrier_pct
        return self.strike_pct

    @property
    def trigger_label(self) -> str:
        return "barrier" if self.variant == RCVariant.STANDARD_BARRIER else "knock-in"

    @property
    def effective_autocall_frequency(self) -> int:
        return self.autocall_frequency or self.coupon_freq_per_year


def default_reverse_convertible_terms() -> ReverseConvertibleTerms:
    """Single-stock 12 month 10% quarterly barrier RC, barrier 70%."""
    return ReverseConvertibleTerms(
        notional=100000.0,
        currency="USD",
        tenor_months=12,
        underlyings=(Underlying("AAPL", "Apple Inc."),),
        initial_fixings=(100.0,),
        coupon_rate_pa=Fraction(0.10),
        coupon_freq_per_year=CouponFrequency.QUARTERLY,
        variant=RCVariant.STANDARD_BARRIER,
        barrier_pct=Fraction(0.70),
    )


# ============================================================================
# VALIDATION
# ============================================================================

_RC_NUMBER_FIELDS = (
    "notional", "tenor_months", "coupon_rate_pa", "coupon_freq_per_year",
    "coupon_trigger_level_pct", "conversion_ratio", "barrier_pct", "strike_pct",
    "knock_in_barrier_pct", "autocall_level_pct", "autocall_frequency",
)


def _in_unit_interval(value: Optional[float]) -> bool:
    return value is not None and 0 < value <= 1


def validate_reverse_convertible_terms(terms: ReverseConvertibleTerms) -> ValidationResult:
    """
    Check a Reverse Convertible term sheet.

    Never raises; every problem is reported as a human-readable string in a
    stable, field-ordered list. A wrongly typed numeric field is reported on
    its own, before any range check runs.
    """
    errors = number_errors(terms, _RC_NUMBER_FIELDS, sequences=("initial_fixings", "step_down_levels"))
    if errors:
        return ValidationResult.from_errors(errors)

    if terms.notional is None or terms.notional <= 0:
        errors.append("Notional must be greater than 0")
    if terms.tenor_months is None or terms.tenor_months <= 0:
        errors.append("Tenor must be greater than 0 months")
    if terms.coupon_rate_pa is None or terms.coupon_rate_pa < 0 or terms.coupon_rate_pa > 1:
        errors.append("Coupon rate must be between 0 and 1 (0% to 100%)")
    if terms.coupon_freq_per_year not in (12, 4, 2, 1):
        errors.append("Coupon frequency must be 12, 4, 2 or 1 payments per year")

    if terms.coupon_type == CouponType.CONDITIONAL and not _in_unit_interval(terms.coupon_trigger_level_pct):
        errors.append(
            "Coupon trigger level must be between 0 and 1 (0% to 100%) when coupon type is conditional"
        )

    if terms.conversion_ratio is None or terms.conversion_ratio <= 0:
        errors.append("Conversion ratio must be greater than 0")

    count = len(terms.underlyings)
    if count == 0:
        errors.append("At least one underlying must be specified")
    if terms.basket_type == BasketType.SINGLE and count != 1:
        errors.append("Single basket type requires exactly 1 underlying")
    if terms.basket_type in (BasketType.BEST_OF, BasketType.AVERAGE):
        errors.append("Reverse convertibles support single or worst-of baskets only")
    if terms.basket_type == BasketType.WORST_OF:
        if count < 2 or count > 3:
            errors.append("Worst-of basket requires 2 or 3 underlyings")
        tickers = [u.ticker for u in terms.underlyings]
        if len(set(tickers)) != len(tickers):
            errors.append("Underlying symbols must be unique")

    if len(terms.initial_fixings) != count:
        errors.append("Initial fixings array must match underlyings array length")
    if any(f is None or f <= 0 for f in terms.initial_fixings):
        errors.append("All initial fixings must be greater than 0")

    if terms.variant == RCVariant.STANDARD_BARRIER:
        if not _in_unit_interval(terms.barrier_pct):
            errors.append("Barrier percentage must be between 0 and 1 for standard barrier RC")

    if terms.variant == RCVariant.LOW_STRIKE_GEARED_PUT:
        if not _in_unit_interval(terms.strike_pct):
            errors.append("Strike percentage must be between 0 and 1 for low strike geared put")
        if terms.knock_in_barrier_pct is not None:
            if not _in_unit_interval(terms.knock_in_barrier_pct):
                errors.append("Knock-in barrier percentage must be between 0 and 1")
            if terms.knock_in_barrier_pct > (terms.strike_pct or 1):
                errors.append("Knock-in barrier cannot be greater than strike")

    if terms.autocall_enabled:
        if terms.autocall_step_down:
            levels = terms.step_down_levels
            if not levels:
                errors.append("Step-down autocall requires at least one level")
            elif any(later >= earlier for earlier, later in zip(levels, levels[1:])):
                errors.append("Step-down autocall levels must be strictly decreasing")
        elif terms.autocall_level_pct is None or terms.autocall_level_pct <= 0:
            errors.append("Autocall level must be greater than 0 when autocall is enabled")
        if terms.autocall_frequency is not None and terms.autocall_frequency not in (12, 4, 2, 1):
            errors.append("Autocall frequency must be 12, 4, 2 or 1 observations per year")

    return ValidationResult.from_errors(errors)


# ============================================================================
# PURE PAYOFF CALCULATIONS
# ============================================================================

@dataclass(frozen=True, slots=True)
class RCOutcome:
    """Variant-level outcome before the timeline is attached."""
    redemption_pct: float
    total_pct: float
    coupon_pct: float
    cash_settled: bool
    worst_of_level: float
    worst_underlying_index: int
    shares: Optional[float] = None
    gearing: Optional[float] = None


def calculate_total_coupons_pct(terms: ReverseConvertibleTerms) -> float:
    """Total unconditional coupons over the tenor, as a fraction of notional."""
    per_period = terms.coupon_rate_pa / terms.coupon_freq_per_year
    return per_period * coupon_count(terms.tenor_months, terms.coupon_freq_per_year)


def _worst_leg(market: MarketData) -> Tuple[float, int, float, float]:
    """Worst level, its index, its initial fixing and its final price."""
    finals = market.effective_final_prices
    levels = calc_levels(finals, market.initial_fixings)
    worst_level, worst_index = worst_of(levels)
    return worst_level, worst_index, market.initial_fixings[worst_index], finals[worst_index]


def calculate_standard_barrier_rc(
    terms: ReverseConvertibleTerms,
    market: MarketData,
) -> RCOutcome:
    """
    Standard barrier RC outcome on the worst-of level.

    The barrier is inclusive on the safe side: a worst level exactly at the
    barrier redeems in cash.
    """
    barrier = terms.barrier_pct
    notional = terms.notional
    worst_level, worst_index, worst_initial, worst_final = _worst_leg(market)
    coupon_pct = calculate_total_coupons_pct(terms)

    shares = None
    if worst_level >= barrier:
        redemption_pct = 1.0
        cash_settled = True
    else:
        shares = safe_divide(notional, worst_initial * terms.conversion_ratio)
        redemption_pct = max(0.0, safe_divide(shares * worst_final, notional))
        cash_settled = False

    return RCOutcome(
        redemption_pct=round_to(redemption_pct, PCT_DECIMALS_RC),
        total_pct=round_to(redemption_pct + coupon_pct, PCT_DECIMALS_RC),
        coupon_pct=round_to(coupon_pct, PCT_DECIMALS_RC),
        cash_settled=cash_settled,
        worst_of_level=round_to(worst_level, PCT_DECIMALS_RC),
        worst_underlying_index=worst_index,
        shares=round_to(shares, QUANTITY_DECIMALS) if shares else None,
    )


def calculate_low_strike_geared_put(
    terms: ReverseConvertibleTerms,
    market: MarketData,
) -> RCOutcome:
    """
    Low strike / geared put outcome on the worst-of level.

    Below the knock-in the redemption is geared by 1 / K, so it can exceed
    1.0 when the worst level sits between K and KI.
    """
    strike = terms.strike_pct
    knock_in = terms.knock_in_barrier_pct if terms.knock_in_barrier_pct is not None else strike
    notional = terms.notional
    worst_level, worst_index, worst_initial, _ = _worst_leg(market)
    coupon_pct = calculate_total_coupons_pct(terms)
    gearing = safe_divide(1.0, strike)

    shares = None
    if worst_level >= knock_in:
        redemption_pct = 1.0
        cash_settled = True
    else:
        redemption_pct = max(0.0, safe_divide(worst_level, strike))
        strike_price = worst_initial * strike
        shares = safe_divide(notional, strike_price * terms.conversion_ratio)
        cash_settled = False

    return RCOutcome(
        redemption_pct=round_to(redemption_pct, PCT_DECIMALS_RC),
        total_pct=round_to(redemption_pct + coupon_pct, PCT_DECIMALS_RC),
        coupon_pct=round_to(coupon_pct, PCT_DECIMALS_RC),
        cash_settled=cash_settled,
        worst_of_level=round_to(worst_level, PCT_DECIMALS_RC),
        worst_underlying_index=worst_index,
        shares=round_to(shares, QUANTITY_DECIMALS) if shares else None,
        gearing=round_to(gearing, QUANTITY_DECIMALS),
    )


def calculate_rc_outcome(terms: ReverseConvertibleTerms, market: MarketData) -> RCOutcome:
    if terms.variant == RCVariant.STANDARD_BARRIER:
        return calculate_standard_barrier_rc(terms, market)
    return calculate_low_strike_geared_put(terms, market)


def calculate_reverse_convertible_payoff(
    terms: ReverseConvertibleTerms,
    market: MarketData,
    start_date: date,
) -> PayoffResult:
    """
    Full Reverse Convertible payoff with its cashflow timeline.

    Args:
        terms: Validated term sheet.
        market: Fixings and spot/final prices parallel to terms.underlyings.
        start_date: Inception date the coupon schedule is anchored on.

    Returns:
        PayoffResult whose timeline lists every coupon followed by a single
        maturity event typed cash_redemption or share_conversion.
    """
    outcome = calculate_rc_outcome(terms, market)
    maturity_date = add_months(start_date, terms.tenor_months)
    coupon_amount = terms.notional * (terms.coupon_rate_pa / terms.coupon_freq_per_year)

    events: List[CashflowEvent] = [
        CashflowEvent(
            date=payment_date,
            event_type=CashflowEventType.COUPON,
            amount=coupon_amount,
            description="Coupon payment",
        )
        for payment_date in generate_coupon_schedule(
            start_date, terms.tenor_months, terms.coupon_freq_per_year
        )
    ]

    worst_ticker = terms.underlyings[outcome.worst_underlying_index].ticker
    if outcome.cash_settled:
        events.append(CashflowEvent(
            date=maturity_date,
            event_type=CashflowEventType.CASH_REDEMPTION,
            amount=outcome.redemption_pct * terms.notional,
            description="Cash redemption at maturity",
            details=(("worst_of_level", outcome.worst_of_level),),
        ))
    else:
        events.append(CashflowEvent(
            date=maturity_date,
            event_type=CashflowEventType.SHARE_CONVERSION,
            amount=outcome.redemption_pct * terms.notional,
            description=f"Share conversion ({worst_ticker})",
            details=(
                ("worst_of_level", outcome.worst_of_level),
                ("shares", outcome.shares),
                ("ticker", worst_ticker),
            ),
        ))

    return PayoffResult(
        redemption_pct=outcome.redemption_pct,
        total_pct=outcome.total_pct,
        coupon_pct=outcome.coupon_pct,
        timeline=PayoffTimeline(events=tuple(events), maturity_date=maturity_date),
        shares=outcome.shares,
        gearing=outcome.gearing,
        worst_of_level=outcome.worst_of_level,
        worst_underlying_index=outcome.worst_underlying_index,
    )


# ============================================================================
# BREAK-EVEN
# ============================================================================

@dataclass(frozen=True, slots=True)
class EndingValue:
    cash_settled: bool
    coupons_received: float
    ending_value: float
    total_return_pct: float


def conversion_level(terms: ReverseConvertibleTerms) -> float:
    """K: 1.0 for the barrier variant, the strike for the low strike variant."""
    if terms.variant == RCVariant.LOW_STRIKE_GEARED_PUT and terms.strike_pct:
        return terms.strike_pct
    return 1.0


def calculate_break_even_pct(terms: ReverseConvertibleTerms) -> float:
    """
    Worst-of final level (in %) at which the ending value equals notional.

        L_BE = K * (1 - c)      c = total coupons / notional

    For the barrier variant a break-even above the barrier lies outside the
    conversion zone: any conversion already ends below break-even.
    """
    return conversion_level(terms) * (1 - calculate_total_coupons_pct(terms)) * 100


def calculate_ending_value(
    terms: ReverseConvertibleTerms,
    worst_final_pct: float,
    notional: float = 100000.0,
) -> EndingValue:
    """
    Ending value (redemption plus coupons) for a worst-of final level given in %.
    """
    coupons = notional * calculate_total_coupons_pct(terms)
    level = worst_final_pct / 100
    trigger = terms.trigger_level or 0.0

    if level >= trigger:
        cash_settled = True
        redemption_value = notional
    else:
        cash_settled = False
        redemption_value = max(
            0.0,
            notional * safe_divide(level, conversion_level(terms)) * terms.conversion_ratio,
        )

    ending_value = redemption_value + coupons
    return EndingValue(
        cash_settled=cash_settled,
        coupons_received=coupons,
        ending_value=ending_value,
        total_return_pct=safe_divide(ending_value - notional, notional) * 100,
    )
