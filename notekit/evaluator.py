"""
evaluator.py - Rule-based valuation of a live position

evaluate_position() turns a position and current prices into a
PositionSnapshot:

    indicative outcome value   coupons received + what redemption would pay today
    settlement                 cash amount or share lots of the reference underlying
    risk status                SAFE / WATCH / TRIGGERED
    key levels                 barrier, knock-in, bonus barrier, autocall trigger
    next events                upcoming coupons, next autocall observation, maturity
    reason codes + text        fixed vocabulary rendered through templates
    data freshness             price timestamp age and missing prices

Scenario overrides let callers ask "what if": evaluate at maturity, replace
final levels, force the worst-of level or force the barrier state.

The evaluator is pure. Repeated calls can share a caller-owned
SnapshotCache.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .basket import basket_level, calc_levels
from .cache import SnapshotCache, snapshot_key
from .core import (
    BasketType, EvaluationConfig, MONEY_DECIMALS, ProductType, QUANTITY_DECIMALS,
    SettlementType, round_to, safe_divide,
)
from .logging_config import get_evaluation_logger
from .position import InvestmentPosition
from .products.autocall import generate_autocall_schedule, next_autocall_observation
from .products.capital_protected import (
    CapitalProtectedTerms,
    compute_cppn_payoff_pct,
    knock_in_settlement,
)
from .products.reverse_convertible import RCVariant, ReverseConvertibleTerms


class RiskStatus(str, Enum):
    SAFE = "SAFE"
    WATCH = "WATCH"
    TRIGGERED = "TRIGGERED"


class BarrierState(str, Enum):
    NONE = "none"
    TOUCHED = "touched"
    KNOCKED_IN = "knocked_in"
    KNOCKED_OUT = "knocked_out"


class KeyLevelStatus(str, Enum):
    SAFE = "safe"
    AT_RISK = "at_risk"
    BREACHED = "breached"
    REACHED = "reached"


class EventKind(str, Enum):
    COUPON = "coupon"
    AUTOCALL_OBSERVATION = "autocall_observation"
    MATURITY = "maturity"


# Reason codes
BARRIER_BREACHED = "BARRIER_BREACHED"
NEAR_BARRIER = "NEAR_BARRIER"
PROTECTED = "PROTECTED"
KNOCK_IN_TRIGGERED = "KNOCK_IN_TRIGGERED"
BONUS_ACTIVE = "BONUS_ACTIVE"
BONUS_LOST = "BONUS_LOST"
COUPONS_RECEIVED = "COUPONS_RECEIVED"

REASON_TEMPLATES: Dict[ProductType, Dict[str, str]] = {
    ProductType.RC: {
        BARRIER_BREACHED: (
            "Worst-of level ({level:.1f}%) fell below the {trigger_label} ({trigger:.1f}%). "
            "Physical delivery of {ticker} applies."
        ),
        NEAR_BARRIER: (
            "Worst-of level ({level:.1f}%) is within {watch:g} points of the "
            "{trigger_label} ({trigger:.1f}%). Monitor closely."
        ),
        PROTECTED: (
            "Capital protected: worst-of level ({level:.1f}%) is above the "
            "{trigger_label} ({trigger:.1f}%)."
        ),
        COUPONS_RECEIVED: "Coupons received to date: {coupons:,.2f} {currency}.",
    },
    ProductType.CPPN: {
        KNOCK_IN_TRIGGERED: (
            "Knock-in triggered (basket at {level:.1f}% < {knock_in:g}%). "
            "Capital protection removed, geared downside applies."
        ),
        BONUS_ACTIVE: (
            "Bonus active (barrier at {bonus_barrier:g}% not touched). "
            "Minimum {bonus_level:g}% redemption if maintained to maturity."
        ),
        BONUS_LOST: (
            "Bonus lost (basket at {level:.1f}% below barrier {bonus_barrier:g}%). "
            "1:1 downside participation applies."
        ),
        NEAR_BARRIER: (
            "Basket level ({level:.1f}%) is within {watch:g} points of the "
            "{trigger_label} ({trigger:.1f}%). Monitor closely."
        ),
        PROTECTED: (
            "Capital {protection:g}% protected with {rate:g}% participation "
            "from {start:g}%. Basket at {level:.1f}%."
        ),
    },
}

RC_METHODOLOGY = (
    "Indicative value treats the current worst-of level as the final fixing. "
    "The conversion trigger is observed at maturity only. "
    "No discounting and no issuer credit risk are applied."
)

CPPN_METHODOLOGY = (
    "Indicative value treats the current basket level as the final fixing. "
    "The knock-in and bonus barrier are documented as European (maturity only) "
    "but are checked against the current basket level here. "
    "No discounting and no issuer credit risk are applied."
)


# ============================================================================
# INPUTS AND OUTPUTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class PositionMarketData:
    """Current prices parallel to the position's underlyings."""
    underlying_prices: Tuple[Optional[float], ...]
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "underlying_prices", tuple(self.underlying_prices))


@dataclass(frozen=True, slots=True)
class ScenarioOverrides:
    """
    What-if adjustments applied on top of market data.

    Attributes:
        as_of_date: Valuation date (defaults to today).
        assume_maturity_today: Value as of the maturity date with every
            scheduled coupon counted as received.
        override_final_levels: Replace each underlying's level (decimal, 1.0 == initial).
        override_worst_of_level: Replace the aggregated basket level (decimal).
        override_barrier_state: Force the barrier outcome; none / knocked_out
            force no breach, touched / knocked_in force a breach.
    """
    as_of_date: Optional[date] = None
    assume_maturity_today: bool = False
    override_final_levels: Optional[Tuple[float, ...]] = None
    override_worst_of_level: Optional[float] = None
    override_barrier_state: Optional[BarrierState] = None

    def __post_init__(self):
        if self.override_final_levels is not None:
            object.__setattr__(self, "override_final_levels", tuple(self.override_final_levels))
        if self.override_barrier_state is not None:
            object.__setattr__(self, "override_barrier_state", BarrierState(self.override_barrier_state))

    @property
    def forced_breach(self) -> Optional[bool]:
        if self.override_barrier_state is None:
            return None
        return self.override_barrier_state in (BarrierState.TOUCHED, BarrierState.KNOCKED_IN)


@dataclass(frozen=True, slots=True)
class ShareLot:
    symbol: str
    quantity: float
    price: float
    market_value: float


@dataclass(frozen=True, slots=True)
class Settlement:
    settlement_type: SettlementType
    cash_amount: float = 0.0
    shares: Tuple[ShareLot, ...] = ()


@dataclass(frozen=True, slots=True)
class KeyLevel:
    """A trigger level and the current level, both in percent of initial."""
    label: str
    target_level: float
    current_level: float
    distance: float
    status: KeyLevelStatus


@dataclass(frozen=True, slots=True)
class NextEvent:
    kind: EventKind
    date: date
    label: str
    amount: Optional[float] = None


@dataclass(frozen=True, slots=True)
class DataFreshness:
    prices_as_of: Optional[datetime]
    stale_prices: bool
    missing_data: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PositionSnapshot:
    """
    Everything known about a position on one date.

    Money fields are in the note currency, rounded to cents. basket_level_pct
    is the aggregated level in percent (worst-of for RC).
    """
    position_id: str
    product_type: ProductType
    as_of_date: date
    invested: float
    coupons_received: float
    indicative_outcome_value: float
    net_pnl: float
    net_pnl_pct: float
    settlement: Settlement
    risk_status: RiskStatus
    basket_level_pct: float
    key_levels: Tuple[KeyLevel, ...]
    next_events: Tuple[NextEvent, ...]
    reason_codes: Tuple[str, ...]
    reason_text: str
    methodology_disclosure: str
    data_freshness: DataFreshness


# ============================================================================
# SHARED HELPERS
# ============================================================================

def _resolve_as_of(position: InvestmentPosition, overrides: ScenarioOverrides) -> date:
    if overrides.assume_maturity_today:
        return position.maturity_date
    return overrides.as_of_date or date.today()


def _effective_prices(
    position: InvestmentPosition,
    market_data: PositionMarketData,
    overrides: ScenarioOverrides,
) -> Tuple[Tuple[float, ...], Tuple[str, ...]]:
    """Prices after level overrides, and the tickers whose price is missing."""
    fixings = position.initial_fixings
    tickers = position.tickers

    if overrides.override_final_levels is not None:
        levels = overrides.override_final_levels
        if len(levels) != len(fixings):
            raise ValueError(
                f"override_final_levels must have {len(fixings)} entries, got {len(levels)}"
            )
        return tuple(f * level for f, level in zip(fixings, levels)), ()

    raw = market_data.underlying_prices
    if len(raw) != len(fixings):
        raise ValueError(f"Expected {len(fixings)} prices, got {len(raw)}")

    missing = tuple(t for t, p in zip(tickers, raw) if p is None or p <= 0)
    prices = tuple(p if p is not None and p > 0 else 0.0 for p in raw)
    return prices, missing


def _freshness(
    market_data: PositionMarketData,
    as_of: date,
    missing: Tuple[str, ...],
    config: EvaluationConfig,
) -> DataFreshness:
    stamp = market_data.timestamp
    stale = stamp is not None and (as_of - stamp.date()).days > config.stale_price_days
    return DataFreshness(prices_as_of=stamp, stale_prices=stale, missing_data=missing)


def _level_status(distance: float, breached: bool, config: EvaluationConfig) -> KeyLevelStatus:
    if breached:
        return KeyLevelStatus.BREACHED
    if distance < config.watch_distance_pct:
        return KeyLevelStatus.AT_RISK
    return KeyLevelStatus.SAFE


def _key_level(label: str, target_pct: float, current_pct: float, status: KeyLevelStatus) -> KeyLevel:
    return KeyLevel(
        label=label,
        target_level=round_to(target_pct, 2),
        current_level=round_to(current_pct, 2),
        distance=round_to(current_pct - target_pct, 2),
        status=status,
    )


def _coupons_received(position: InvestmentPosition, as_of: date) -> float:
    # Scheduled coupons up to the as-of date count as received whatever their
    # paid flag; later coupons never do, even when already marked paid.
    return sum(c.amount for c in position.coupon_history if c.date <= as_of)


def _next_events(
    position: InvestmentPosition,
    as_of: date,
    config: EvaluationConfig,
) -> Tuple[NextEvent, ...]:
    upcoming = sorted(
        (c for c in position.coupon_history if c.date > as_of),
        key=lambda c: c.date,
    )[: config.max_upcoming_coupons]
    events: List[NextEvent] = [
        NextEvent(EventKind.COUPON, c.date, c.description or "Coupon", c.amount)
        for c in upcoming
    ]

    terms = position.terms
    if isinstance(terms, ReverseConvertibleTerms) and terms.autocall_enabled:
        observation = next_autocall_observation(_autocall_schedule(position), as_of)
        if observation is not None:
            events.append(NextEvent(
                EventKind.AUTOCALL_OBSERVATION,
                observation.date,
                f"Autocall observation {observation.observation_number} "
                f"(trigger {observation.autocall_level * 100:g}%)",
            ))

    if position.maturity_date > as_of:
        events.append(NextEvent(EventKind.MATURITY, position.maturity_date, "Maturity"))

    order = {EventKind.COUPON: 0, EventKind.AUTOCALL_OBSERVATION: 1, EventKind.MATURITY: 2}
    return tuple(sorted(events, key=lambda e: (e.date, order[e.kind])))


def _autocall_schedule(position: InvestmentPosition):
    terms = position.terms
    return generate_autocall_schedule(
        position.inception_date,
        terms.tenor_months,
        terms.effective_autocall_frequency,
        step_down=terms.autocall_step_down,
        step_down_levels=terms.step_down_levels,
        fixed_level=terms.autocall_level_pct if terms.autocall_level_pct is not None else 1.0,
    )


def _render(product_type: ProductType, codes: Sequence[str], context: Dict[str, object]) -> str:
    templates = REASON_TEMPLATES[product_type]
    return " ".join(templates[code].format(**context) for code in codes)


def _missing_sentence(missing: Tuple[str, ...]) -> str:
    return f"Missing prices for {', '.join(missing)}; their levels are treated as zero."


# ============================================================================
# REVERSE CONVERTIBLE
# ============================================================================

def _evaluate_reverse_convertible(
    position: InvestmentPosition,
    market_data: PositionMarketData,
    overrides: ScenarioOverrides,
    config: EvaluationConfig,
    as_of: date,
) -> PositionSnapshot:
    terms: ReverseConvertibleTerms = position.terms
    prices, missing = _effective_prices(position, market_data, overrides)
    levels = calc_levels(prices, position.initial_fixings)
    aggregate = basket_level(levels, BasketType.WORST_OF)
    ref = aggregate.index
    level = aggregate.level
    ref_price = prices[ref]
    if overrides.override_worst_of_level is not None:
        level = overrides.override_worst_of_level
        ref_price = position.initial_fixings[ref] * level

    trigger = terms.trigger_level
    breached = overrides.forced_breach
    if breached is None:
        breached = position.manual_barrier_breach or level < trigger

    notional = position.notional
    ticker = position.tickers[ref]
    if breached:
        strike = terms.strike_pct if terms.variant == RCVariant.LOW_STRIKE_GEARED_PUT else 1.0
        quantity = safe_divide(notional, position.initial_fixings[ref] * strike * terms.conversion_ratio)
        redemption_value = max(0.0, quantity * ref_price)
        settlement = Settlement(
            settlement_type=SettlementType.PHYSICAL,
            shares=(ShareLot(
                symbol=ticker,
                quantity=round_to(quantity, QUANTITY_DECIMALS),
                price=ref_price,
                market_value=round_to(redemption_value, MONEY_DECIMALS),
            ),),
        )
    else:
        redemption_value = notional
        settlement = Settlement(settlement_type=SettlementType.CASH, cash_amount=round_to(notional, MONEY_DECIMALS))

    coupons = _coupons_received(position, as_of)
    indicative = coupons + redemption_value
    net_pnl = indicative - notional

    level_pct = level * 100
    trigger_pct = trigger * 100
    distance = level_pct - trigger_pct
    label = "Barrier" if terms.variant == RCVariant.STANDARD_BARRIER else "Knock-In"
    trigger_status = _level_status(distance, breached, config)
    key_levels = [_key_level(label, trigger_pct, level_pct, trigger_status)]

    if terms.autocall_enabled:
        observation = next_autocall_observation(_autocall_schedule(position), as_of)
        if observation is not None:
            autocall_pct = observation.autocall_level * 100
            reached = level_pct >= autocall_pct
            key_levels.append(_key_level(
                "Autocall Trigger", autocall_pct, level_pct,
                KeyLevelStatus.REACHED if reached else KeyLevelStatus.SAFE,
            ))

    if breached:
        risk = RiskStatus.TRIGGERED
        codes = [BARRIER_BREACHED]
    elif trigger_status == KeyLevelStatus.AT_RISK:
        risk = RiskStatus.WATCH
        codes = [NEAR_BARRIER]
    else:
        risk = RiskStatus.SAFE
        codes = [PROTECTED]
    if coupons > 0:
        codes.append(COUPONS_RECEIVED)

    text = _render(ProductType.RC, codes, {
        "level": level_pct,
        "trigger": trigger_pct,
        "trigger_label": terms.trigger_label,
        "ticker": ticker,
        "watch": config.watch_distance_pct,
        "coupons": coupons,
        "currency": terms.currency,
    })
    if missing:
        text = f"{text} {_missing_sentence(missing)}"

    return PositionSnapshot(
        position_id=position.id,
        product_type=ProductType.RC,
        as_of_date=as_of,
        invested=round_to(notional, MONEY_DECIMALS),
        coupons_received=round_to(coupons, MONEY_DECIMALS),
        indicative_outcome_value=round_to(indicative, MONEY_DECIMALS),
        net_pnl=round_to(net_pnl, MONEY_DECIMALS),
        net_pnl_pct=round_to(safe_divide(net_pnl, notional) * 100, 2),
        settlement=settlement,
        risk_status=risk,
        basket_level_pct=round_to(level_pct, 2),
        key_levels=tuple(key_levels),
        next_events=_next_events(position, as_of, config),
        reason_codes=tuple(codes),
        reason_text=text,
        methodology_disclosure=RC_METHODOLOGY,
        data_freshness=_freshness(market_data, as_of, missing, config),
    )


# ============================================================================
# CAPITAL PROTECTED
# ============================================================================

def _evaluate_capital_protected(
    position: InvestmentPosition,
    market_data: PositionMarketData,
    overrides: ScenarioOverrides,
    config: EvaluationConfig,
    as_of: date,
) -> PositionSnapshot:
    terms: CapitalProtectedTerms = position.terms
    prices, missing = _effective_prices(position, market_data, overrides)
    levels = calc_levels(prices, position.initial_fixings)
    aggregate = basket_level(levels, terms.basket_type)
    ref = aggregate.index
    level = aggregate.level
    if overrides.override_worst_of_level is not None:
        level = overrides.override_worst_of_level
    level_pct = round_to(level * 100, 4)

    forced = overrides.forced_breach
    if forced is None and position.manual_barrier_breach:
        forced = True

    bonus_breached = None
    if terms.bonus_active:
        bonus_breached = forced if forced is not None else level_pct < terms.bonus_barrier_pct
    knock_in_breached = None
    if terms.knock_in_active:
        knock_in_breached = forced if forced is not None else level_pct < terms.knock_in_level_pct

    payoff = compute_cppn_payoff_pct(terms, level_pct, bonus_breached, knock_in_breached)
    notional = position.notional
    redemption_value = notional * payoff.redemption_pct

    physical = knock_in_settlement(terms.basket_type) == SettlementType.PHYSICAL
    if payoff.knock_in_triggered and physical:
        strike = terms.enforced_downside_strike()
        quantity = safe_divide(notional, position.initial_fixings[ref] * strike / 100)
        price = position.initial_fixings[ref] * level
        settlement = Settlement(
            settlement_type=SettlementType.PHYSICAL,
            shares=(ShareLot(
                symbol=position.tickers[ref],
                quantity=round_to(quantity, QUANTITY_DECIMALS),
                price=price,
                market_value=round_to(quantity * price, MONEY_DECIMALS),
            ),),
        )
    else:
        settlement = Settlement(
            settlement_type=SettlementType.CASH,
            cash_amount=round_to(redemption_value, MONEY_DECIMALS),
        )

    key_levels: List[KeyLevel] = []
    trigger_label, trigger_pct = None, None
    if terms.knock_in_active and not terms.bonus_active:
        status = _level_status(level_pct - terms.knock_in_level_pct, payoff.knock_in_triggered, config)
        key_levels.append(_key_level("Knock-In", terms.knock_in_level_pct, level_pct, status))
        trigger_label, trigger_pct = "knock-in", terms.knock_in_level_pct
    if terms.bonus_active:
        status = _level_status(level_pct - terms.bonus_barrier_pct, bool(bonus_breached), config)
        key_levels.append(_key_level("Bonus Barrier", terms.bonus_barrier_pct, level_pct, status))
        trigger_label, trigger_pct = "bonus barrier", terms.bonus_barrier_pct

    near = any(k.status == KeyLevelStatus.AT_RISK for k in key_levels)
    if payoff.knock_in_triggered or bonus_breached:
        risk = RiskStatus.TRIGGERED
    elif near:
        risk = RiskStatus.WATCH
    else:
        risk = RiskStatus.SAFE

    if payoff.knock_in_triggered:
        codes = [KNOCK_IN_TRIGGERED]
    elif terms.bonus_active and bonus_breached:
        codes = [BONUS_LOST]
    elif payoff.bonus_paid:
        codes = [BONUS_ACTIVE, NEAR_BARRIER] if near else [BONUS_ACTIVE]
    elif near:
        codes = [NEAR_BARRIER]
    else:
        codes = [PROTECTED]

    text = _render(ProductType.CPPN, codes, {
        "level": level_pct,
        "knock_in": terms.knock_in_level_pct,
        "bonus_barrier": terms.bonus_barrier_pct,
        "bonus_level": terms.bonus_level_pct,
        "trigger_label": trigger_label,
        "trigger": trigger_pct,
        "watch": config.watch_distance_pct,
        "protection": terms.capital_protection_pct,
        "rate": terms.participation_rate_pct,
        "start": terms.participation_start_pct,
    })
    if missing:
        text = f"{text} {_missing_sentence(missing)}"

    net_pnl = redemption_value - notional
    return PositionSnapshot(
        position_id=position.id,
        product_type=ProductType.CPPN,
        as_of_date=as_of,
        invested=round_to(notional, MONEY_DECIMALS),
        coupons_received=0.0,
        indicative_outcome_value=round_to(redemption_value, MONEY_DECIMALS),
        net_pnl=round_to(net_pnl, MONEY_DECIMALS),
        net_pnl_pct=round_to(safe_divide(net_pnl, notional) * 100, 2),
        settlement=settlement,
        risk_status=risk,
        basket_level_pct=round_to(level_pct, 2),
        key_levels=tuple(key_levels),
        next_events=_next_events(position, as_of, config),
        reason_codes=tuple(codes),
        reason_text=text,
        methodology_disclosure=CPPN_METHODOLOGY,
        data_freshness=_freshness(market_data, as_of, missing, config),
    )


# ============================================================================
# ENTRY POINT
# ============================================================================

def evaluate_position(
    position: InvestmentPosition,
    market_data: PositionMarketData,
    overrides: Optional[ScenarioOverrides] = None,
    config: Optional[EvaluationConfig] = None,
    cache: Optional[SnapshotCache] = None,
) -> PositionSnapshot:
    """
    Value a position on a date.

    Args:
        position: The holding, with its terms and coupon history.
        market_data: Current prices parallel to the underlyings.
        overrides: Scenario adjustments; none by default.
        config: Thresholds; EvaluationConfig() by default.
        cache: Optional caller-owned cache of snapshots.

    Returns:
        PositionSnapshot. Identical inputs give equal snapshots.

    Raises:
        ValueError: If the number of prices or override levels does not
            match the number of underlyings.

    Example:
        >>> snap = evaluate_position(position, PositionMarketData((65.0,)),
        ...                          ScenarioOverrides(as_of_date=date(2024, 6, 1)))
        >>> snap.risk_status
        <RiskStatus.TRIGGERED: 'TRIGGERED'>
    """
    overrides = overrides or ScenarioOverrides()
    config = config or EvaluationConfig()
    as_of = _resolve_as_of(position, overrides)
    log = get_evaluation_logger(__name__, position.id)

    key = None
    if cache is not None:
        key = snapshot_key(position, market_data, overrides, config, as_of)
        cached = cache.get(key)
        if cached is not None:
            log.debug("snapshot_cache_hit", as_of=as_of.isoformat())
            return cached

    if isinstance(position.terms, ReverseConvertibleTerms):
        snapshot = _evaluate_reverse_convertible(position, market_data, overrides, config, as_of)
    elif isinstance(position.terms, CapitalProtectedTerms):
        snapshot = _evaluate_capital_protected(position, market_data, overrides, config, as_of)
    else:
        raise TypeError(f"Unsupported terms type: {type(position.terms).__name__}")

    log.debug(
        "position_evaluated",
        product_type=snapshot.product_type.value,
        as_of=as_of.isoformat(),
        risk_status=snapshot.risk_status.value,
        reason_codes=list(snapshot.reason_codes),
    )

    if cache is not None:
        cache.put(key, snapshot)
    return snapshot
