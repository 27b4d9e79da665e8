"""
valuation.py - Position value summary

calculate_position_value() condenses a snapshot into the figures a holdings
table shows: invested, coupons to date, current value, projected settlement,
return, barrier status, days to maturity and per-underlying performance.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple

from .basket import best_of, calc_levels, worst_of
from .core import MONEY_DECIMALS, SettlementType, round_to, safe_divide
from .evaluator import (
    KeyLevelStatus, PositionMarketData, ScenarioOverrides, evaluate_position,
)
from .position import InvestmentPosition, days_remaining
from .products.capital_protected import CapitalProtectedTerms

BARRIER_STATUS = {
    KeyLevelStatus.SAFE: "safe",
    KeyLevelStatus.AT_RISK: "at_risk",
    KeyLevelStatus.BREACHED: "breached",
}

BARRIER_LABELS = ("Barrier", "Knock-In", "Bonus Barrier")


@dataclass(frozen=True, slots=True)
class Performer:
    ticker: str
    level_pct: float
    performance_pct: float


@dataclass(frozen=True, slots=True)
class PositionValue:
    """
    Holdings-table view of a position.

    barrier_status is one of safe, at_risk, breached or n/a.
    bonus_status is active, lost or n/a.
    """
    initial_investment: float
    coupons_to_date: float
    current_value: float
    projected_settlement: float
    settlement_type: SettlementType
    shares_delivered: Optional[float]
    share_value: Optional[float]
    absolute_return: float
    percentage_return: float
    barrier_status: str
    days_to_maturity: int
    underlying_levels: Tuple[Performer, ...]
    worst_performer: Performer
    best_performer: Performer
    bonus_status: str = "n/a"
    bonus_amount: float = 0.0


def _performer(ticker: str, level: float) -> Performer:
    return Performer(
        ticker=ticker,
        level_pct=round_to(level * 100, 2),
        performance_pct=round_to((level - 1) * 100, 2),
    )


def calculate_position_value(
    position: InvestmentPosition,
    market_data: PositionMarketData,
    as_of: Optional[date] = None,
) -> PositionValue:
    """
    Value summary of a position on a date (today by default).

    Honors the position's manual_barrier_breach flag.
    """
    as_of = as_of or date.today()
    snapshot = evaluate_position(position, market_data, ScenarioOverrides(as_of_date=as_of))

    prices = tuple(p if p is not None and p > 0 else 0.0 for p in market_data.underlying_prices)
    levels = calc_levels(prices, position.initial_fixings)
    performers = tuple(_performer(t, lvl) for t, lvl in zip(position.tickers, levels))
    _, worst_index = worst_of(levels)
    _, best_index = best_of(levels)

    barrier = next((k for k in snapshot.key_levels if k.label in BARRIER_LABELS), None)
    barrier_status = BARRIER_STATUS[barrier.status] if barrier is not None else "n/a"

    settlement = snapshot.settlement
    shares_delivered, share_value = None, None
    if settlement.settlement_type == SettlementType.PHYSICAL:
        shares_delivered = sum(lot.quantity for lot in settlement.shares)
        share_value = round_to(sum(lot.market_value for lot in settlement.shares), MONEY_DECIMALS)

    bonus_status, bonus_amount = "n/a", 0.0
    terms = position.terms
    if isinstance(terms, CapitalProtectedTerms) and terms.bonus_active:
        if barrier_status == "breached":
            bonus_status = "lost"
        else:
            bonus_status = "active"
            bonus_amount = round_to(position.notional * (terms.bonus_level_pct - 100) / 100, MONEY_DECIMALS)

    invested = snapshot.invested
    current = snapshot.indicative_outcome_value
    return PositionValue(
        initial_investment=invested,
        coupons_to_date=snapshot.coupons_received,
        current_value=current,
        projected_settlement=round_to(current - snapshot.coupons_received, MONEY_DECIMALS),
        settlement_type=settlement.settlement_type,
        shares_delivered=shares_delivered,
        share_value=share_value,
        absolute_return=round_to(current - invested, MONEY_DECIMALS),
        percentage_return=round_to(safe_divide(current - invested, invested) * 100, 2),
        barrier_status=barrier_status,
        days_to_maturity=days_remaining(position, as_of),
        underlying_levels=performers,
        worst_performer=performers[worst_index],
        best_performer=performers[best_index],
        bonus_status=bonus_status,
        bonus_amount=bonus_amount,
    )
