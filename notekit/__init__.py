"""
notekit - Structured note payoff and position valuation

Deterministic, rule-based valuation of Reverse Convertibles and Capital
Protected Participation Notes (including Bonus Certificates).

Usage:
    from datetime import date
    from notekit import (
        MarketData, PositionMarketData, ScenarioOverrides,
        terms_from_dict, validate_terms, calculate_payoff,
        create_position, evaluate_position,
    )

    terms = terms_from_dict({
        "product_type": "RC", "notional": 100000, "currency": "USD",
        "tenor_months": 12, "underlyings": ["AAPL"], "initial_fixings": [100],
        "coupon_rate_pa": 0.10, "coupon_freq_per_year": 4, "barrier_pct": 0.70,
    })
    assert validate_terms(terms).valid

    # Payoff at maturity if the stock finishes at 65
    result = calculate_payoff(terms, MarketData((100.0,), (65.0,)), date(2024, 1, 15))
    result.total_pct                    # 0.75

    # Live position view
    position = create_position(terms, date(2024, 1, 15))
    snapshot = evaluate_position(
        position, PositionMarketData((72.0,)), ScenarioOverrides(as_of_date=date(2024, 6, 1))
    )
    snapshot.risk_status                # RiskStatus.WATCH
"""

# Core types
from .core import (
    Fraction,
    Percent,
    ProductType,
    BasketType,
    CouponFrequency,
    SettlementType,
    CashflowEventType,
    NoteError,
    TermsError,
    DateError,
    Underlying,
    MarketData,
    ValidationResult,
    CashflowEvent,
    PayoffTimeline,
    PayoffResult,
    CurvePoint,
    EvaluationConfig,
    safe_divide,
    round_to,
    is_number,
    number_errors,
    WATCH_DISTANCE_PCT,
    DIVISION_EPSILON,
)

# Dates
from .dates import (
    DateResult,
    add_months,
    days_between,
    parse_iso_date,
    to_date,
)

# Logging
from .logging_config import configure_logging, get_logger

# Basket levels
from .basket import (
    BasketLevel,
    calc_levels,
    worst_of,
    best_of,
    average_of,
    basket_level,
)

# Schedules
from .schedule import (
    frequency_to_string,
    frequency_from_string,
    months_per_period,
    coupon_count,
    generate_coupon_schedule,
    generate_observation_schedule,
)

# Products
from .products import *

# Terms, payoff and curves
from .terms import Terms, terms_from_dict, terms_to_dict, validate_terms
from .payoff import calculate_payoff
from .curve import (
    generate_curve,
    generate_reverse_convertible_curve,
    generate_capital_protected_curve,
)

# Positions
from .position import (
    CouponPayment,
    InvestmentPosition,
    create_position,
    update_coupon_status,
    coupons_received,
    days_elapsed,
    days_remaining,
    position_to_dict,
    position_from_dict,
)

# Evaluation
from .cache import SnapshotCache, snapshot_key
from .evaluator import (
    RiskStatus,
    BarrierState,
    KeyLevelStatus,
    EventKind,
    PositionMarketData,
    ScenarioOverrides,
    ShareLot,
    Settlement,
    KeyLevel,
    NextEvent,
    DataFreshness,
    PositionSnapshot,
    evaluate_position,
)
from .valuation import Performer, PositionValue, calculate_position_value
