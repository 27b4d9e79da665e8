"""
Core types and pure helpers for the structured note engine.

This module provides the foundational data structures used by every engine:
1. Unit newtypes: Fraction (RC decimal levels) and Percent (CPPN whole-number levels)
2. Enumerations: basket types, variants, frequencies, event types
3. Immutable data structures: Underlying, MarketData, CashflowEvent, PayoffResult, CurvePoint
4. Exceptions: NoteError and domain-specific error types
5. Numeric helpers: safe_divide, round_to, is_number, number_errors

All functions in this module are pure.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum, IntEnum
from typing import Any, Dict, List, NewType, Optional, Sequence, Tuple


# ============================================================================
# CONSTANTS
# ============================================================================

# Denominators with absolute value below this threshold are treated as zero.
DIVISION_EPSILON = 1e-12

# Distance (in percentage points) under which a trigger is "near".
WATCH_DISTANCE_PCT = 5.0

# Curve grid: step and upper bounds as normalized price ratios.
CURVE_STEP = 0.01
RC_CURVE_MAX = 1.50
CPPN_CURVE_MAX = 1.60

# Strike tolerance used when rejecting a downside strike below S_min.
CONTINUITY_TOLERANCE = 1e-6

# Snapshot cache capacity.
DEFAULT_CACHE_SIZE = 128

# Prices older than this many days relative to the as-of date are stale.
STALE_PRICE_DAYS = 1

# Output precision per field family.
PCT_DECIMALS_RC = 4
PCT_DECIMALS_CPPN = 6
QUANTITY_DECIMALS = 2
MONEY_DECIMALS = 2


# ============================================================================
# UNIT NEWTYPES
# ============================================================================

# RC terms express levels as decimals: 0.70 == 70%.
Fraction = NewType("Fraction", float)

# CPPN terms express levels as whole-number percents: 100 == 100%.
Percent = NewType("Percent", float)


# ============================================================================
# ENUMERATIONS
# ============================================================================

class ProductType(str, Enum):
    RC = "RC"
    CPPN = "CPPN"


class BasketType(str, Enum):
    SINGLE = "single"
    WORST_OF = "worst_of"
    BEST_OF = "best_of"
    AVERAGE = "average"


class CouponFrequency(IntEnum):
    """Coupon or observation frequency, in payments per year."""
    MONTHLY = 12
    QUARTERLY = 4
    SEMI_ANNUAL = 2
    ANNUAL = 1


class SettlementType(str, Enum):
    CASH = "cash"
    PHYSICAL = "physical"


class CashflowEventType(str, Enum):
    COUPON = "coupon"
    AUTOCALL = "autocall"
    MATURITY = "maturity"
    CASH_REDEMPTION = "cash_redemption"
    SHARE_CONVERSION = "share_conversion"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class NoteError(Exception):
    """Base class for all engine errors."""
    pass


class TermsError(NoteError):
    """
    Terms could not be constructed or failed validation where a caller
    required them to be valid.

    Attributes:
        errors: Every human-readable problem found, in field order.
    """

    def __init__(self, errors: Sequence[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) if self.errors else "invalid terms")


class DateError(NoteError):
    """A date string could not be parsed."""

    def __init__(self, value: Any, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid date {value!r}: {reason}")


# ============================================================================
# NUMERIC HELPERS
# ============================================================================

def safe_divide(numerator: float, denominator: float) -> float:
    """
    Divide, returning 0.0 when the denominator is (effectively) zero.

    Example:
        >>> safe_divide(1.0, 0.0)
        0.0
        >>> safe_divide(1.0, 4.0)
        0.25
    """
    if abs(denominator) < DIVISION_EPSILON:
        return 0.0
    return numerator / denominator


def round_to(value: float, places: int = 2) -> float:
    """
    Round half away from zero to a fixed number of decimal places.

    Goes through Decimal so that 0.125 rounds to 0.13 rather than falling
    victim to binary representation.
    """
    quantizer = Decimal(10) ** -places
    return float(Decimal(repr(value)).quantize(quantizer, rounding=ROUND_HALF_UP))


def is_number(value: Any) -> bool:
    """True for int and float values. Booleans are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def number_errors(obj: Any, names: Sequence[str], sequences: Sequence[str] = ()) -> List[str]:
    """
    Type errors for numeric fields of a term sheet.

    Fields left as None are skipped; range checks report those. Every entry
    of each field named in sequences must be a number.

    Example:
        >>> number_errors(Underlying("AAPL", initial_fixing="100"), ["initial_fixing"])
        ["initial_fixing must be a number, got '100'"]
    """
    errors = []
    for name in names:
        value = getattr(obj, name)
        if value is not None and not is_number(value):
            errors.append(f"{name} must be a number, got {value!r}")
    for name in sequences:
        if not all(is_number(item) for item in getattr(obj, name)):
            errors.append(f"{name} must be a list of numbers")
    return errors


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Underlying:
    """
    A reference asset of a note. Identity is the ticker.

    Attributes:
        ticker: Exchange symbol (e.g., "AAPL").
        name: Optional display name.
        initial_fixing: Optional fixing price captured at inception.
    """
    ticker: str
    name: Optional[str] = None
    initial_fixing: Optional[float] = None


@dataclass(frozen=True, slots=True)
class MarketData:
    """
    Prices parallel to a note's underlyings.

    final_prices defaults to spot_prices when absent.
    """
    initial_fixings: Tuple[float, ...]
    spot_prices: Tuple[float, ...]
    final_prices: Optional[Tuple[float, ...]] = None

    def __post_init__(self):
        object.__setattr__(self, "initial_fixings", tuple(self.initial_fixings))
        object.__setattr__(self, "spot_prices", tuple(self.spot_prices))
        if self.final_prices is not None:
            object.__setattr__(self, "final_prices", tuple(self.final_prices))

    @property
    def effective_final_prices(self) -> Tuple[float, ...]:
        return self.final_prices if self.final_prices is not None else self.spot_prices

    def with_final_prices(self, final_prices: Sequence[float]) -> "MarketData":
        return MarketData(self.initial_fixings, self.spot_prices, tuple(final_prices))


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of a terms validation: never raised, always returned."""
    valid: bool
    errors: Tuple[str, ...] = ()

    @classmethod
    def from_errors(cls, errors: List[str]) -> "ValidationResult":
        return cls(valid=not errors, errors=tuple(errors))


@dataclass(frozen=True, slots=True)
class CashflowEvent:
    """
    A single dated cashflow on a payoff timeline.

    Attributes:
        date: Payment or settlement date.
        event_type: What kind of flow this is.
        amount: Currency amount (may be 0).
        description: Short human description.
        details: Extra context as frozen (key, value) pairs.
    """
    date: date
    event_type: CashflowEventType
    amount: float
    description: str = ""
    details: Tuple[Tuple[str, Any], ...] = ()

    @property
    def details_dict(self) -> Dict[str, Any]:
        return dict(self.details)


@dataclass(frozen=True, slots=True)
class PayoffTimeline:
    events: Tuple[CashflowEvent, ...]
    maturity_date: date
    ended_early: bool = False


@dataclass(frozen=True, slots=True)
class PayoffResult:
    """
    Standard output of every payoff engine.

    Percentages are fractions of notional (1.0 == 100%) and never negative.
    Fields that do not apply to a product are left as None.
    """
    redemption_pct: float
    total_pct: float
    coupon_pct: float
    timeline: PayoffTimeline
    shares: Optional[float] = None
    gearing: Optional[float] = None
    worst_of_level: Optional[float] = None
    worst_underlying_index: Optional[int] = None
    best_underlying_index: Optional[int] = None
    basket_level_pct: Optional[float] = None
    knock_in_triggered: bool = False
    bonus_paid: bool = False
    physical_delivery: bool = False

    @property
    def settlement_type(self) -> SettlementType:
        maturity = self.timeline.events[-1] if self.timeline.events else None
        if maturity is not None and maturity.event_type == CashflowEventType.SHARE_CONVERSION:
            return SettlementType.PHYSICAL
        if self.physical_delivery:
            return SettlementType.PHYSICAL
        return SettlementType.CASH


@dataclass(frozen=True, slots=True)
class CurvePoint:
    """
    One sample of a payoff curve.

    Attributes:
        x: Final level as a normalized ratio (ST / S0).
        redemption_pct: Redemption as a fraction of notional.
        total_pct: Redemption plus coupons.
        coupon_pct: Coupon portion.
        note: Optional chart annotation ("Barrier", "KI", ...).
    """
    x: float
    redemption_pct: float
    total_pct: float
    coupon_pct: float
    note: Optional[str] = None


@dataclass(frozen=True, slots=True)
class EvaluationConfig:
    """
    Tunable thresholds for the position evaluator.

    Attributes:
        watch_distance_pct: Distance to a trigger, in percentage points,
            under which the risk status becomes WATCH.
        stale_price_days: Prices older than this relative to the as-of
            date are flagged stale.
        max_upcoming_coupons: Cap on coupon entries in next_events.
    """
    watch_distance_pct: float = WATCH_DISTANCE_PCT
    stale_price_days: int = STALE_PRICE_DAYS
    max_upcoming_coupons: int = 3
