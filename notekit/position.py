"""
position.py - Investment positions held in a structured note

A position binds an immutable term sheet to an inception date, a notional,
initial fixings and a coupon history. The coupon history is the only part
that changes over the life of the note: each CouponPayment flips to paid
once its date has passed.

Functions:
- create_position() - Validate terms and build a position with its coupon schedule
- update_coupon_status() - Mark coupons paid up to a date
- coupons_received() - Sum of paid coupons
- days_elapsed() / days_remaining() - Calendar days since inception / to maturity
- position_to_dict() / position_from_dict() - Plain-data form for storage
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .core import TermsError
from .dates import add_months, parse_iso_date
from .products.reverse_convertible import ReverseConvertibleTerms
from .schedule import generate_coupon_schedule
from .terms import Terms, terms_from_dict, terms_to_dict, validate_terms


@dataclass(slots=True)
class CouponPayment:
    date: date
    amount: float
    paid: bool = False
    description: str = ""


@dataclass(slots=True)
class InvestmentPosition:
    """
    A holding in one note.

    Attributes:
        id: Caller-chosen or derived identifier.
        terms: Term sheet snapshot at purchase.
        inception_date: Trade / strike date.
        maturity_date: inception_date + tenor.
        notional: Invested amount.
        initial_fixings: Fixing per underlying, parallel to terms.underlyings.
        coupon_history: Scheduled coupons (RC only); paid flips as dates pass.
        manual_barrier_breach: Force the barrier/knock-in to be treated as breached.
        name: Optional display name.
    """
    id: str
    terms: Terms
    inception_date: date
    maturity_date: date
    notional: float
    initial_fixings: Tuple[float, ...]
    coupon_history: List[CouponPayment] = field(default_factory=list)
    manual_barrier_breach: bool = False
    name: Optional[str] = None

    @property
    def product_type(self):
        return self.terms.product_type

    @property
    def tickers(self) -> Tuple[str, ...]:
        return tuple(u.ticker for u in self.terms.underlyings)


def _default_position_id(terms: Terms, inception_date: date) -> str:
    return "-".join([terms.product_type.value, *(u.ticker for u in terms.underlyings), inception_date.isoformat()])


def _coupon_history(terms: Terms, inception_date: date, notional: float) -> List[CouponPayment]:
    if not isinstance(terms, ReverseConvertibleTerms):
        return []
    amount = notional * terms.coupon_rate_pa / terms.coupon_freq_per_year
    dates = generate_coupon_schedule(inception_date, terms.tenor_months, terms.coupon_freq_per_year)
    return [
        CouponPayment(date=d, amount=amount, paid=False, description=f"Coupon {i}")
        for i, d in enumerate(dates, start=1)
    ]


def create_position(
    terms: Terms,
    inception_date: date,
    position_id: Optional[str] = None,
    name: Optional[str] = None,
    notional: Optional[float] = None,
    initial_fixings: Optional[Sequence[float]] = None,
) -> InvestmentPosition:
    """
    Create a position from a term sheet.

    Notional and initial fixings default to those on the terms.

    Raises:
        TermsError: If the terms fail validation; carries every error.

    Example:
        >>> from notekit.products import default_reverse_convertible_terms
        >>> position = create_position(default_reverse_convertible_terms(), date(2024, 1, 15))
        >>> position.maturity_date, len(position.coupon_history)
        (datetime.date(2025, 1, 15), 4)
    """
    result = validate_terms(terms)
    if not result.valid:
        raise TermsError(result.errors)

    notional = terms.notional if notional is None else notional
    fixings = tuple(terms.initial_fixings if initial_fixings is None else initial_fixings)
    if len(fixings) != len(terms.underlyings):
        raise TermsError(["Initial fixings array must match underlyings array length"])

    return InvestmentPosition(
        id=position_id or _default_position_id(terms, inception_date),
        terms=terms,
        inception_date=inception_date,
        maturity_date=add_months(inception_date, terms.tenor_months),
        notional=notional,
        initial_fixings=fixings,
        coupon_history=_coupon_history(terms, inception_date, notional),
        name=name,
    )


def update_coupon_status(position: InvestmentPosition, as_of: date) -> int:
    """Mark every coupon dated on or before as_of as paid. Returns how many flipped."""
    flipped = 0
    for coupon in position.coupon_history:
        if not coupon.paid and coupon.date <= as_of:
            coupon.paid = True
            flipped += 1
    return flipped


def coupons_received(position: InvestmentPosition, as_of: Optional[date] = None) -> float:
    """Sum of paid coupons, optionally only those dated on or before as_of."""
    return sum(
        c.amount for c in position.coupon_history
        if c.paid and (as_of is None or c.date <= as_of)
    )


def days_elapsed(position: InvestmentPosition, as_of: date) -> int:
    return max(0, (as_of - position.inception_date).days)


def days_remaining(position: InvestmentPosition, as_of: date) -> int:
    return max(0, (position.maturity_date - as_of).days)


# ============================================================================
# STORAGE FORM
# ============================================================================

def position_to_dict(position: InvestmentPosition) -> Dict[str, Any]:
    return {
        "id": position.id,
        "name": position.name,
        "terms": terms_to_dict(position.terms),
        "inception_date": position.inception_date.isoformat(),
        "maturity_date": position.maturity_date.isoformat(),
        "notional": position.notional,
        "initial_fixings": list(position.initial_fixings),
        "manual_barrier_breach": position.manual_barrier_breach,
        "coupon_history": [
            {
                "date": c.date.isoformat(),
                "amount": c.amount,
                "paid": c.paid,
                "description": c.description,
            }
            for c in position.coupon_history
        ],
    }


def position_from_dict(data: Mapping[str, Any]) -> InvestmentPosition:
    """
    Rebuild a position from its stored form.

    Missing maturity date and coupon history are derived from the terms.

    Raises:
        DateError: If any date cannot be parsed.
        TermsError: If the embedded terms cannot be parsed.
    """
    terms = terms_from_dict(data["terms"])
    inception = parse_iso_date(data["inception_date"]).unwrap()
    maturity_raw = data.get("maturity_date")
    maturity = (
        parse_iso_date(maturity_raw).unwrap() if maturity_raw
        else add_months(inception, terms.tenor_months)
    )
    notional = data.get("notional", terms.notional)
    fixings = tuple(data.get("initial_fixings") or terms.initial_fixings)

    if "coupon_history" in data:
        history = [
            CouponPayment(
                date=parse_iso_date(c["date"]).unwrap(),
                amount=float(c["amount"]),
                paid=bool(c.get("paid", False)),
                description=c.get("description", ""),
            )
            for c in data["coupon_history"]
        ]
    else:
        history = _coupon_history(terms, inception, notional)

    return InvestmentPosition(
        id=data.get("id") or _default_position_id(terms, inception),
        terms=terms,
        inception_date=inception,
        maturity_date=maturity,
        notional=notional,
        initial_fixings=fixings,
        coupon_history=history,
        manual_barrier_breach=bool(data.get("manual_barrier_breach", False)),
        name=data.get("name"),
    )
