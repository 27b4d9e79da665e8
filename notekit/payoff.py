"""
payoff.py - Single entry point over the product payoff engines

calculate_payoff() routes a term sheet to its engine. Terms must have
passed validate_terms() first; the engines assume valid input.
"""

from __future__ import annotations
from datetime import date
from typing import Optional

from .core import MarketData, PayoffResult
from .logging_config import get_logger
from .products.capital_protected import CapitalProtectedTerms, calculate_capital_protected_payoff
from .products.reverse_convertible import ReverseConvertibleTerms, calculate_reverse_convertible_payoff

logger = get_logger(__name__)


def calculate_payoff(
    terms,
    market_data: MarketData,
    start_date: Optional[date] = None,
) -> PayoffResult:
    """
    Payoff at maturity for a term sheet and a set of prices.

    Args:
        terms: ReverseConvertibleTerms or CapitalProtectedTerms.
        market_data: Initial fixings and spot/final prices.
        start_date: Inception the schedule is anchored on. Defaults to
            today, so pass it explicitly for reproducible timelines.

    Raises:
        TypeError: For anything that is not a known terms class.

    Example:
        >>> from notekit.products import default_reverse_convertible_terms
        >>> terms = default_reverse_convertible_terms()
        >>> market = MarketData((100.0,), (65.0,))
        >>> calculate_payoff(terms, market, date(2024, 1, 15)).total_pct
        0.75
    """
    start = start_date or date.today()
    logger.debug(
        "calculate_payoff",
        product_type=getattr(getattr(terms, "product_type", None), "value", None),
        start_date=start.isoformat(),
        underlyings=len(market_data.initial_fixings),
    )

    if isinstance(terms, ReverseConvertibleTerms):
        return calculate_reverse_convertible_payoff(terms, market_data, start)
    if isinstance(terms, CapitalProtectedTerms):
        return calculate_capital_protected_payoff(terms, market_data, start)
    raise TypeError(f"Unsupported terms type: {type(terms).__name__}")
