"""
conftest.py - Shared pytest fixtures for notekit tests

Provides common fixtures used across unit and conformance tests:
- Term sheets (barrier RC, low strike RC, worst-of RC, CPPN, bonus)
- Market data helpers
- Positions on a fixed inception date
"""

import pytest
from datetime import date

from notekit import (
    BasketType, MarketData, Underlying,
    CapitalProtectedTerms, ReverseConvertibleTerms, RCVariant,
    create_position,
)


INCEPTION = date(2024, 1, 15)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def rc_terms(**overrides) -> ReverseConvertibleTerms:
    """Single-stock 12m 10% quarterly barrier RC at 70%, fixings of 100."""
    params = dict(
        notional=100000.0,
        currency="USD",
        tenor_months=12,
        underlyings=(Underlying("AAPL"),),
        initial_fixings=(100.0,),
        coupon_rate_pa=0.10,
        coupon_freq_per_year=4,
        variant=RCVariant.STANDARD_BARRIER,
        barrier_pct=0.70,
    )
    params.update(overrides)
    return ReverseConvertibleTerms(**params)


def low_strike_terms(**overrides) -> ReverseConvertibleTerms:
    params = dict(
        variant=RCVariant.LOW_STRIKE_GEARED_PUT,
        barrier_pct=None,
        strike_pct=0.80,
    )
    params.update(overrides)
    return rc_terms(**params)


def worst_of_terms(**overrides) -> ReverseConvertibleTerms:
    params = dict(
        basket_type=BasketType.WORST_OF,
        underlyings=(Underlying("AAPL"), Underlying("MSFT"), Underlying("NVDA")),
        initial_fixings=(100.0, 200.0, 50.0),
    )
    params.update(overrides)
    return rc_terms(**params)


def cppn_terms(**overrides) -> CapitalProtectedTerms:
    """100% protected, participation 100% above 100, single stock."""
    params = dict(
        notional=100000.0,
        currency="USD",
        tenor_months=12,
        underlyings=(Underlying("AAPL"),),
        initial_fixings=(100.0,),
    )
    params.update(overrides)
    return CapitalProtectedTerms(**params)


def bonus_terms(**overrides) -> CapitalProtectedTerms:
    """Bonus certificate: B=70, BL=108, K=100, rate 100%, cap 125."""
    params = dict(
        capital_protection_pct=0,
        cap_type="capped",
        cap_level_pct=125,
        bonus_enabled=True,
        bonus_level_pct=108,
        bonus_barrier_pct=70,
    )
    params.update(overrides)
    return cppn_terms(**params)


def market(*finals: float, initials=None) -> MarketData:
    """Market data with the given final prices against fixings of 100."""
    initials = initials or (100.0,) * len(finals)
    return MarketData(initial_fixings=initials, spot_prices=finals)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def inception():
    return INCEPTION


@pytest.fixture
def barrier_rc():
    return rc_terms()


@pytest.fixture
def geared_rc():
    return low_strike_terms()


@pytest.fixture
def worst_of_rc():
    return worst_of_terms()


@pytest.fixture
def protected_note():
    return cppn_terms()


@pytest.fixture
def bonus_certificate():
    return bonus_terms()


@pytest.fixture
def rc_position(barrier_rc):
    return create_position(barrier_rc, INCEPTION, position_id="rc-1")


@pytest.fixture
def cppn_position(protected_note):
    return create_position(protected_note, INCEPTION, position_id="cppn-1")


@pytest.fixture
def make_rc():
    return rc_terms


@pytest.fixture
def make_low_strike():
    return low_strike_terms


@pytest.fixture
def make_worst_of():
    return worst_of_terms


@pytest.fixture
def make_cppn():
    return cppn_terms


@pytest.fixture
def make_bonus():
    return bonus_terms


@pytest.fixture
def make_market():
    return market
