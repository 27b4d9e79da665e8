"""
test_capital_protected.py - Unit tests for Capital Protected Participation Notes

Tests:
- Protected regime: floor, participation, cap, direction
- Bonus Certificate regime
- Knock-in regime and continuity at the knock-in
- Basket level per basket type
- Full payoff result and logging
- Validation messages
- Break-even analysis
"""

import pytest
from datetime import date

from structlog.testing import capture_logs

from notekit import (
    BasketType,
    CashflowEventType,
    MarketData,
    SettlementType,
    Underlying,
    calculate_capital_protected_payoff,
    calculate_cppn_break_even,
    compute_basket_level_pct,
    compute_cppn_payoff_pct,
    default_capital_protected_terms,
    knock_in_settlement,
    validate_capital_protected_terms,
)

START = date(2024, 1, 15)


def two_stock(make_cppn, basket_type, **overrides):
    return make_cppn(
        basket_type=basket_type,
        underlyings=(Underlying("AAPL"), Underlying("MSFT")),
        initial_fixings=(100.0, 100.0),
        **overrides,
    )


class TestProtectedRegime:
    """Tests for protected participation."""

    def test_default_participation(self):
        assert compute_cppn_payoff_pct(default_capital_protected_terms(), 110).redemption_pct == 1.12

    def test_floor_below_start(self, make_cppn):
        terms = make_cppn(capital_protection_pct=90)
        assert compute_cppn_payoff_pct(terms, 50).redemption_pct == 0.9

    def test_cap_enforced(self, make_cppn):
        terms = make_cppn(participation_rate_pct=120, cap_type="capped", cap_level_pct=125)
        assert compute_cppn_payoff_pct(terms, 130).redemption_pct == 1.25

    def test_down_participation(self, make_cppn):
        terms = make_cppn(participation_direction="down")
        assert compute_cppn_payoff_pct(terms, 80).redemption_pct == 1.2
        assert compute_cppn_payoff_pct(terms, 120).redemption_pct == 1.0


class TestBonusRegime:
    """Tests for the Bonus Certificate sub-mode (B=70, BL=108, cap 125)."""

    @pytest.mark.parametrize("level,expected,paid", [
        (120, 1.20, True),
        (105, 1.08, True),
        (90, 1.08, True),
        (72, 1.08, True),
        (68, 0.68, False),
    ])
    def test_bonus_scenarios(self, bonus_certificate, level, expected, paid):
        payoff = compute_cppn_payoff_pct(bonus_certificate, level)
        assert payoff.redemption_pct == expected
        assert payoff.bonus_paid is paid

    def test_cap_bounds_bonus_upside(self, bonus_certificate):
        assert compute_cppn_payoff_pct(bonus_certificate, 150).redemption_pct == 1.25

    def test_forced_breach_overrides_level(self, bonus_certificate):
        payoff = compute_cppn_payoff_pct(bonus_certificate, 90, bonus_barrier_breached=True)
        assert payoff.redemption_pct == 0.9
        assert not payoff.bonus_paid


class TestKnockInRegime:
    """Tests for the knock-in and the continuity guard."""

    def test_knock_in_gears_downside(self, make_cppn):
        terms = make_cppn(knock_in_enabled=True, knock_in_level_pct=70)
        payoff = compute_cppn_payoff_pct(terms, 50)
        assert payoff.knock_in_triggered
        assert payoff.redemption_pct == 0.714286

    def test_above_knock_in_is_protected(self, make_cppn):
        terms = make_cppn(knock_in_enabled=True, knock_in_level_pct=70)
        payoff = compute_cppn_payoff_pct(terms, 75)
        assert not payoff.knock_in_triggered
        assert payoff.redemption_pct == 1.0

    def test_continuity_at_knock_in(self, make_cppn):
        terms = make_cppn(capital_protection_pct=90, knock_in_enabled=True, knock_in_level_pct=70)
        at = compute_cppn_payoff_pct(terms, 70).redemption_pct
        below = compute_cppn_payoff_pct(terms, 69.9999).redemption_pct
        assert at == 0.9
        assert below == pytest.approx(at, abs=1e-5)
        assert below <= at

    def test_forced_knock_in(self, make_cppn):
        terms = make_cppn(knock_in_enabled=True, knock_in_level_pct=70)
        assert compute_cppn_payoff_pct(terms, 90, knock_in_breached=True).knock_in_triggered

    def test_strike_raise_is_logged(self, make_cppn):
        terms = make_cppn(capital_protection_pct=90, knock_in_enabled=True, knock_in_level_pct=70)
        market = MarketData((100.0,), (60.0,))
        with capture_logs() as logs:
            result = calculate_capital_protected_payoff(terms, market, START)
        assert result.knock_in_triggered
        assert any(entry["event"] == "downside_strike_raised" for entry in logs)


class TestBasketLevel:
    """Tests for compute_basket_level_pct."""

    def test_worst_of(self, make_cppn):
        terms = two_stock(make_cppn, BasketType.WORST_OF)
        level = compute_basket_level_pct(terms, MarketData((100.0, 100.0), (90.0, 110.0)))
        assert level.basket_level_pct == 90.0
        assert level.worst_underlying_index == 0
        assert level.best_underlying_index is None

    def test_best_of(self, make_cppn):
        terms = two_stock(make_cppn, BasketType.BEST_OF)
        level = compute_basket_level_pct(terms, MarketData((100.0, 100.0), (90.0, 110.0)))
        assert level.basket_level_pct == 110.0
        assert level.best_underlying_index == 1

    def test_average(self, make_cppn):
        terms = two_stock(make_cppn, BasketType.AVERAGE)
        level = compute_basket_level_pct(terms, MarketData((100.0, 100.0), (90.0, 110.0)))
        assert level.basket_level_pct == 100.0
        assert level.worst_underlying_index is None


class TestPayoffResult:
    """Tests for calculate_capital_protected_payoff."""

    def test_single_maturity_event(self):
        terms = default_capital_protected_terms()
        result = calculate_capital_protected_payoff(terms, MarketData((100.0,), (110.0,)), START)
        assert len(result.timeline.events) == 1
        event = result.timeline.events[0]
        assert event.event_type == CashflowEventType.MATURITY
        assert event.date == date(2025, 1, 15)
        assert event.amount == pytest.approx(112000.0)
        assert result.coupon_pct == 0.0
        assert result.total_pct == result.redemption_pct
        assert result.settlement_type == SettlementType.CASH

    def test_knock_in_delivers_reference_stock(self, make_cppn):
        terms = make_cppn(capital_protection_pct=90, knock_in_enabled=True, knock_in_level_pct=70)
        result = calculate_capital_protected_payoff(terms, MarketData((100.0,), (50.0,)), START)
        assert result.knock_in_triggered
        assert result.settlement_type == SettlementType.PHYSICAL

    def test_average_basket_knock_in_settles_cash(self, make_cppn):
        terms = two_stock(
            make_cppn, BasketType.AVERAGE,
            capital_protection_pct=90, knock_in_enabled=True, knock_in_level_pct=70,
        )
        result = calculate_capital_protected_payoff(terms, MarketData((100.0, 100.0), (40.0, 60.0)), START)
        assert result.knock_in_triggered
        assert result.settlement_type == SettlementType.CASH

    @pytest.mark.parametrize("basket_type, expected", [
        (BasketType.SINGLE, SettlementType.PHYSICAL),
        (BasketType.WORST_OF, SettlementType.PHYSICAL),
        (BasketType.BEST_OF, SettlementType.PHYSICAL),
        (BasketType.AVERAGE, SettlementType.CASH),
    ])
    def test_knock_in_settlement_rule(self, basket_type, expected):
        assert knock_in_settlement(basket_type) == expected


class TestValidation:
    """Tests for validate_capital_protected_terms."""

    def test_default_is_valid(self):
        assert validate_capital_protected_terms(default_capital_protected_terms()).valid

    def test_discontinuous_strike_rejected(self, make_cppn):
        terms = make_cppn(
            capital_protection_pct=90, knock_in_enabled=True,
            knock_in_level_pct=70, downside_strike_pct=70,
        )
        result = validate_capital_protected_terms(terms)
        assert not result.valid
        assert "Set S >= 77.78%" in result.errors[0]
        assert "KI=70%" in result.errors[0]

    def test_strike_at_minimum_accepted(self, make_cppn):
        terms = make_cppn(
            capital_protection_pct=90, knock_in_enabled=True,
            knock_in_level_pct=70, downside_strike_pct=78,
        )
        assert validate_capital_protected_terms(terms).valid

    def test_cap_must_exceed_start(self, make_cppn):
        result = validate_capital_protected_terms(make_cppn(cap_type="capped", cap_level_pct=100))
        assert "Cap level (%) must be greater than Participation start (%) when capped" in result.errors

    def test_bonus_requires_zero_protection(self, make_bonus):
        result = validate_capital_protected_terms(make_bonus(capital_protection_pct=100))
        assert "Bonus feature is only available when Capital Protection is 0%" in result.errors

    def test_bonus_certificate_is_valid(self, bonus_certificate):
        assert validate_capital_protected_terms(bonus_certificate).valid

    def test_unprotected_knock_in_rejected(self, make_cppn):
        terms = make_cppn(capital_protection_pct=0, knock_in_enabled=True, knock_in_level_pct=70)
        result = validate_capital_protected_terms(terms)
        assert not result.valid
        assert "continuity guard" in result.errors[0]
        assert "KI=70%" in result.errors[0]

    def test_unprotected_down_participation_knock_in_accepted(self, make_cppn):
        terms = make_cppn(
            capital_protection_pct=0, participation_direction="down",
            knock_in_enabled=True, knock_in_level_pct=70, downside_strike_pct=240,
        )
        assert validate_capital_protected_terms(terms).valid

    def test_wrongly_typed_field_reported(self, make_cppn):
        result = validate_capital_protected_terms(make_cppn(participation_rate_pct="100"))
        assert result.errors == ("participation_rate_pct must be a number, got '100'",)

    def test_basket_needs_unique_tickers(self, make_cppn):
        terms = make_cppn(
            basket_type=BasketType.WORST_OF,
            underlyings=(Underlying("AAPL"), Underlying("AAPL")),
            initial_fixings=(100.0, 100.0),
        )
        assert "Underlying symbols must be unique" in validate_capital_protected_terms(terms).errors


class TestBreakEven:
    """Tests for calculate_cppn_break_even."""

    def test_full_protection_always_breaks_even(self):
        assert calculate_cppn_break_even(default_capital_protected_terms()).kind == "always"

    def test_partial_protection_level(self, make_cppn):
        result = calculate_cppn_break_even(make_cppn(capital_protection_pct=90))
        assert result.kind == "level"
        assert result.level_pct == pytest.approx(110.0)

    def test_zero_participation_impossible(self, make_cppn):
        result = calculate_cppn_break_even(make_cppn(capital_protection_pct=90, participation_rate_pct=0))
        assert result.kind == "impossible"
        assert result.max_return_pct == 90

    def test_bonus_conditional(self, bonus_certificate):
        result = calculate_cppn_break_even(bonus_certificate)
        assert result.kind == "bonus_conditional"
        assert result.barrier_pct == 70

    def test_knock_in_conditional(self, make_cppn):
        terms = make_cppn(capital_protection_pct=90, knock_in_enabled=True, knock_in_level_pct=70)
        result = calculate_cppn_break_even(terms)
        assert result.kind == "knock_in_conditional"
        assert result.protected_break_even_pct == pytest.approx(110.0)
