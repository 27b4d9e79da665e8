"""
test_position.py - Unit tests for investment positions

Tests:
- create_position: maturity, coupon history, validation failure
- Coupon status updates and received amounts
- Day counts
- Storage form round trip and date errors
"""

import pytest
from datetime import date

from notekit import (
    DateError,
    TermsError,
    coupons_received,
    create_position,
    days_elapsed,
    days_remaining,
    position_from_dict,
    position_to_dict,
    update_coupon_status,
)

INCEPTION = date(2024, 1, 15)


class TestCreatePosition:
    """Tests for create_position."""

    def test_reverse_convertible_position(self, barrier_rc):
        position = create_position(barrier_rc, INCEPTION)
        assert position.id == "RC-AAPL-2024-01-15"
        assert position.maturity_date == date(2025, 1, 15)
        assert position.notional == 100000.0
        assert position.initial_fixings == (100.0,)
        assert [c.amount for c in position.coupon_history] == [2500.0] * 4
        assert not any(c.paid for c in position.coupon_history)

    def test_capital_protected_has_no_coupons(self, protected_note):
        position = create_position(protected_note, INCEPTION, position_id="p1", name="Growth note")
        assert position.coupon_history == []
        assert position.name == "Growth note"

    def test_notional_override_scales_coupons(self, barrier_rc):
        position = create_position(barrier_rc, INCEPTION, notional=10000.0)
        assert position.coupon_history[0].amount == pytest.approx(250.0)

    def test_invalid_terms_raise_with_all_errors(self, make_rc):
        with pytest.raises(TermsError) as exc:
            create_position(make_rc(notional=0, barrier_pct=2.0), INCEPTION)
        assert "Notional must be greater than 0" in exc.value.errors
        assert len(exc.value.errors) == 2


class TestCouponStatus:
    """Tests for coupon bookkeeping."""

    def test_update_flips_past_coupons(self, rc_position):
        assert update_coupon_status(rc_position, date(2024, 7, 15)) == 2
        assert coupons_received(rc_position) == pytest.approx(5000.0)

    def test_update_is_idempotent(self, rc_position):
        update_coupon_status(rc_position, date(2024, 7, 15))
        assert update_coupon_status(rc_position, date(2024, 7, 15)) == 0

    def test_received_as_of(self, rc_position):
        update_coupon_status(rc_position, date(2025, 1, 15))
        assert coupons_received(rc_position, as_of=date(2024, 5, 1)) == pytest.approx(2500.0)


class TestDayCounts:

    def test_days_elapsed(self, rc_position):
        assert days_elapsed(rc_position, date(2024, 1, 25)) == 10
        assert days_elapsed(rc_position, date(2023, 12, 1)) == 0

    def test_days_remaining(self, rc_position):
        assert days_remaining(rc_position, date(2024, 6, 1)) == 228
        assert days_remaining(rc_position, date(2025, 1, 20)) == 0


class TestStorageForm:
    """Tests for position_to_dict / position_from_dict."""

    def test_round_trip(self, rc_position):
        update_coupon_status(rc_position, date(2024, 4, 15))
        rc_position.manual_barrier_breach = True
        restored = position_from_dict(position_to_dict(rc_position))
        assert restored == rc_position

    def test_derives_missing_fields(self, barrier_rc):
        data = position_to_dict(create_position(barrier_rc, INCEPTION))
        del data["maturity_date"]
        del data["coupon_history"]
        restored = position_from_dict(data)
        assert restored.maturity_date == date(2025, 1, 15)
        assert len(restored.coupon_history) == 4

    def test_bad_date_raises(self, rc_position):
        data = position_to_dict(rc_position)
        data["inception_date"] = "15/01/2024"
        with pytest.raises(DateError):
            position_from_dict(data)
