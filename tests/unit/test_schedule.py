"""
test_schedule.py - Unit tests for coupon and observation schedules

Tests:
- generate_coupon_schedule: frequencies, month-end anchoring, stub end date
- generate_observation_schedule: explicit first offset
- coupon_count rounding
- Frequency encoding and fallback
"""

import pytest
from datetime import date

from structlog.testing import capture_logs

from notekit import (
    CouponFrequency,
    coupon_count,
    frequency_from_string,
    frequency_to_string,
    generate_coupon_schedule,
    generate_observation_schedule,
    months_per_period,
)


class TestCouponSchedule:
    """Tests for generate_coupon_schedule."""

    def test_quarterly_twelve_months(self):
        assert generate_coupon_schedule(date(2024, 1, 15), 12, 4) == [
            date(2024, 4, 15),
            date(2024, 7, 15),
            date(2024, 10, 15),
            date(2025, 1, 15),
        ]

    def test_semi_annual_eighteen_months(self):
        assert generate_coupon_schedule(date(2024, 1, 15), 18, 2) == [
            date(2024, 7, 15),
            date(2025, 1, 15),
            date(2025, 7, 15),
        ]

    def test_month_end_does_not_drift(self):
        assert generate_coupon_schedule(date(2024, 1, 31), 3, 12) == [
            date(2024, 2, 29),
            date(2024, 3, 31),
            date(2024, 4, 30),
        ]

    def test_tenor_end_is_appended(self):
        assert generate_coupon_schedule(date(2024, 1, 15), 7, 4) == [
            date(2024, 4, 15),
            date(2024, 7, 15),
            date(2024, 8, 15),
        ]

    def test_explicit_first_payment_offset(self):
        dates = generate_coupon_schedule(date(2024, 1, 15), 12, 4, first_payment_offset_months=1)
        assert dates[0] == date(2024, 2, 15)
        assert dates[-1] == date(2025, 1, 15)

    def test_invalid_frequency_raises(self):
        with pytest.raises(ValueError, match="Frequency must be"):
            generate_coupon_schedule(date(2024, 1, 15), 12, 3)


class TestObservationSchedule:

    def test_first_observation_after_offset(self):
        assert generate_observation_schedule(date(2024, 1, 15), 12, 4, 6) == [
            date(2024, 7, 15),
            date(2024, 10, 15),
            date(2025, 1, 15),
        ]


class TestCouponCount:
    """Tests for coupon_count rounding."""

    @pytest.mark.parametrize("tenor,freq,expected", [
        (12, 4, 4),
        (18, 4, 6),
        (7, 4, 2),
        (9, 2, 2),
        (3, 1, 0),
        (24, 12, 24),
    ])
    def test_counts(self, tenor, freq, expected):
        assert coupon_count(tenor, freq) == expected


class TestFrequencyEncoding:
    """Tests for frequency labels."""

    def test_to_string(self):
        assert frequency_to_string(12) == "Monthly"
        assert frequency_to_string(4) == "Quarterly"
        assert frequency_to_string(2) == "Semi-Annual"
        assert frequency_to_string(1) == "Annual"

    def test_unknown_value_label(self):
        assert frequency_to_string(5) == "Unknown"

    def test_from_string_is_case_insensitive(self):
        assert frequency_from_string("SEMI-ANNUAL") == CouponFrequency.SEMI_ANNUAL

    def test_unknown_string_falls_back_to_quarterly(self):
        with capture_logs() as logs:
            assert frequency_from_string("weekly") == CouponFrequency.QUARTERLY
        assert any(entry["event"] == "unknown_frequency_defaulted" for entry in logs)

    def test_months_per_period(self):
        assert months_per_period(12) == 1
        assert months_per_period(1) == 12
        with pytest.raises(ValueError):
            months_per_period(3)
