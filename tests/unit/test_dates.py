"""
test_dates.py - Unit tests for calendar arithmetic and date parsing

Tests:
- add_months: month-end clamping, year rollover, negative shifts
- parse_iso_date: success, failure, datetime inputs
- DateResult: ok / unwrap / unwrap_or
"""

import pytest
from datetime import date, datetime

from notekit import DateError, add_months, days_between, parse_iso_date, to_date


class TestAddMonths:
    """Tests for add_months."""

    def test_clamps_to_leap_february(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_clamps_to_common_february(self):
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)

    def test_rolls_over_year(self):
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)

    def test_negative_months(self):
        assert add_months(date(2024, 3, 31), -1) == date(2024, 2, 29)

    def test_zero_months_is_identity(self):
        assert add_months(date(2024, 5, 20), 0) == date(2024, 5, 20)


class TestParseIsoDate:
    """Tests for the Result-style parser."""

    def test_parses_plain_date(self):
        result = parse_iso_date("2024-06-30")
        assert result.ok
        assert result.value == date(2024, 6, 30)

    def test_parses_timestamp_date_part(self):
        assert parse_iso_date("2024-06-30T10:00:00Z").unwrap() == date(2024, 6, 30)

    def test_accepts_date_and_datetime(self):
        assert parse_iso_date(date(2024, 1, 1)).value == date(2024, 1, 1)
        assert parse_iso_date(datetime(2024, 1, 1, 9, 30)).value == date(2024, 1, 1)

    def test_invalid_string_is_error_not_exception(self):
        result = parse_iso_date("2024-13-01")
        assert not result.ok
        assert isinstance(result.error, DateError)
        assert result.error.value == "2024-13-01"

    @pytest.mark.parametrize("value", ["", "   ", None, 20240101])
    def test_non_strings_and_blanks_fail(self, value):
        assert not parse_iso_date(value).ok

    def test_unwrap_raises_stored_error(self):
        with pytest.raises(DateError, match="Invalid date"):
            parse_iso_date("not a date").unwrap()

    def test_unwrap_or_falls_back(self):
        fallback = date(2000, 1, 1)
        assert parse_iso_date("nope").unwrap_or(fallback) == fallback

    def test_to_date_raises(self):
        with pytest.raises(DateError):
            to_date("31/12/2024")


def test_days_between_is_absolute():
    assert days_between(date(2024, 1, 25), date(2024, 1, 15)) == 10
