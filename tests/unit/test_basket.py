"""
test_basket.py - Unit tests for basket level aggregation

Tests:
- calc_levels: normalization, length mismatch, zero fixing
- worst_of / best_of: extremes and tie-breaking
- average_of and basket_level dispatch
"""

import pytest

from notekit import (
    BasketType,
    average_of,
    basket_level,
    best_of,
    calc_levels,
    worst_of,
)


class TestCalcLevels:
    """Tests for per-underlying level normalization."""

    def test_levels_are_spot_over_initial(self):
        assert calc_levels([90.0, 110.0], [100.0, 100.0]) == [0.9, 1.1]

    def test_different_fixings(self):
        levels = calc_levels([120.0, 30.0], [200.0, 50.0])
        assert levels == pytest.approx([0.6, 0.6])

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError, match="same length"):
            calc_levels([90.0], [100.0, 100.0])

    def test_zero_fixing_yields_zero_level(self):
        assert calc_levels([50.0], [0.0]) == [0.0]


class TestWorstAndBest:
    """Tests for extreme-level selection."""

    def test_worst_of_returns_level_and_index(self):
        assert worst_of([1.0, 0.8, 0.9]) == (0.8, 1)

    def test_worst_of_tie_takes_lowest_index(self):
        assert worst_of([1.0, 0.8, 0.8]) == (0.8, 1)

    def test_best_of_tie_takes_lowest_index(self):
        assert best_of([1.2, 1.2, 0.5]) == (1.2, 0)

    def test_empty_levels_raise(self):
        with pytest.raises(ValueError):
            worst_of([])
        with pytest.raises(ValueError):
            best_of([])
        with pytest.raises(ValueError):
            average_of([])


class TestBasketLevel:
    """Tests for basket_level dispatch."""

    def test_single_reports_index_zero(self):
        result = basket_level([0.75], BasketType.SINGLE)
        assert result.level == 0.75
        assert result.index == 0

    def test_worst_of(self):
        result = basket_level([1.1, 0.7, 0.9], BasketType.WORST_OF)
        assert (result.level, result.index) == (0.7, 1)

    def test_best_of(self):
        result = basket_level([1.1, 0.7, 0.9], "best_of")
        assert (result.level, result.index) == (1.1, 0)

    def test_average_has_no_index(self):
        result = basket_level([0.9, 1.1], BasketType.AVERAGE)
        assert result.level == pytest.approx(1.0)
        assert result.index is None
