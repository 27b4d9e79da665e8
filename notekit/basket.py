"""
basket.py - Basket level aggregation for multi-underlying notes

Functions:
- calc_levels() - Normalized level per underlying (S_i / S0_i)
- worst_of() / best_of() - Extreme level and its index, lowest index on ties
- average_of() - Equally weighted mean level
- basket_level() - Aggregate according to a BasketType

All functions are pure. Initial fixings are validated upstream to be > 0;
a zero fixing yields a level of 0 through safe_divide rather than an error.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .core import BasketType, safe_divide


@dataclass(frozen=True, slots=True)
class BasketLevel:
    """Aggregated level and the index of the reference underlying (None for average)."""
    level: float
    index: Optional[int]


def calc_levels(spots: Sequence[float], initials: Sequence[float]) -> List[float]:
    """
    Normalize current prices against initial fixings.

    Raises:
        ValueError: If the two sequences differ in length.

    Example:
        >>> calc_levels([90.0, 110.0], [100.0, 100.0])
        [0.9, 1.1]
    """
    if len(spots) != len(initials):
        raise ValueError(
            f"Spots and initials must have same length, got {len(spots)} and {len(initials)}"
        )
    return [safe_divide(spot, initial) for spot, initial in zip(spots, initials)]


def worst_of(levels: Sequence[float]) -> Tuple[float, int]:
    """Minimum level and its index. The first occurrence wins a tie."""
    if not levels:
        raise ValueError("Levels cannot be empty")
    worst_index = 0
    for i in range(1, len(levels)):
        if levels[i] < levels[worst_index]:
            worst_index = i
    return levels[worst_index], worst_index


def best_of(levels: Sequence[float]) -> Tuple[float, int]:
    """Maximum level and its index. The first occurrence wins a tie."""
    if not levels:
        raise ValueError("Levels cannot be empty")
    best_index = 0
    for i in range(1, len(levels)):
        if levels[i] > levels[best_index]:
            best_index = i
    return levels[best_index], best_index


def average_of(levels: Sequence[float]) -> float:
    if not levels:
        raise ValueError("Levels cannot be empty")
    return sum(levels) / len(levels)


def basket_level(levels: Sequence[float], basket_type: BasketType) -> BasketLevel:
    """
    Aggregate per-underlying levels according to the basket rule.

    A single-underlying basket reports index 0.
    """
    basket_type = BasketType(basket_type)
    if basket_type == BasketType.SINGLE:
        if not levels:
            raise ValueError("Levels cannot be empty")
        return BasketLevel(levels[0], 0)
    if basket_type == BasketType.WORST_OF:
        level, index = worst_of(levels)
        return BasketLevel(level, index)
    if basket_type == BasketType.BEST_OF:
        level, index = best_of(levels)
        return BasketLevel(level, index)
    return BasketLevel(average_of(levels), None)
