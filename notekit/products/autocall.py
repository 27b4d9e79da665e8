"""
autocall.py - Autocall observations for Reverse Convertibles

This module provides autocall observation processing:
1. generate_autocall_schedule() - Observation dates with a trigger level each
2. generate_step_down_levels() - Descending trigger levels, floored at 50%
3. check_autocall_trigger() - Whether a basket level meets an observation
4. calculate_autocall_payout() - Principal plus coupons to date
5. next_autocall_observation() - First observation after a date

An autocall redeems the note early, paying principal and coupons to date,
when the basket level is at or above the trigger on an observation date.
Step-down schedules lower the trigger over time.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence

from ..schedule import generate_coupon_schedule

# Step-down levels never go below this trigger.
STEP_DOWN_FLOOR = 0.50


@dataclass(frozen=True, slots=True)
class AutocallObservation:
    """
    One autocall observation.

    Attributes:
        date: Observation date.
        observation_number: 1-indexed position in the schedule.
        autocall_level: Trigger as a decimal level (1.00 == 100%).
        days_since_inception: Calendar days from inception.
    """
    date: date
    observation_number: int
    autocall_level: float
    days_since_inception: int


def generate_autocall_schedule(
    inception_date: date,
    tenor_months: int,
    frequency: int,
    step_down: bool = False,
    step_down_levels: Optional[Sequence[float]] = None,
    fixed_level: float = 1.0,
) -> List[AutocallObservation]:
    """
    Build the observation schedule, one trigger level per date.

    With step_down and a non-empty level list, observation i uses
    levels[min(i, len(levels) - 1)]; otherwise every observation uses
    fixed_level.

    Example:
        >>> obs = generate_autocall_schedule(date(2024, 1, 15), 12, 4, True, [1.0, 0.95])
        >>> [o.autocall_level for o in obs]
        [1.0, 0.95, 0.95, 0.95]
    """
    dates = generate_coupon_schedule(inception_date, tenor_months, frequency)
    use_step_down = step_down and bool(step_down_levels)

    observations = []
    for index, observation_date in enumerate(dates):
        if use_step_down:
            level = step_down_levels[min(index, len(step_down_levels) - 1)]
        else:
            level = fixed_level
        observations.append(AutocallObservation(
            date=observation_date,
            observation_number=index + 1,
            autocall_level=level,
            days_since_inception=(observation_date - inception_date).days,
        ))
    return observations


def generate_step_down_levels(start_level: float, step_size: float, number_of_steps: int) -> List[float]:
    """Descending levels start, start - step, ... each floored at 50%."""
    return [
        max(STEP_DOWN_FLOOR, round(start_level - i * step_size, 10))
        for i in range(number_of_steps)
    ]


def check_autocall_trigger(basket_level: float, observation: AutocallObservation) -> bool:
    return basket_level >= observation.autocall_level


def calculate_autocall_payout(notional: float, coupons_to_date: float) -> float:
    return notional + coupons_to_date


def next_autocall_observation(
    observations: Sequence[AutocallObservation],
    as_of: date,
) -> Optional[AutocallObservation]:
    """First observation strictly after as_of, or None when all have passed."""
    for observation in observations:
        if observation.date > as_of:
            return observation
    return None
