"""
Products module - Term sheets and payoff engines per note family.

- Reverse Convertibles (standard barrier, low strike / geared put)
- Capital Protected Participation Notes, including Bonus Certificates
- Continuity guard for the CPPN knock-in
- Autocall observation helpers

All product functions are re-exported here for convenience.
"""

# Reverse Convertibles
from .reverse_convertible import (
    RCVariant,
    CouponType,
    ReverseConvertibleTerms,
    RCOutcome,
    EndingValue,
    default_reverse_convertible_terms,
    validate_reverse_convertible_terms,
    calculate_standard_barrier_rc,
    calculate_low_strike_geared_put,
    calculate_rc_outcome,
    calculate_reverse_convertible_payoff,
    calculate_total_coupons_pct,
    calculate_break_even_pct,
    calculate_ending_value,
)

# Continuity guard
from .guards import (
    ProtectedParams,
    StrikeEnforcement,
    participation_delta,
    protected_payoff_pct_at,
    compute_s_min,
    compute_s_min_for_continuity,
    enforce_strike_for_continuity,
)

# Capital Protected Participation Notes
from .capital_protected import (
    ParticipationDirection,
    CapType,
    KnockInMode,
    CapitalProtectedTerms,
    CppnBasketLevel,
    CppnPayoff,
    BreakEvenResult,
    default_capital_protected_terms,
    validate_capital_protected_terms,
    compute_basket_level_pct,
    compute_cppn_payoff_pct,
    calculate_capital_protected_payoff,
    calculate_cppn_break_even,
    knock_in_settlement,
)

# Autocall
from .autocall import (
    AutocallObservation,
    generate_autocall_schedule,
    generate_step_down_levels,
    check_autocall_trigger,
    calculate_autocall_payout,
    next_autocall_observation,
)

__all__ = [
    # Reverse Convertibles
    'RCVariant',
    'CouponType',
    'ReverseConvertibleTerms',
    'RCOutcome',
    'EndingValue',
    'default_reverse_convertible_terms',
    'validate_reverse_convertible_terms',
    'calculate_standard_barrier_rc',
    'calculate_low_strike_geared_put',
    'calculate_rc_outcome',
    'calculate_reverse_convertible_payoff',
    'calculate_total_coupons_pct',
    'calculate_break_even_pct',
    'calculate_ending_value',
    # Continuity guard
    'ProtectedParams',
    'StrikeEnforcement',
    'participation_delta',
    'protected_payoff_pct_at',
    'compute_s_min',
    'compute_s_min_for_continuity',
    'enforce_strike_for_continuity',
    # Capital Protected Participation Notes
    'ParticipationDirection',
    'CapType',
    'KnockInMode',
    'CapitalProtectedTerms',
    'CppnBasketLevel',
    'CppnPayoff',
    'BreakEvenResult',
    'default_capital_protected_terms',
    'validate_capital_protected_terms',
    'compute_basket_level_pct',
    'compute_cppn_payoff_pct',
    'calculate_capital_protected_payoff',
    'calculate_cppn_break_even',
    'knock_in_settlement',
    # Autocall
    'AutocallObservation',
    'generate_autocall_schedule',
    'generate_step_down_levels',
    'check_autocall_trigger',
    'calculate_autocall_payout',
    'next_autocall_observation',
]
