"""
terms.py - Tagged union of product terms and parameter-bag parsing

Term sheets often arrive as loose JSON (form posts, extracted parameters,
stored positions). terms_from_dict() turns such a bag into exactly one of:

    ReverseConvertibleTerms   tag "RC"
    CapitalProtectedTerms     tag "CPPN"
    CapitalProtectedTerms     tag "BONUS" (bonus enabled, protection 0)

Each variant only accepts its legal fields; unknown keys, missing required
keys, wrongly typed values or fields that belong to another variant raise
TermsError listing every problem. Range checks are left to
validate_terms(), which never raises.
"""

from __future__ import annotations
from dataclasses import fields
from enum import Enum
from typing import Any, Dict, List, Mapping, Union

from .core import ProductType, TermsError, Underlying, ValidationResult
from .products.capital_protected import (
    CapitalProtectedTerms,
    validate_capital_protected_terms,
)
from .products.reverse_convertible import (
    RCVariant,
    ReverseConvertibleTerms,
    validate_reverse_convertible_terms,
)

Terms = Union[ReverseConvertibleTerms, CapitalProtectedTerms]

PRODUCT_TAG_BONUS = "BONUS"

_REQUIRED = ("notional", "currency", "tenor_months", "underlyings", "initial_fixings")

_NUMERIC_FIELDS = {
    "notional", "tenor_months", "coupon_rate_pa", "coupon_freq_per_year",
    "coupon_trigger_level_pct", "conversion_ratio", "barrier_pct", "strike_pct",
    "knock_in_barrier_pct", "autocall_level_pct", "autocall_frequency",
    "capital_protection_pct", "participation_start_pct", "participation_rate_pct",
    "cap_level_pct", "knock_in_level_pct", "downside_strike_pct",
    "bonus_level_pct", "bonus_barrier_pct",
}

_INTEGER_FIELDS = {"tenor_months", "coupon_freq_per_year", "autocall_frequency"}

_BOOLEAN_FIELDS = {"autocall_enabled", "autocall_step_down", "knock_in_enabled", "bonus_enabled"}

# Fields that only one RC variant may carry.
_RC_VARIANT_FIELDS = {
    RCVariant.STANDARD_BARRIER: {"barrier_pct"},
    RCVariant.LOW_STRIKE_GEARED_PUT: {"strike_pct", "knock_in_barrier_pct"},
}

_BONUS_FIELDS = {"bonus_level_pct", "bonus_barrier_pct"}


def _init_fields(cls) -> set:
    return {f.name for f in fields(cls) if f.init}


def _parse_underlyings(raw: Any, errors: List[str]) -> tuple:
    if not isinstance(raw, (list, tuple)):
        errors.append("underlyings must be a list")
        return ()
    parsed = []
    for i, item in enumerate(raw):
        if isinstance(item, Underlying):
            parsed.append(item)
        elif isinstance(item, str):
            parsed.append(Underlying(ticker=item))
        elif isinstance(item, Mapping) and isinstance(item.get("ticker"), str):
            parsed.append(Underlying(
                ticker=item["ticker"],
                name=item.get("name"),
                initial_fixing=item.get("initial_fixing"),
            ))
        else:
            errors.append(f"underlyings[{i}] must be a ticker or a mapping with a ticker")
    return tuple(parsed)


def _check_types(data: Dict[str, Any], errors: List[str]) -> None:
    for key, value in data.items():
        if value is None:
            continue
        if key in _NUMERIC_FIELDS:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                errors.append(f"{key} must be a number, got {value!r}")
            elif key in _INTEGER_FIELDS and value != int(value):
                errors.append(f"{key} must be a whole number, got {value!r}")
        elif key in _BOOLEAN_FIELDS and not isinstance(value, bool):
            errors.append(f"{key} must be true or false, got {value!r}")

    fixings = data.get("initial_fixings")
    if fixings is not None:
        if not isinstance(fixings, (list, tuple)) or any(
            isinstance(f, bool) or not isinstance(f, (int, float)) for f in fixings
        ):
            errors.append("initial_fixings must be a list of numbers")


def terms_from_dict(data: Mapping[str, Any]) -> Terms:
    """
    Build a term sheet from a parameter bag.

    Args:
        data: Mapping with a "product_type" tag (RC, CPPN or BONUS) and the
              snake_case fields of the matching terms class.

    Returns:
        ReverseConvertibleTerms or CapitalProtectedTerms.

    Raises:
        TermsError: Listing every structural problem found.

    Example:
        >>> terms = terms_from_dict({
        ...     "product_type": "RC", "notional": 100000, "currency": "USD",
        ...     "tenor_months": 12, "underlyings": ["AAPL"], "initial_fixings": [100],
        ...     "coupon_rate_pa": 0.10, "barrier_pct": 0.70,
        ... })
        >>> terms.barrier_pct
        0.7
    """
    if not isinstance(data, Mapping):
        raise TermsError([f"Terms must be a mapping, got {type(data).__name__}"])

    bag = dict(data)
    tag = str(bag.pop("product_type", "") or "").upper()
    errors: List[str] = []

    if tag == ProductType.RC.value:
        cls = ReverseConvertibleTerms
        required = _REQUIRED + ("coupon_rate_pa",)
    elif tag == ProductType.CPPN.value:
        cls = CapitalProtectedTerms
        required = _REQUIRED
        if not bag.get("bonus_enabled"):
            illegal = sorted(k for k in _BONUS_FIELDS if bag.get(k) is not None)
            errors.extend(f"{k} is only allowed when bonus_enabled is true" for k in illegal)
    elif tag == PRODUCT_TAG_BONUS:
        cls = CapitalProtectedTerms
        bag.setdefault("bonus_enabled", True)
        bag.setdefault("capital_protection_pct", 0)
        required = _REQUIRED + ("bonus_level_pct", "bonus_barrier_pct")
    else:
        raise TermsError([f"Unknown product type {tag or None!r}; expected RC, CPPN or BONUS"])

    unknown = sorted(set(bag) - _init_fields(cls))
    errors.extend(f"Unknown field for {tag}: {key}" for key in unknown)
    missing = [key for key in required if bag.get(key) is None]
    errors.extend(f"Missing required field: {key}" for key in missing)

    if cls is ReverseConvertibleTerms:
        try:
            variant = RCVariant(bag.get("variant", RCVariant.STANDARD_BARRIER))
        except ValueError:
            errors.append(f"Unknown RC variant {bag.get('variant')!r}")
        else:
            for other, owned in _RC_VARIANT_FIELDS.items():
                if other == variant:
                    continue
                for key in sorted(owned):
                    if bag.get(key) is not None:
                        errors.append(f"{key} is not allowed for variant {variant.value}")

    _check_types({k: v for k, v in bag.items() if k not in unknown}, errors)

    if "underlyings" in bag and bag["underlyings"] is not None:
        bag["underlyings"] = _parse_underlyings(bag["underlyings"], errors)

    if errors:
        raise TermsError(errors)

    for key in _INTEGER_FIELDS:
        if bag.get(key) is not None:
            bag[key] = int(bag[key])
    bag["initial_fixings"] = tuple(float(f) for f in bag["initial_fixings"])

    return cls(**bag)


def terms_to_dict(terms: Terms) -> Dict[str, Any]:
    """Plain-data form of a term sheet, accepted back by terms_from_dict()."""
    data: Dict[str, Any] = {"product_type": terms.product_type.value}
    for f in fields(terms):
        if not f.init:
            continue
        value = getattr(terms, f.name)
        if f.name == "underlyings":
            value = [
                {"ticker": u.ticker, "name": u.name, "initial_fixing": u.initial_fixing}
                for u in value
            ]
        elif isinstance(value, Enum):
            value = value.value
        elif isinstance(value, tuple):
            value = list(value)
        data[f.name] = value
    return data


def validate_terms(terms: Any) -> ValidationResult:
    """
    Validate any term sheet. Never raises.

    Objects that are not a known terms class are reported as invalid.
    """
    if isinstance(terms, ReverseConvertibleTerms):
        return validate_reverse_convertible_terms(terms)
    if isinstance(terms, CapitalProtectedTerms):
        return validate_capital_protected_terms(terms)
    return ValidationResult.from_errors([f"Unsupported terms type: {type(terms).__name__}"])
