"""
Tier rules shared by profile validation and the commission engine.

Works on anything shaped like a tier (ORM rows or pydantic models) exposing
tier_level, session_threshold, session_commission_percent and session_flat_fee.
The sales and bonus fields are read with getattr and may be missing.
"""
from decimal import Decimal
from typing import Sequence

from fitledger.core.exceptions import (
    CommissionConfigurationError,
    DuplicateTierThresholdError,
    NoTierDefinedError,
)
from fitledger.models.enums import CalculationMethod


def sort_tiers(tiers: Sequence) -> list:
    """Ascending threshold; equal thresholds fall back to the lowest tier_level first."""
    return sorted(tiers, key=lambda t: (t.session_threshold, t.tier_level))


def resolve_tier(tiers: Sequence, cumulative_session_count: int):
    ordered = sort_tiers(tiers)
    if not ordered:
        raise NoTierDefinedError(cumulative_session_count)

    chosen = None
    for tier in ordered:
        if tier.session_threshold > cumulative_session_count:
            break
        # Keep the first tier seen for a threshold so duplicates resolve to the lowest level
        if chosen is None or tier.session_threshold > chosen.session_threshold:
            chosen = tier

    if chosen is None:
        raise NoTierDefinedError(cumulative_session_count, ordered[0].session_threshold)
    return chosen


def resolve_tier_for_session_index(profile, cumulative_session_count: int):
    """
    Return the tier of `profile` with the greatest session_threshold that is
    <= cumulative_session_count, the number of validated sessions billed
    before the one being priced.
    """
    return resolve_tier(profile.tiers, cumulative_session_count)


def validate_tiers(tiers: Sequence, calculation_method: CalculationMethod) -> None:
    """
    Check a tier set before it is saved. Raises CommissionConfigurationError
    (or its DuplicateTierThresholdError subclass) describing the first problem.
    """
    if not tiers:
        raise CommissionConfigurationError("A commission profile needs at least one tier")

    levels = [t.tier_level for t in tiers]
    if len(set(levels)) != len(levels):
        raise CommissionConfigurationError("Tier levels must be unique within a profile")

    seen_thresholds = set()
    for tier in tiers:
        if tier.session_threshold is None or tier.session_threshold < 0:
            raise CommissionConfigurationError(
                f"Tier {tier.tier_level} must have a session threshold of 0 or more"
            )
        if tier.session_threshold in seen_thresholds:
            raise DuplicateTierThresholdError(tier.session_threshold)
        seen_thresholds.add(tier.session_threshold)

    by_level = sorted(tiers, key=lambda t: t.tier_level)
    for lower, higher in zip(by_level, by_level[1:]):
        if higher.session_threshold <= lower.session_threshold:
            raise CommissionConfigurationError(
                f"Tier {higher.tier_level} threshold ({higher.session_threshold}) must be greater than "
                f"tier {lower.tier_level} threshold ({lower.session_threshold})"
            )

    if by_level[0].session_threshold != 0:
        raise CommissionConfigurationError(
            f"The lowest tier must start at 0 sessions, not {by_level[0].session_threshold}"
        )

    for tier in tiers:
        if calculation_method == CalculationMethod.PERCENTAGE:
            percent = tier.session_commission_percent
            if percent is None:
                raise CommissionConfigurationError(f"Tier {tier.tier_level} is missing a commission percent")
            if not Decimal(0) <= Decimal(percent) <= Decimal(100):
                raise CommissionConfigurationError(
                    f"Tier {tier.tier_level} percent must be between 0 and 100, got {percent}"
                )
        else:
            fee = tier.session_flat_fee
            if fee is None:
                raise CommissionConfigurationError(f"Tier {tier.tier_level} is missing a flat fee")
            if Decimal(fee) < 0:
                raise CommissionConfigurationError(f"Tier {tier.tier_level} flat fee cannot be negative")

        # Sales and bonus rates are optional on every tier
        sales_percent = getattr(tier, "sales_commission_percent", None)
        if sales_percent is not None and not Decimal(0) <= Decimal(sales_percent) <= Decimal(100):
            raise CommissionConfigurationError(
                f"Tier {tier.tier_level} sales percent must be between 0 and 100, got {sales_percent}"
            )
        for field, label in (("sales_flat_fee", "sales flat fee"), ("tier_bonus", "bonus")):
            amount = getattr(tier, field, None)
            if amount is not None and Decimal(amount) < 0:
                raise CommissionConfigurationError(f"Tier {tier.tier_level} {label} cannot be negative")
