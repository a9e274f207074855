"""Loyalty tiers: a pure step function of lifetime points."""

from enum import Enum


class Tier(Enum):
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"


# Lower bound (inclusive) of each tier, highest first
TIER_THRESHOLDS = (
    (Tier.PLATINUM, 5000),
    (Tier.GOLD, 2500),
    (Tier.SILVER, 1000),
    (Tier.BRONZE, 0),
)

_ORDER = [Tier.BRONZE, Tier.SILVER, Tier.GOLD, Tier.PLATINUM]


def tier_for(lifetime_points: int) -> Tier:
    for tier, lower_bound in TIER_THRESHOLDS:
        if lifetime_points >= lower_bound:
            return tier
    return Tier.BRONZE


def next_tier(tier: Tier) -> Tier | None:
    position = _ORDER.index(tier)
    return _ORDER[position + 1] if position + 1 < len(_ORDER) else None


def points_to_next_tier(lifetime_points: int) -> int:
    """Points still needed to reach the next tier; 0 once at Platinum."""
    upcoming = next_tier(tier_for(lifetime_points))
    if upcoming is None:
        return 0
    threshold = dict(TIER_THRESHOLDS)[upcoming]
    return threshold - lifetime_points


def is_upgrade(previous: str, new: str) -> bool:
    return _ORDER.index(Tier(new)) > _ORDER.index(Tier(previous))
