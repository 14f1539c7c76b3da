"""Loyalty tiers derived from a customer's lifetime visit count.

Tiers use closed-open visit intervals: BRONZE [0,10), SILVER [10,20),
GOLD [20,30), PLATINUM [30,inf). A salon may override thresholds and
discounts; unset overrides keep the defaults.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Tier(str, Enum):
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"


TIER_ORDER: tuple[Tier, ...] = (Tier.BRONZE, Tier.SILVER, Tier.GOLD, Tier.PLATINUM)

DEFAULT_MIN_VISITS: dict[Tier, int] = {
    Tier.BRONZE: 0,
    Tier.SILVER: 10,
    Tier.GOLD: 20,
    Tier.PLATINUM: 30,
}

DEFAULT_DISCOUNTS: dict[Tier, int] = {
    Tier.BRONZE: 10,
    Tier.SILVER: 15,
    Tier.GOLD: 20,
    Tier.PLATINUM: 25,
}

DISPLAY_NAMES: dict[Tier, str] = {
    Tier.BRONZE: "Bronze",
    Tier.SILVER: "Silver",
    Tier.GOLD: "Gold",
    Tier.PLATINUM: "Platinum",
}


@dataclass(frozen=True)
class TierBenefits:
    discount_percent: int
    display_name: str


@dataclass(frozen=True)
class LoyaltyProgram:
    min_visits: dict[Tier, int] = field(default_factory=lambda: dict(DEFAULT_MIN_VISITS))
    discounts: dict[Tier, int] = field(default_factory=lambda: dict(DEFAULT_DISCOUNTS))

    @classmethod
    def for_salon(cls, salon: Any) -> "LoyaltyProgram":
        """Build the program from a salon's nullable override columns."""
        if salon is None:
            return DEFAULT_PROGRAM

        min_visits = dict(DEFAULT_MIN_VISITS)
        discounts = dict(DEFAULT_DISCOUNTS)
        for tier in TIER_ORDER:
            key = tier.value.lower()
            threshold = getattr(salon, f"loyalty_{key}_min_visits", None)
            if threshold is not None and tier is not Tier.BRONZE:
                min_visits[tier] = int(threshold)
            discount = getattr(salon, f"loyalty_{key}_discount", None)
            if discount is not None:
                discounts[tier] = int(discount)

        thresholds = [min_visits[tier] for tier in TIER_ORDER]
        if thresholds != sorted(set(thresholds)):
            raise ValueError(f"Loyalty thresholds must be strictly increasing: {thresholds}")
        return cls(min_visits=min_visits, discounts=discounts)


DEFAULT_PROGRAM = LoyaltyProgram()


def classify(visit_count: int, program: LoyaltyProgram = DEFAULT_PROGRAM) -> Tier:
    if visit_count < 0:
        raise ValueError("visit_count must be non-negative")
    current = Tier.BRONZE
    for tier in TIER_ORDER:
        if visit_count >= program.min_visits[tier]:
            current = tier
    return current


def benefits_of(tier: Tier, program: LoyaltyProgram = DEFAULT_PROGRAM) -> TierBenefits:
    return TierBenefits(discount_percent=program.discounts[tier], display_name=DISPLAY_NAMES[tier])


def next_tier(tier: Tier) -> Tier | None:
    index = TIER_ORDER.index(tier)
    if index + 1 >= len(TIER_ORDER):
        return None
    return TIER_ORDER[index + 1]


@dataclass(frozen=True)
class LoyaltySummary:
    visit_count: int
    tier: Tier
    display_name: str
    discount_percent: int
    next_tier: Tier | None
    visits_to_next_tier: int | None


def loyalty_summary(visit_count: int, program: LoyaltyProgram = DEFAULT_PROGRAM) -> LoyaltySummary:
    tier = classify(visit_count, program)
    benefits = benefits_of(tier, program)
    upcoming = next_tier(tier)
    remaining = None
    if upcoming is not None:
        remaining = program.min_visits[upcoming] - visit_count
    return LoyaltySummary(
        visit_count=visit_count,
        tier=tier,
        display_name=benefits.display_name,
        discount_percent=benefits.discount_percent,
        next_tier=upcoming,
        visits_to_next_tier=remaining,
    )
