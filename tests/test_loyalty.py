from types import SimpleNamespace

import pytest

from salon_crm.services.loyalty import (
    DEFAULT_PROGRAM,
    LoyaltyProgram,
    Tier,
    benefits_of,
    classify,
    loyalty_summary,
    next_tier,
)


@pytest.mark.parametrize(
    "visits,expected",
    [
        (0, Tier.BRONZE),
        (9, Tier.BRONZE),
        (10, Tier.SILVER),
        (19, Tier.SILVER),
        (20, Tier.GOLD),
        (29, Tier.GOLD),
        (30, Tier.PLATINUM),
        (250, Tier.PLATINUM),
    ],
)
def test_classify_uses_closed_open_intervals(visits, expected):
    assert classify(visits) is expected


def test_classify_is_monotonic_in_visit_count():
    order = [Tier.BRONZE, Tier.SILVER, Tier.GOLD, Tier.PLATINUM]
    ranks = [order.index(classify(visits)) for visits in range(0, 60)]

    assert ranks == sorted(ranks)


def test_classify_rejects_negative_counts():
    with pytest.raises(ValueError):
        classify(-1)


def test_benefits_of_default_discounts():
    assert [benefits_of(tier).discount_percent for tier in Tier] == [10, 15, 20, 25]
    assert benefits_of(Tier.GOLD).display_name == "Gold"


def test_next_tier_stops_at_platinum():
    assert next_tier(Tier.BRONZE) is Tier.SILVER
    assert next_tier(Tier.PLATINUM) is None


def test_loyalty_summary_reports_visits_to_next_tier():
    summary = loyalty_summary(12)

    assert summary.tier is Tier.SILVER
    assert summary.discount_percent == 15
    assert summary.next_tier is Tier.GOLD
    assert summary.visits_to_next_tier == 8

    top = loyalty_summary(31)
    assert top.next_tier is None
    assert top.visits_to_next_tier is None


def test_salon_overrides_replace_only_configured_values():
    salon = SimpleNamespace(
        loyalty_silver_min_visits=5,
        loyalty_gold_min_visits=None,
        loyalty_platinum_min_visits=None,
        loyalty_bronze_discount=None,
        loyalty_silver_discount=12,
        loyalty_gold_discount=None,
        loyalty_platinum_discount=None,
    )
    program = LoyaltyProgram.for_salon(salon)

    assert classify(5, program) is Tier.SILVER
    assert classify(20, program) is Tier.GOLD
    assert benefits_of(Tier.SILVER, program).discount_percent == 12
    assert benefits_of(Tier.BRONZE, program).discount_percent == 10


def test_salon_overrides_must_keep_thresholds_increasing():
    salon = SimpleNamespace(loyalty_silver_min_visits=25, loyalty_gold_min_visits=20)

    with pytest.raises(ValueError):
        LoyaltyProgram.for_salon(salon)


def test_missing_salon_uses_default_program():
    assert LoyaltyProgram.for_salon(None) is DEFAULT_PROGRAM
