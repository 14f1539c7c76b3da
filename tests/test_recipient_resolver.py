from datetime import timedelta

import pytest

from salon_crm.services.errors import NotFound, ValidationFailure
from salon_crm.services.recipient_resolver import (
    BirthdayRule,
    ExplicitListRule,
    InactivityRule,
    find_birthday_customers,
    partition_by_salon,
    resolve_recipients,
)
from tests.fixtures_data import FIXED_NOW, add_customer, build_session, seed_salons


def _names(recipients):
    return [recipient.customer.full_name for recipient in recipients]


def test_birthday_rule_matches_day_and_month_only():
    db = build_session()
    seed_salons(db, 1, 2)
    add_customer(db, full_name="Birthday Today", phone="5550001", birth_day=15, birth_month=6)
    add_customer(db, full_name="Day Before", phone="5550002", birth_day=14, birth_month=6)
    add_customer(db, full_name="Next Month", phone="5550003", birth_day=15, birth_month=7)
    add_customer(db, full_name="No Birthday", phone="5550004")
    add_customer(db, salon_id=2, full_name="Other Salon", phone="5550005", birth_day=15, birth_month=6)

    recipients = resolve_recipients(db, 1, BirthdayRule(), now=FIXED_NOW)

    assert _names(recipients) == ["Birthday Today"]
    assert recipients[0].phone == "5550001"


def test_inactivity_rule_orders_never_visited_first():
    db = build_session()
    seed_salons(db)
    add_customer(db, full_name="Recent", phone="1", last_visit_at=FIXED_NOW - timedelta(days=3))
    add_customer(db, full_name="Old", phone="2", last_visit_at=FIXED_NOW - timedelta(days=40))
    add_customer(db, full_name="Never", phone="3")
    add_customer(db, full_name="Ancient", phone="4", last_visit_at=FIXED_NOW - timedelta(days=400))

    recipients = resolve_recipients(db, 1, InactivityRule(days=30), now=FIXED_NOW)

    assert _names(recipients) == ["Never", "Ancient", "Old"]


def test_inactivity_rule_rejects_non_positive_days():
    db = build_session()

    with pytest.raises(ValidationFailure):
        resolve_recipients(db, 1, InactivityRule(days=0), now=FIXED_NOW)


def test_explicit_list_preserves_order_and_dedupes():
    db = build_session()
    seed_salons(db)
    first = add_customer(db, full_name="First", phone="1")
    second = add_customer(db, full_name="Second", phone="2")

    recipients = resolve_recipients(
        db, 1, ExplicitListRule(customer_ids=(second.id, first.id, second.id)), now=FIXED_NOW
    )

    assert _names(recipients) == ["Second", "First"]


def test_explicit_list_with_foreign_customer_is_not_found():
    db = build_session()
    seed_salons(db, 1, 2)
    mine = add_customer(db, full_name="Mine", phone="1")
    theirs = add_customer(db, salon_id=2, full_name="Theirs", phone="2")

    with pytest.raises(NotFound):
        resolve_recipients(db, 1, ExplicitListRule(customer_ids=(mine.id, theirs.id)), now=FIXED_NOW)


def test_explicit_list_must_not_be_empty():
    db = build_session()

    with pytest.raises(ValidationFailure):
        resolve_recipients(db, 1, ExplicitListRule(customer_ids=()), now=FIXED_NOW)


def test_birthday_lookup_partitions_by_salon():
    db = build_session()
    seed_salons(db, 1, 2)
    add_customer(db, salon_id=2, full_name="Bea", phone="1", birth_day=15, birth_month=6)
    add_customer(db, salon_id=1, full_name="Cem", phone="2", birth_day=15, birth_month=6)
    add_customer(db, salon_id=1, full_name="Ali", phone="3", birth_day=15, birth_month=6)

    partitions = partition_by_salon(find_birthday_customers(db, FIXED_NOW.date()))

    assert sorted(partitions) == [1, 2]
    assert [customer.full_name for customer in partitions[1]] == ["Ali", "Cem"]
    assert [customer.full_name for customer in partitions[2]] == ["Bea"]
