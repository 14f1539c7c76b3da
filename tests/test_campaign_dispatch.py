import threading
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from salon_crm.models.campaign import (
    CAMPAIGN_SCHEDULED,
    CAMPAIGN_SENDING,
    CAMPAIGN_SENT,
    CAMPAIGN_TYPE_INACTIVE,
    RECIPIENT_FAILED,
    RECIPIENT_PENDING,
    RECIPIENT_SENT,
    Campaign,
    CampaignRecipient,
)
from salon_crm.services.campaign_dispatch import (
    SEND_FAILED_ERROR,
    CampaignDispatcher,
    render_message,
    validate_message,
)
from salon_crm.services.campaign_stats import CampaignStats, aggregate_campaign_stats
from salon_crm.services.errors import TransportFailure, ValidationFailure
from salon_crm.services.recipient_resolver import ExplicitListRule, InactivityRule
from tests.fixtures_data import FIXED_NOW, RecordingTransport, add_customer, build_session, seed_salons


def _dispatcher(transport, **kwargs):
    return CampaignDispatcher(transport, clock=lambda: FIXED_NOW, **kwargs)


def _seed_customers(db, count, salon_id=1):
    return [
        add_customer(db, salon_id=salon_id, full_name=f"Customer {index}", phone=f"555000{index}")
        for index in range(count)
    ]


def test_render_message_replaces_every_name_token():
    assert render_message("Hi {name}, {name}!", "Ada") == "Hi Ada, Ada!"
    assert render_message("No token here", "Ada") == "No token here"


def test_validate_message_rejects_empty_and_too_long():
    with pytest.raises(ValidationFailure):
        validate_message("   ")
    with pytest.raises(ValidationFailure):
        validate_message("x" * 11, max_length=10)


def test_initiate_sends_to_every_recipient_and_personalizes():
    db = build_session()
    seed_salons(db)
    customers = _seed_customers(db, 3)
    transport = RecordingTransport()

    result = _dispatcher(transport).initiate(
        db, 1, ExplicitListRule(customer_ids=tuple(c.id for c in customers)), "Hello {name}"
    )

    assert result.status == CAMPAIGN_SENT
    assert (result.total, result.sent, result.failed) == (3, 3, 0)
    assert transport.calls == [(c.phone, f"Hello {c.full_name}") for c in customers]

    campaign = db.get(Campaign, result.campaign_id)
    assert campaign.status == CAMPAIGN_SENT
    assert campaign.sent_at is not None
    assert {r.status for r in campaign.recipients} == {RECIPIENT_SENT}
    assert all(r.sent_at is not None for r in campaign.recipients)


def test_failed_sends_are_isolated_per_recipient():
    db = build_session()
    seed_salons(db)
    customers = _seed_customers(db, 5)
    transport = RecordingTransport(failing_phones={customers[1].phone}, raising_phones={customers[3].phone})

    result = _dispatcher(transport).initiate(
        db, 1, ExplicitListRule(customer_ids=tuple(c.id for c in customers)), "Promo"
    )

    assert (result.total, result.sent, result.failed) == (5, 3, 2)
    assert len(transport.calls) == 5

    campaign = db.get(Campaign, result.campaign_id)
    assert campaign.status == CAMPAIGN_SENT
    failed = [r for r in campaign.recipients if r.status == RECIPIENT_FAILED]
    assert sorted(r.phone for r in failed) == sorted([customers[1].phone, customers[3].phone])
    assert {r.error_message for r in failed} == {SEND_FAILED_ERROR}

    stats = aggregate_campaign_stats(db, result.campaign_id, 1)
    assert (stats.total, stats.sent, stats.failed, stats.pending) == (5, 3, 2, 0)


def test_campaign_with_no_recipients_is_marked_sent_without_sending():
    db = build_session()
    seed_salons(db)
    add_customer(db, full_name="Regular", phone="1", last_visit_at=FIXED_NOW - timedelta(days=1))
    transport = RecordingTransport()

    result = _dispatcher(transport).initiate(
        db, 1, InactivityRule(days=30), "We miss you", campaign_type=CAMPAIGN_TYPE_INACTIVE
    )

    assert result.status == CAMPAIGN_SENT
    assert result.total == 0
    assert transport.calls == []
    campaign = db.get(Campaign, result.campaign_id)
    assert campaign.status == CAMPAIGN_SENT
    assert campaign.recipients == []
    assert aggregate_campaign_stats(db, result.campaign_id, 1) == CampaignStats()


def test_stalled_transport_times_out_and_batch_continues():
    db = build_session()
    seed_salons(db)
    customers = _seed_customers(db, 2)
    release = threading.Event()

    class _SlowFirstTransport(RecordingTransport):
        def send(self, to_phone, text):
            if to_phone == customers[0].phone:
                release.wait(5)
            return super().send(to_phone, text)

    transport = _SlowFirstTransport()
    try:
        result = _dispatcher(transport, send_timeout_seconds=0.05).initiate(
            db, 1, ExplicitListRule(customer_ids=tuple(c.id for c in customers)), "Hi"
        )
    finally:
        release.set()

    assert (result.sent, result.failed) == (1, 1)
    statuses = {r.phone: r.status for r in db.get(Campaign, result.campaign_id).recipients}
    assert statuses == {customers[0].phone: RECIPIENT_FAILED, customers[1].phone: RECIPIENT_SENT}


def test_future_schedule_defers_sending_until_send_pending():
    db = build_session()
    seed_salons(db)
    customers = _seed_customers(db, 2)
    transport = RecordingTransport()
    dispatcher = _dispatcher(transport)

    result = dispatcher.initiate(
        db,
        1,
        ExplicitListRule(customer_ids=tuple(c.id for c in customers)),
        "See you {name}",
        scheduled_at=FIXED_NOW + timedelta(hours=2),
    )

    assert result.status == CAMPAIGN_SCHEDULED
    assert transport.calls == []
    campaign = db.get(Campaign, result.campaign_id)
    assert {r.status for r in campaign.recipients} == {RECIPIENT_PENDING}

    early = dispatcher.send_pending(db, 1, now=FIXED_NOW + timedelta(hours=1))
    assert early.campaigns == []

    summary = dispatcher.send_pending(db, 1, now=FIXED_NOW + timedelta(hours=3))
    assert summary.campaigns == [result.campaign_id]
    assert (summary.sent, summary.failed) == (2, 0)
    assert transport.calls[0] == (customers[0].phone, "See you Customer 0")

    db.expire_all()
    assert db.get(Campaign, result.campaign_id).status == CAMPAIGN_SENT


def test_send_pending_is_idempotent():
    db = build_session()
    seed_salons(db)
    customers = _seed_customers(db, 2)
    transport = RecordingTransport()
    dispatcher = _dispatcher(transport)
    dispatcher.initiate(
        db,
        1,
        ExplicitListRule(customer_ids=tuple(c.id for c in customers)),
        "Later",
        scheduled_at=FIXED_NOW + timedelta(minutes=5),
    )
    later = FIXED_NOW + timedelta(minutes=10)

    first = dispatcher.send_pending(db, 1, now=later)
    second = dispatcher.send_pending(db, 1, now=later)

    assert first.sent == 2
    assert second.sent == 0
    assert second.campaigns == []
    assert len(transport.calls) == 2


def test_claim_is_won_by_a_single_caller():
    db = build_session()
    seed_salons(db)
    customers = _seed_customers(db, 1)
    dispatcher = _dispatcher(RecordingTransport())
    result = dispatcher.initiate(
        db,
        1,
        ExplicitListRule(customer_ids=(customers[0].id,)),
        "Later",
        scheduled_at=FIXED_NOW + timedelta(minutes=5),
    )

    assert dispatcher._claim(db, 1, result.campaign_id) is True
    assert dispatcher._claim(db, 1, result.campaign_id) is False
    db.expire_all()
    assert db.get(Campaign, result.campaign_id).status == CAMPAIGN_SENDING


def test_recipient_load_failure_returns_campaign_to_scheduled():
    db = build_session()
    seed_salons(db)
    customers = _seed_customers(db, 1)
    transport = RecordingTransport()
    dispatcher = _dispatcher(transport)
    result = dispatcher.initiate(
        db,
        1,
        ExplicitListRule(customer_ids=(customers[0].id,)),
        "Later",
        scheduled_at=FIXED_NOW + timedelta(minutes=5),
    )

    with patch.object(db, "get", side_effect=SQLAlchemyError("connection lost")):
        summary = dispatcher.send_pending(db, 1, now=FIXED_NOW + timedelta(minutes=10))

    assert summary.campaigns == []
    assert transport.calls == []
    db.expire_all()
    assert db.get(Campaign, result.campaign_id).status == CAMPAIGN_SCHEDULED
    pending = db.query(CampaignRecipient).filter(CampaignRecipient.status == RECIPIENT_PENDING).count()
    assert pending == 1


def test_send_pending_ignores_other_salons():
    db = build_session()
    seed_salons(db, 1, 2)
    customer = add_customer(db, salon_id=2, full_name="Other", phone="9")
    transport = RecordingTransport()
    dispatcher = _dispatcher(transport)
    dispatcher.initiate(
        db,
        2,
        ExplicitListRule(customer_ids=(customer.id,)),
        "Later",
        scheduled_at=FIXED_NOW + timedelta(minutes=5),
    )

    summary = dispatcher.send_pending(db, 1, now=FIXED_NOW + timedelta(hours=1))

    assert summary.campaigns == []
    assert transport.calls == []


def test_unknown_campaign_type_is_rejected():
    db = build_session()
    seed_salons(db)
    customers = _seed_customers(db, 1)

    with pytest.raises(ValidationFailure):
        _dispatcher(RecordingTransport()).initiate(
            db, 1, ExplicitListRule(customer_ids=(customers[0].id,)), "Hi", campaign_type="SPAM"
        )


def _commit_failing_on(db, failing_call):
    real_commit = db.commit
    calls = {"count": 0}

    def _commit():
        calls["count"] += 1
        if calls["count"] == failing_call:
            raise SQLAlchemyError("connection lost")
        return real_commit()

    return patch.object(db, "commit", side_effect=_commit)


def test_deliver_raises_transport_failure_with_masked_phone():
    dispatcher = _dispatcher(RecordingTransport(failing_phones={"5550001234"}))

    with pytest.raises(TransportFailure) as exc:
        dispatcher._deliver("5550001234", "Hi")

    assert exc.value.phone == "****1234"
    dispatcher._deliver("5550009999", "Hi")


def test_write_failure_mid_batch_returns_scheduled_campaign_for_retry():
    db = build_session()
    seed_salons(db)
    customers = _seed_customers(db, 3)
    transport = RecordingTransport()
    dispatcher = _dispatcher(transport)
    result = dispatcher.initiate(
        db,
        1,
        ExplicitListRule(customer_ids=tuple(c.id for c in customers)),
        "Later",
        scheduled_at=FIXED_NOW + timedelta(minutes=5),
    )
    later = FIXED_NOW + timedelta(minutes=10)

    # Commits: claim, first recipient, second recipient (fails), release.
    with _commit_failing_on(db, 3):
        first = dispatcher.send_pending(db, 1, now=later)

    assert first.campaigns == [result.campaign_id]
    assert (first.sent, first.failed) == (2, 0)
    db.expire_all()
    assert db.get(Campaign, result.campaign_id).status == CAMPAIGN_SCHEDULED
    stats = aggregate_campaign_stats(db, result.campaign_id, 1)
    assert (stats.sent, stats.pending) == (1, 2)

    second = dispatcher.send_pending(db, 1, now=later)

    assert second.campaigns == [result.campaign_id]
    assert second.sent == 2
    db.expire_all()
    assert db.get(Campaign, result.campaign_id).status == CAMPAIGN_SENT
    stats = aggregate_campaign_stats(db, result.campaign_id, 1)
    assert (stats.total, stats.sent, stats.pending) == (3, 3, 0)
    assert len(transport.calls) == 4


def test_write_failure_during_immediate_send_is_picked_up_by_send_pending():
    db = build_session()
    seed_salons(db)
    customers = _seed_customers(db, 2)
    transport = RecordingTransport()
    dispatcher = _dispatcher(transport)

    # Commits: campaign creation, first recipient (fails), release.
    with _commit_failing_on(db, 2):
        result = dispatcher.initiate(db, 1, ExplicitListRule(customer_ids=tuple(c.id for c in customers)), "Now")

    assert result.status == CAMPAIGN_SCHEDULED
    db.expire_all()
    campaign = db.get(Campaign, result.campaign_id)
    assert campaign.status == CAMPAIGN_SCHEDULED
    assert campaign.scheduled_at is not None

    summary = dispatcher.send_pending(db, 1, now=FIXED_NOW + timedelta(minutes=1))

    assert summary.campaigns == [result.campaign_id]
    assert summary.sent == 2
    db.expire_all()
    assert db.get(Campaign, result.campaign_id).status == CAMPAIGN_SENT
