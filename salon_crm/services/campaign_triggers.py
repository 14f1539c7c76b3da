from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_crm.models.campaign import CAMPAIGN_SCHEDULED, CAMPAIGN_TYPE_BIRTHDAY, Campaign, CampaignTemplate
from salon_crm.services.campaign_dispatch import CampaignDispatcher, DispatchSummary
from salon_crm.services.errors import DataAccessFailure, DispatchError
from salon_crm.services.recipient_resolver import ResolvedRecipient, find_birthday_customers, partition_by_salon

logger = logging.getLogger(__name__)

DEFAULT_BIRTHDAY_MESSAGE = "Happy birthday {name}! Enjoy a special discount at our salon today."


def birthday_message_for(db: Session, salon_id: int) -> str:
    template = (
        db.query(CampaignTemplate)
        .filter(
            CampaignTemplate.campaign_type == CAMPAIGN_TYPE_BIRTHDAY,
            (CampaignTemplate.salon_id == salon_id) | CampaignTemplate.salon_id.is_(None),
        )
        .order_by(CampaignTemplate.salon_id.desc().nullslast(), CampaignTemplate.id.desc())
        .first()
    )
    if template is None or not (template.message or "").strip():
        return DEFAULT_BIRTHDAY_MESSAGE
    return template.message


def run_birthday_dispatch(
    db: Session,
    dispatcher: CampaignDispatcher,
    *,
    now: datetime | None = None,
) -> DispatchSummary:
    """Daily trigger: one BIRTHDAY campaign per salon with birthdays today."""
    now = now or datetime.now(timezone.utc)
    today = now.date()
    partitions = partition_by_salon(find_birthday_customers(db, today))

    summary = DispatchSummary()
    if not partitions:
        logger.info("No birthdays today (%s)", today.isoformat())
        return summary

    for salon_id, customers in partitions.items():
        try:
            message = birthday_message_for(db, salon_id)
            result = dispatcher.dispatch_resolved(
                db,
                salon_id,
                [ResolvedRecipient(customer=customer, phone=customer.phone) for customer in customers],
                message,
                name=f"Birthday campaign - {today.isoformat()}",
                campaign_type=CAMPAIGN_TYPE_BIRTHDAY,
            )
        except (DispatchError, SQLAlchemyError):
            logger.exception("Birthday dispatch failed for salon %s", salon_id)
            db.rollback()
            continue
        summary.add(result)
    return summary


def run_scheduled_dispatch(
    db: Session,
    dispatcher: CampaignDispatcher,
    *,
    now: datetime | None = None,
) -> DispatchSummary:
    """Frequent trigger: sends every due SCHEDULED campaign, salon by salon."""
    now = now or datetime.now(timezone.utc)
    try:
        salon_ids = [
            row.salon_id
            for row in db.query(Campaign.salon_id)
            .filter(
                Campaign.status == CAMPAIGN_SCHEDULED,
                Campaign.scheduled_at.isnot(None),
                Campaign.scheduled_at <= now,
            )
            .distinct()
            .order_by(Campaign.salon_id.asc())
            .all()
        ]
    except SQLAlchemyError as exc:
        raise DataAccessFailure("Failed to load scheduled campaigns") from exc

    summary = DispatchSummary()
    for salon_id in salon_ids:
        try:
            salon_summary = dispatcher.send_pending(db, salon_id, now=now)
        except DataAccessFailure:
            logger.exception("Scheduled dispatch failed for salon %s", salon_id)
            db.rollback()
            continue
        summary.sent += salon_summary.sent
        summary.failed += salon_summary.failed
        summary.campaigns.extend(salon_summary.campaigns)
    return summary
