from __future__ import annotations

from dataclasses import asdict, dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_crm.models.campaign import (
    RECIPIENT_DELIVERED,
    RECIPIENT_FAILED,
    RECIPIENT_OPENED,
    RECIPIENT_PENDING,
    RECIPIENT_SENT,
    Campaign,
    CampaignRecipient,
)
from salon_crm.services.errors import DataAccessFailure, NotFound

# Delivery and open both imply an earlier successful send.
_SENT_STATES = {RECIPIENT_SENT, RECIPIENT_DELIVERED, RECIPIENT_OPENED}
_DELIVERED_STATES = {RECIPIENT_DELIVERED, RECIPIENT_OPENED}


@dataclass(frozen=True)
class CampaignStats:
    total: int = 0
    sent: int = 0
    delivered: int = 0
    opened: int = 0
    failed: int = 0
    pending: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def get_salon_campaign(db: Session, campaign_id: int, salon_id: int) -> Campaign:
    try:
        campaign = (
            db.query(Campaign)
            .filter(Campaign.id == campaign_id, Campaign.salon_id == salon_id)
            .first()
        )
    except SQLAlchemyError as exc:
        raise DataAccessFailure("Failed to load campaign") from exc
    if campaign is None:
        raise NotFound("Campaign not found")
    return campaign


def reduce_statuses(statuses: list[str]) -> CampaignStats:
    return CampaignStats(
        total=len(statuses),
        sent=sum(1 for status in statuses if status in _SENT_STATES),
        delivered=sum(1 for status in statuses if status in _DELIVERED_STATES),
        opened=sum(1 for status in statuses if status == RECIPIENT_OPENED),
        failed=sum(1 for status in statuses if status == RECIPIENT_FAILED),
        pending=sum(1 for status in statuses if status == RECIPIENT_PENDING),
    )


def aggregate_campaign_stats(db: Session, campaign_id: int, salon_id: int) -> CampaignStats:
    campaign = get_salon_campaign(db, campaign_id, salon_id)
    try:
        rows = (
            db.query(CampaignRecipient.status)
            .filter(CampaignRecipient.campaign_id == campaign.id)
            .all()
        )
    except SQLAlchemyError as exc:
        raise DataAccessFailure("Failed to load campaign recipients") from exc
    return reduce_statuses([row.status for row in rows])
