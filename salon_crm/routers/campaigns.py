from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Literal, Union

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from salon_crm.core.config import INACTIVITY_DAYS_DEFAULT
from salon_crm.core.database import get_db
from salon_crm.deps import get_current_profile, get_dispatcher, require_role
from salon_crm.models.campaign import (
    CAMPAIGN_TYPE_BIRTHDAY,
    CAMPAIGN_TYPE_INACTIVE,
    CAMPAIGN_TYPE_MANUAL,
    Campaign,
)
from salon_crm.models.profile import ROLE_OWNER, Profile
from salon_crm.routers.errors import to_http_exception
from salon_crm.services.campaign_dispatch import CampaignDispatcher
from salon_crm.services.campaign_stats import aggregate_campaign_stats, get_salon_campaign
from salon_crm.services.errors import DispatchError
from salon_crm.services.recipient_resolver import (
    BirthdayRule,
    ExplicitListRule,
    InactivityRule,
    SelectionRule,
)

router = APIRouter(prefix="/api/campaigns", tags=["campaigns"])
logger = logging.getLogger(__name__)


class BirthdayRulePayload(BaseModel):
    kind: Literal["birthday"]


class InactivityRulePayload(BaseModel):
    kind: Literal["inactive"]
    days: int = INACTIVITY_DAYS_DEFAULT


class ExplicitListRulePayload(BaseModel):
    kind: Literal["explicit"]
    customer_ids: list[int] = Field(default_factory=list)


RulePayload = Annotated[
    Union[BirthdayRulePayload, InactivityRulePayload, ExplicitListRulePayload],
    Field(discriminator="kind"),
]


class CampaignCreate(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    message: str
    rule: RulePayload
    scheduled_at: datetime | None = None


class CampaignRead(BaseModel):
    id: int
    name: str
    message: str
    campaign_type: str
    status: str
    scheduled_at: datetime | None
    created_at: datetime | None
    sent_at: datetime | None


class CampaignCreateResponse(BaseModel):
    campaign_id: int | None
    status: str
    total: int
    sent: int
    failed: int


class CampaignStatsRead(BaseModel):
    total: int
    sent: int
    delivered: int
    opened: int
    failed: int
    pending: int


class CampaignStatsResponse(BaseModel):
    campaign: CampaignRead
    stats: CampaignStatsRead


def _to_rule(payload: BirthdayRulePayload | InactivityRulePayload | ExplicitListRulePayload) -> tuple[SelectionRule, str]:
    if isinstance(payload, BirthdayRulePayload):
        return BirthdayRule(), CAMPAIGN_TYPE_BIRTHDAY
    if isinstance(payload, InactivityRulePayload):
        return InactivityRule(days=payload.days), CAMPAIGN_TYPE_INACTIVE
    return ExplicitListRule(customer_ids=tuple(payload.customer_ids)), CAMPAIGN_TYPE_MANUAL


def _campaign_response(campaign: Campaign) -> dict:
    return {
        "id": campaign.id,
        "name": campaign.name,
        "message": campaign.message,
        "campaign_type": campaign.campaign_type,
        "status": campaign.status,
        "scheduled_at": campaign.scheduled_at,
        "created_at": campaign.created_at,
        "sent_at": campaign.sent_at,
    }


@router.post("", response_model=CampaignCreateResponse, status_code=status.HTTP_201_CREATED)
def create_campaign(
    payload: CampaignCreate,
    user: Profile = Depends(require_role([ROLE_OWNER])),
    dispatcher: CampaignDispatcher = Depends(get_dispatcher),
    db: Session = Depends(get_db),
):
    rule, campaign_type = _to_rule(payload.rule)
    try:
        result = dispatcher.initiate(
            db,
            user.salon_id,
            rule,
            payload.message,
            name=payload.name,
            campaign_type=campaign_type,
            created_by=user.id,
            scheduled_at=payload.scheduled_at,
        )
    except DispatchError as exc:
        logger.warning("Campaign initiation rejected salon_id=%s reason=%s", user.salon_id, exc)
        raise to_http_exception(exc) from exc
    return {
        "campaign_id": result.campaign_id,
        "status": result.status,
        "total": result.total,
        "sent": result.sent,
        "failed": result.failed,
    }


@router.get("", response_model=list[CampaignRead])
def list_campaigns(
    limit: int = Query(default=50, ge=1, le=200),
    user: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    rows = (
        db.query(Campaign)
        .filter(Campaign.salon_id == user.salon_id)
        .order_by(Campaign.created_at.desc(), Campaign.id.desc())
        .limit(limit)
        .all()
    )
    return [_campaign_response(row) for row in rows]


@router.get("/{campaign_id}/stats", response_model=CampaignStatsResponse)
def campaign_stats(
    campaign_id: int,
    user: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    try:
        campaign = get_salon_campaign(db, campaign_id, user.salon_id)
        stats = aggregate_campaign_stats(db, campaign_id, user.salon_id)
    except DispatchError as exc:
        raise to_http_exception(exc) from exc
    return {"campaign": _campaign_response(campaign), "stats": stats.as_dict()}
