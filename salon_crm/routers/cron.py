from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from salon_crm.core.database import get_db
from salon_crm.deps import get_dispatcher, require_cron_secret
from salon_crm.routers.errors import to_http_exception
from salon_crm.services.campaign_dispatch import CampaignDispatcher, DispatchSummary
from salon_crm.services.campaign_triggers import run_birthday_dispatch, run_scheduled_dispatch
from salon_crm.services.errors import DataAccessFailure

router = APIRouter(prefix="/api/cron", tags=["cron"], dependencies=[Depends(require_cron_secret)])
logger = logging.getLogger(__name__)


def _summary_response(summary: DispatchSummary) -> dict:
    return {"sent": summary.sent, "failed": summary.failed, "campaigns": summary.campaigns}


@router.api_route("/birthday-dispatch", methods=["GET", "POST"])
def birthday_dispatch(
    dispatcher: CampaignDispatcher = Depends(get_dispatcher),
    db: Session = Depends(get_db),
):
    try:
        summary = run_birthday_dispatch(db, dispatcher)
    except DataAccessFailure as exc:
        logger.exception("Birthday dispatch aborted")
        raise to_http_exception(exc) from exc
    logger.info("Birthday dispatch done sent=%s failed=%s", summary.sent, summary.failed)
    return _summary_response(summary)


@router.api_route("/scheduled-dispatch", methods=["GET", "POST"])
def scheduled_dispatch(
    dispatcher: CampaignDispatcher = Depends(get_dispatcher),
    db: Session = Depends(get_db),
):
    try:
        summary = run_scheduled_dispatch(db, dispatcher)
    except DataAccessFailure as exc:
        logger.exception("Scheduled dispatch aborted")
        raise to_http_exception(exc) from exc
    logger.info("Scheduled dispatch done sent=%s failed=%s", summary.sent, summary.failed)
    return _summary_response(summary)
