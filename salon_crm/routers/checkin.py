from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from salon_crm.core.database import get_db
from salon_crm.deps import get_current_profile
from salon_crm.models.profile import Profile
from salon_crm.routers.errors import to_http_exception
from salon_crm.services.errors import DispatchError
from salon_crm.services.visits import issue_visit_token, redeem_visit_token

router = APIRouter(prefix="/api", tags=["checkin"])


class VisitTokenRead(BaseModel):
    token: str
    customer_id: int
    expires_at: datetime


class CheckinPayload(BaseModel):
    token: str = Field(..., min_length=1, max_length=64)


class CheckinResponse(BaseModel):
    ok: bool
    visit_id: int
    customer_id: int
    visited_at: datetime


@router.post(
    "/customers/{customer_id}/visit-tokens",
    response_model=VisitTokenRead,
    status_code=status.HTTP_201_CREATED,
)
def create_visit_token(
    customer_id: int,
    user: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    try:
        token = issue_visit_token(db, user.salon_id, customer_id, user.id)
    except DispatchError as exc:
        raise to_http_exception(exc) from exc
    return {"token": token.token, "customer_id": token.customer_id, "expires_at": token.expires_at}


@router.post("/checkin", response_model=CheckinResponse)
def checkin(payload: CheckinPayload, db: Session = Depends(get_db)):
    """Public endpoint hit by the customer's device after scanning the salon QR code."""
    try:
        visit = redeem_visit_token(db, payload.token.strip())
    except DispatchError as exc:
        raise to_http_exception(exc) from exc
    return {
        "ok": True,
        "visit_id": visit.id,
        "customer_id": visit.customer_id,
        "visited_at": visit.visited_at,
    }
