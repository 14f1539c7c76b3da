from __future__ import annotations

import logging
import secrets
from datetime import datetime, time, timedelta, timezone

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_crm.core.config import VISIT_TOKEN_TTL_MINUTES
from salon_crm.models.customer import Customer
from salon_crm.models.salon import Salon
from salon_crm.models.visit import Visit, VisitToken
from salon_crm.services.errors import (
    DataAccessFailure,
    NotFound,
    TokenAlreadyUsed,
    TokenExpired,
    ValidationFailure,
)
from salon_crm.services.loyalty import DEFAULT_PROGRAM, LoyaltyProgram, LoyaltySummary, loyalty_summary

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def get_salon_customer(db: Session, salon_id: int, customer_id: int) -> Customer:
    customer = (
        db.query(Customer)
        .filter(Customer.id == customer_id, Customer.salon_id == salon_id)
        .first()
    )
    if customer is None:
        raise NotFound("Customer not found")
    return customer


def count_visits(db: Session, salon_id: int, customer_id: int) -> int:
    total = (
        db.query(func.count(Visit.id))
        .filter(Visit.salon_id == salon_id, Visit.customer_id == customer_id)
        .scalar()
    )
    return int(total or 0)


def customer_loyalty(db: Session, salon_id: int, customer_id: int) -> LoyaltySummary:
    salon = db.get(Salon, salon_id)
    try:
        program = LoyaltyProgram.for_salon(salon)
    except ValueError:
        logger.warning("Invalid loyalty overrides for salon %s; using defaults", salon_id, exc_info=True)
        program = DEFAULT_PROGRAM
    return loyalty_summary(count_visits(db, salon_id, customer_id), program)


def record_visit(
    db: Session,
    salon_id: int,
    customer_id: int,
    created_by: int | None,
    *,
    now: datetime | None = None,
    token: VisitToken | None = None,
) -> Visit:
    """Append a visit and refresh the customer's last visit. One visit per customer per UTC day.

    A redeemed check-in token is marked used in the same commit as the visit.
    """
    now = now or _utcnow()
    customer = get_salon_customer(db, salon_id, customer_id)

    day_start = datetime.combine(_naive_utc(now).date(), time.min).replace(tzinfo=timezone.utc)
    already_today = (
        db.query(Visit.id)
        .filter(
            Visit.salon_id == salon_id,
            Visit.customer_id == customer.id,
            Visit.visited_at >= day_start,
        )
        .first()
    )
    if already_today is not None:
        raise ValidationFailure("Customer already checked in today")

    visit = Visit(salon_id=salon_id, customer_id=customer.id, created_by=created_by, visited_at=now)
    customer.last_visit_at = now
    if token is not None:
        token.used_at = now
    try:
        db.add(visit)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise DataAccessFailure("Failed to record visit") from exc
    db.refresh(visit)
    logger.info("Visit recorded customer_id=%s salon_id=%s", customer.id, salon_id)
    return visit


def issue_visit_token(
    db: Session,
    salon_id: int,
    customer_id: int,
    created_by: int | None,
    *,
    ttl_minutes: int = VISIT_TOKEN_TTL_MINUTES,
    now: datetime | None = None,
) -> VisitToken:
    now = now or _utcnow()
    customer = get_salon_customer(db, salon_id, customer_id)
    token = VisitToken(
        salon_id=salon_id,
        customer_id=customer.id,
        created_by=created_by,
        token=secrets.token_urlsafe(24),
        expires_at=now + timedelta(minutes=ttl_minutes),
    )
    try:
        db.add(token)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise DataAccessFailure("Failed to issue visit token") from exc
    db.refresh(token)
    return token


def redeem_visit_token(db: Session, token_value: str, *, now: datetime | None = None) -> Visit:
    now = now or _utcnow()
    token = db.query(VisitToken).filter(VisitToken.token == token_value).first()
    if token is None:
        raise NotFound("Invalid token")
    if _naive_utc(now) > _naive_utc(token.expires_at):
        raise TokenExpired("Token has expired")
    if token.used_at is not None:
        raise TokenAlreadyUsed("Token has already been used")

    return record_visit(db, token.salon_id, token.customer_id, token.created_by, now=now, token=token)
