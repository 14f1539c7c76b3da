from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_crm.core.config import INACTIVITY_DAYS_DEFAULT
from salon_crm.core.database import get_db
from salon_crm.deps import get_current_profile
from salon_crm.models.customer import Customer
from salon_crm.models.profile import Profile
from salon_crm.routers.errors import to_http_exception
from salon_crm.services.errors import DispatchError
from salon_crm.services.recipient_resolver import InactivityRule, resolve_recipients
from salon_crm.services.visits import customer_loyalty, get_salon_customer, record_visit

router = APIRouter(prefix="/api/customers", tags=["customers"])

_DAYS_IN_MONTH = {1: 31, 2: 29, 3: 31, 4: 30, 5: 31, 6: 30, 7: 31, 8: 31, 9: 30, 10: 31, 11: 30, 12: 31}


class CustomerCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=120)
    phone: str = Field(..., min_length=5, max_length=30)
    birth_day: int | None = Field(default=None, ge=1, le=31)
    birth_month: int | None = Field(default=None, ge=1, le=12)

    @model_validator(mode="after")
    def _check_birthday(self):
        if (self.birth_day is None) != (self.birth_month is None):
            raise ValueError("birth_day and birth_month must be provided together")
        if self.birth_month is not None and self.birth_day > _DAYS_IN_MONTH[self.birth_month]:
            raise ValueError("birth_day is out of range for birth_month")
        return self


class CustomerRead(BaseModel):
    id: int
    full_name: str
    phone: str
    birth_day: int | None
    birth_month: int | None
    last_visit_at: datetime | None


class CustomerListResponse(BaseModel):
    items: list[CustomerRead]
    total: int
    page: int


class LoyaltyRead(BaseModel):
    visit_count: int
    tier: str
    display_name: str
    discount_percent: int
    next_tier: str | None
    visits_to_next_tier: int | None


class CustomerDetailResponse(CustomerRead):
    loyalty: LoyaltyRead


class VisitRead(BaseModel):
    id: int
    customer_id: int
    visited_at: datetime


def _customer_response(customer: Customer) -> dict:
    return {
        "id": customer.id,
        "full_name": customer.full_name,
        "phone": customer.phone,
        "birth_day": customer.birth_day,
        "birth_month": customer.birth_month,
        "last_visit_at": customer.last_visit_at,
    }


@router.get("", response_model=CustomerListResponse)
def list_customers(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    search: str | None = Query(default=None),
    user: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    query = db.query(Customer).filter(Customer.salon_id == user.salon_id)
    clean_search = (search or "").strip()
    if clean_search:
        search_like = f"%{clean_search}%"
        query = query.filter(or_(Customer.full_name.ilike(search_like), Customer.phone.ilike(search_like)))

    total = query.with_entities(func.count(Customer.id)).scalar() or 0
    rows = (
        query.order_by(Customer.full_name.asc(), Customer.id.asc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )
    return {"items": [_customer_response(row) for row in rows], "total": total, "page": page}


@router.post("", response_model=CustomerRead, status_code=status.HTTP_201_CREATED)
def create_customer(
    payload: CustomerCreate,
    user: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    customer = Customer(
        salon_id=user.salon_id,
        full_name=payload.full_name.strip(),
        phone=payload.phone.strip(),
        birth_day=payload.birth_day,
        birth_month=payload.birth_month,
    )
    try:
        db.add(customer)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Failed to save customer") from exc
    db.refresh(customer)
    return _customer_response(customer)


@router.get("/inactive", response_model=list[CustomerRead])
def list_inactive_customers(
    days: int = Query(default=INACTIVITY_DAYS_DEFAULT, ge=1),
    user: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    try:
        recipients = resolve_recipients(db, user.salon_id, InactivityRule(days=days))
    except DispatchError as exc:
        raise to_http_exception(exc) from exc
    return [_customer_response(recipient.customer) for recipient in recipients]


@router.get("/{customer_id}", response_model=CustomerDetailResponse)
def get_customer(
    customer_id: int,
    user: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    try:
        customer = get_salon_customer(db, user.salon_id, customer_id)
    except DispatchError as exc:
        raise to_http_exception(exc) from exc

    summary = customer_loyalty(db, user.salon_id, customer.id)
    return {
        **_customer_response(customer),
        "loyalty": {
            "visit_count": summary.visit_count,
            "tier": summary.tier.value,
            "display_name": summary.display_name,
            "discount_percent": summary.discount_percent,
            "next_tier": summary.next_tier.value if summary.next_tier else None,
            "visits_to_next_tier": summary.visits_to_next_tier,
        },
    }


@router.post("/{customer_id}/visits", response_model=VisitRead, status_code=status.HTTP_201_CREATED)
def create_visit(
    customer_id: int,
    user: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    try:
        visit = record_visit(db, user.salon_id, customer_id, user.id)
    except DispatchError as exc:
        raise to_http_exception(exc) from exc
    return {"id": visit.id, "customer_id": visit.customer_id, "visited_at": visit.visited_at}
