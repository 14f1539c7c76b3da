from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Sequence, Union

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_crm.core.config import INACTIVITY_DAYS_DEFAULT
from salon_crm.models.customer import Customer
from salon_crm.services.errors import DataAccessFailure, NotFound, ValidationFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BirthdayRule:
    """Customers whose stored birth day and month match today's date."""


@dataclass(frozen=True)
class InactivityRule:
    days: int = INACTIVITY_DAYS_DEFAULT


@dataclass(frozen=True)
class ExplicitListRule:
    customer_ids: tuple[int, ...]


SelectionRule = Union[BirthdayRule, InactivityRule, ExplicitListRule]


@dataclass(frozen=True)
class ResolvedRecipient:
    customer: Customer
    phone: str


def resolve_recipients(
    db: Session,
    salon_id: int,
    rule: SelectionRule,
    *,
    now: datetime | None = None,
) -> list[ResolvedRecipient]:
    now = now or datetime.now(timezone.utc)
    _validate_rule(rule)

    try:
        if isinstance(rule, BirthdayRule):
            customers = _birthday_customers(db, salon_id, now.date())
        elif isinstance(rule, InactivityRule):
            customers = _inactive_customers(db, salon_id, now - timedelta(days=rule.days))
        else:
            customers = _explicit_customers(db, salon_id, rule.customer_ids)
    except SQLAlchemyError as exc:
        logger.exception("Recipient resolution failed salon_id=%s rule=%s", salon_id, type(rule).__name__)
        raise DataAccessFailure("Failed to load campaign recipients") from exc

    return [ResolvedRecipient(customer=customer, phone=customer.phone) for customer in _dedupe(customers)]


def find_birthday_customers(db: Session, today: date) -> list[Customer]:
    """Cross-salon read used only by the system birthday trigger."""
    try:
        return (
            db.query(Customer)
            .filter(Customer.birth_day == today.day, Customer.birth_month == today.month)
            .order_by(Customer.salon_id.asc(), Customer.full_name.asc(), Customer.id.asc())
            .all()
        )
    except SQLAlchemyError as exc:
        logger.exception("Birthday customer lookup failed day=%s month=%s", today.day, today.month)
        raise DataAccessFailure("Failed to load birthday customers") from exc


def partition_by_salon(customers: Iterable[Customer]) -> dict[int, list[Customer]]:
    partitions: dict[int, list[Customer]] = {}
    for customer in customers:
        partitions.setdefault(int(customer.salon_id), []).append(customer)
    return partitions


def _validate_rule(rule: SelectionRule) -> None:
    if isinstance(rule, BirthdayRule):
        return
    if isinstance(rule, InactivityRule):
        if rule.days <= 0:
            raise ValidationFailure("Inactivity threshold must be a positive number of days")
        return
    if isinstance(rule, ExplicitListRule):
        if not rule.customer_ids:
            raise ValidationFailure("Select at least one customer")
        return
    raise ValidationFailure(f"Unsupported selection rule: {type(rule).__name__}")


def _birthday_customers(db: Session, salon_id: int, today: date) -> list[Customer]:
    return (
        db.query(Customer)
        .filter(
            Customer.salon_id == salon_id,
            Customer.birth_day == today.day,
            Customer.birth_month == today.month,
        )
        .order_by(Customer.full_name.asc(), Customer.id.asc())
        .all()
    )


def _inactive_customers(db: Session, salon_id: int, cutoff: datetime) -> list[Customer]:
    return (
        db.query(Customer)
        .filter(
            Customer.salon_id == salon_id,
            or_(Customer.last_visit_at.is_(None), Customer.last_visit_at < cutoff),
        )
        .order_by(Customer.last_visit_at.asc().nullsfirst(), Customer.id.asc())
        .all()
    )


def _explicit_customers(db: Session, salon_id: int, customer_ids: Sequence[int]) -> list[Customer]:
    wanted = [int(customer_id) for customer_id in customer_ids]
    rows = (
        db.query(Customer)
        .filter(Customer.salon_id == salon_id, Customer.id.in_(set(wanted)))
        .all()
    )
    by_id = {customer.id: customer for customer in rows}
    missing = sorted({customer_id for customer_id in wanted if customer_id not in by_id})
    if missing:
        raise NotFound(f"Customers not found: {missing}")
    return [by_id[customer_id] for customer_id in wanted]


def _dedupe(customers: Iterable[Customer]) -> list[Customer]:
    seen: set[int] = set()
    unique: list[Customer] = []
    for customer in customers:
        if customer.id in seen:
            continue
        seen.add(customer.id)
        unique.append(customer)
    return unique
