from __future__ import annotations

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from salon_crm.models.profile import ROLE_OWNER, ROLE_STAFF, Profile
from salon_crm.models.salon import Salon
from salon_crm.services.passwords import hash_password


def ensure_profiles_table(engine: Engine) -> None:
    inspector = inspect(engine)
    if not inspector.has_table("profiles") or not inspector.has_table("salons"):
        raise RuntimeError("Tables salons/profiles not found. Run `alembic upgrade head` first.")


def ensure_salon(db: Session, *, salon_id: int | None, salon_name: str | None) -> Salon:
    if salon_id is not None:
        salon = db.get(Salon, salon_id)
        if salon is None:
            raise ValueError(f"Salon {salon_id} does not exist.")
        return salon
    if not salon_name:
        raise ValueError("Either a salon id or a salon name is required.")
    salon = Salon(name=salon_name.strip())
    db.add(salon)
    db.flush()
    return salon


def upsert_profile(
    db: Session,
    *,
    salon_id: int,
    email: str,
    full_name: str,
    role: str,
    password: str | None,
) -> tuple[Profile, bool]:
    normalized_role = (role or "").strip().upper()
    if normalized_role not in {ROLE_OWNER, ROLE_STAFF}:
        raise ValueError(f"Unknown role: {role}")
    normalized_email = email.strip().lower()

    existing = (
        db.query(Profile)
        .filter(Profile.salon_id == salon_id, Profile.email == normalized_email)
        .first()
    )
    if existing:
        existing.full_name = full_name
        existing.role = normalized_role
        existing.active = True
        if password:
            existing.password_hash = hash_password(password)
        db.commit()
        db.refresh(existing)
        return existing, False

    if not password:
        raise ValueError("A password is required to create a new profile.")

    profile = Profile(
        salon_id=salon_id,
        email=normalized_email,
        full_name=full_name,
        password_hash=hash_password(password),
        role=normalized_role,
        active=True,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile, True
