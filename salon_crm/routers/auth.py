from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from salon_crm.core.database import get_db
from salon_crm.deps import get_current_profile
from salon_crm.models.profile import Profile
from salon_crm.services.passwords import verify_password
from salon_crm.services.session_auth import (
    build_session_cookie_options,
    clear_session_cookie,
    create_session,
    set_session_cookie,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)


class LoginPayload(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileRead(BaseModel):
    id: int
    salon_id: int
    email: str
    full_name: str
    role: str
    active: bool


def _profile_response(user: Profile) -> dict:
    return {
        "id": user.id,
        "salon_id": user.salon_id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "active": user.active,
    }


@router.post("/login", response_model=ProfileRead)
def login(
    payload: LoginPayload,
    response: Response,
    request: Request,
    db: Session = Depends(get_db),
):
    normalized_email = payload.email.strip().lower()
    candidates = (
        db.query(Profile)
        .filter(func.lower(Profile.email) == normalized_email, Profile.active.is_(True))
        .all()
    )
    # The same email may exist in several salons; the password decides which one.
    matched = [user for user in candidates if verify_password(payload.password, user.password_hash)]
    if len(matched) != 1:
        logger.warning("Login failed email=%s matches=%s", normalized_email, len(matched))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    user = matched[0]
    token = create_session({"user_id": user.id, "salon_id": user.salon_id, "role": user.role})
    cookie_options = build_session_cookie_options(request)
    logger.info(
        "[AUTH_COOKIE] setting salon_session domain=%s samesite=%s secure=%s",
        cookie_options.get("domain") or "host-only",
        cookie_options["samesite"],
        cookie_options["secure"],
    )
    set_session_cookie(response, token, request)
    return _profile_response(user)


@router.post("/logout")
def logout(response: Response, request: Request):
    clear_session_cookie(response, request)
    return {"ok": True}


@router.get("/me", response_model=ProfileRead)
def me(user: Profile = Depends(get_current_profile)):
    return _profile_response(user)
