from __future__ import annotations

import time
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from fastapi import Request, Response
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.orm import Session

from salon_crm.core import config
from salon_crm.models.profile import Profile
from salon_crm.services.errors import Unauthorized

SESSION_COOKIE_NAME = "salon_session"
SESSION_SALT = "salon-session"


def _serializer() -> URLSafeTimedSerializer:
    if not config.SESSION_SECRET:
        raise RuntimeError("SESSION_SECRET is not configured.")
    return URLSafeTimedSerializer(config.SESSION_SECRET, salt=SESSION_SALT)


def create_session(payload: Dict[str, Any]) -> str:
    if "exp" not in payload:
        payload = {
            **payload,
            "exp": int(time.time()) + config.SESSION_MAX_AGE_SECONDS,
        }
    return _serializer().dumps(payload)


def decode_session(token: str) -> Optional[Dict[str, Any]]:
    try:
        payload = _serializer().loads(token, max_age=config.SESSION_MAX_AGE_SECONDS)
    except (BadSignature, SignatureExpired, ValueError):
        return None
    if not isinstance(payload, dict):
        return None
    exp = payload.get("exp")
    if exp is not None:
        try:
            if int(exp) < int(time.time()):
                return None
        except (TypeError, ValueError):
            return None
    return payload


def resolve_session_profile(db: Session, token: str | None) -> Profile:
    """Return the active profile a session cookie belongs to, or raise Unauthorized."""
    if not token:
        raise Unauthorized("Not authenticated")

    payload = decode_session(token)
    if not payload:
        raise Unauthorized("Session expired")

    user_id = payload.get("user_id")
    salon_id = payload.get("salon_id")
    if not user_id:
        raise Unauthorized("Invalid session")

    user = (
        db.query(Profile)
        .filter(Profile.id == int(user_id), Profile.active.is_(True))
        .first()
    )
    if not user:
        raise Unauthorized("Profile not found")

    if salon_id is not None and int(user.salon_id) != int(salon_id):
        raise Unauthorized("Invalid session")
    return user


def build_session_cookie_options(request: Request | None = None) -> dict[str, Any]:
    secure = config.SESSION_COOKIE_SECURE
    samesite = config.SESSION_COOKIE_SAMESITE

    host = ""
    origin_host = ""
    if request is not None:
        host = (request.headers.get("x-forwarded-host") or request.headers.get("host") or "").lower()
        host = host.split(",")[0].strip().split(":")[0]

        origin = (request.headers.get("origin") or "").strip()
        if origin:
            origin_host = (urlsplit(origin).hostname or "").lower()

    is_local_request = host in {"", "localhost", "127.0.0.1"}
    is_cross_site_request = bool(origin_host and host and origin_host != host)

    # Public hosts always get a secure cookie.
    if not is_local_request:
        secure = True

    if is_cross_site_request and secure:
        samesite = "none"

    # Browsers reject SameSite=None without Secure.
    if samesite == "none" and not secure:
        samesite = "lax"

    return {
        "domain": config.SESSION_COOKIE_DOMAIN,
        "httponly": True,
        "samesite": samesite,
        "path": "/",
        "secure": secure,
    }


def set_session_cookie(response: Response, token: str, request: Request | None = None) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=config.SESSION_MAX_AGE_SECONDS,
        **build_session_cookie_options(request),
    )


def clear_session_cookie(response: Response, request: Request | None = None) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        **build_session_cookie_options(request),
    )
