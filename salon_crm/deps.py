# salon_crm/deps.py
from __future__ import annotations

import hmac
import logging
from typing import Iterable

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from salon_crm.core import config
from salon_crm.core.database import get_db
from salon_crm.core.request_context import set_request_context
from salon_crm.models.profile import Profile
from salon_crm.routers.errors import to_http_exception
from salon_crm.services.campaign_dispatch import CampaignDispatcher
from salon_crm.services.errors import Unauthorized
from salon_crm.services.session_auth import SESSION_COOKIE_NAME, resolve_session_profile
from salon_crm.sms.base import SmsProvider
from salon_crm.sms.service import build_sms_provider

logger = logging.getLogger(__name__)


def _normalize_role(role: str | None) -> str:
    return (role or "").strip().upper()


def _log_access_denied(*, reason: str, user: Profile, request: Request) -> None:
    endpoint = f"{request.method} {request.url.path}"
    logger.warning(
        "Access denied (%s): user_id=%s user_role=%s salon_id=%s endpoint=%s",
        reason,
        getattr(user, "id", None),
        getattr(user, "role", None),
        getattr(user, "salon_id", None),
        endpoint,
    )


def get_current_profile(
    request: Request,
    db: Session = Depends(get_db),
) -> Profile:
    """Resolve the signed session cookie to an active staff profile."""
    try:
        user = resolve_session_profile(db, request.cookies.get(SESSION_COOKIE_NAME))
    except Unauthorized as exc:
        raise to_http_exception(exc) from exc

    request.state.user = user
    set_request_context(salon_id=str(user.salon_id), user_id=str(user.id))
    return user


def require_role(roles: Iterable[str]):
    allowed = {_normalize_role(role) for role in roles}

    def _dependency(
        request: Request,
        user: Profile = Depends(get_current_profile),
    ) -> Profile:
        if _normalize_role(user.role) not in allowed:
            _log_access_denied(reason="role_denied", user=user, request=request)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return _dependency


def get_sms_provider() -> SmsProvider:
    return build_sms_provider()


def get_dispatcher(provider: SmsProvider = Depends(get_sms_provider)) -> CampaignDispatcher:
    return CampaignDispatcher(provider)


def require_cron_secret(x_cron_secret: str | None = Header(default=None)) -> None:
    expected = config.CRON_SECRET
    if not expected:
        logger.error("CRON_SECRET is not configured; refusing cron request")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    if not x_cron_secret or not hmac.compare_digest(x_cron_secret, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
