from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from salon_crm.core import config
from salon_crm.deps import get_current_profile, require_cron_secret, require_role


def _build_request(path: str = "/api/resource", method: str = "GET", cookies: str = "") -> Request:
    headers = [(b"cookie", cookies.encode())] if cookies else []
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": headers,
        "path_params": {},
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
        "scheme": "http",
    }
    return Request(scope)


def test_require_role_allows_owner():
    user = SimpleNamespace(id=1, salon_id=1, role="OWNER")
    dependency = require_role(["owner"])

    assert dependency(request=_build_request(), user=user) is user


def test_require_role_denies_staff():
    user = SimpleNamespace(id=2, salon_id=1, role="STAFF")
    dependency = require_role(["OWNER"])

    with pytest.raises(HTTPException) as exc:
        dependency(request=_build_request(path="/api/campaigns", method="POST"), user=user)

    assert exc.value.status_code == 403
    assert exc.value.detail == "Insufficient permissions"


def test_get_current_profile_without_cookie_is_unauthorized():
    with pytest.raises(HTTPException) as exc:
        get_current_profile(request=_build_request(), db=None)

    assert exc.value.status_code == 401


def test_get_current_profile_with_garbage_cookie_is_unauthorized(monkeypatch):
    monkeypatch.setattr(config, "SESSION_SECRET", "test-session-secret")

    with pytest.raises(HTTPException) as exc:
        get_current_profile(request=_build_request(cookies="salon_session=garbage"), db=None)

    assert exc.value.status_code == 401
    assert exc.value.detail == "Session expired"


def test_require_cron_secret_compares_header(monkeypatch):
    monkeypatch.setattr(config, "CRON_SECRET", "abc")

    assert require_cron_secret(x_cron_secret="abc") is None
    with pytest.raises(HTTPException) as exc:
        require_cron_secret(x_cron_secret="abd")
    assert exc.value.status_code == 401
