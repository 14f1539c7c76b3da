from __future__ import annotations

import sqlite3
from pathlib import Path
from types import SimpleNamespace
from uuid import UUID

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from starlette.requests import Request

from salon_crm.core import startup_checks
from salon_crm.deps import get_current_profile, require_role

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"


def _build_request(path: str = "/api/resource", method: str = "GET") -> Request:
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [],
        "path_params": {},
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
        "scheme": "http",
    }
    return Request(scope)


def test_request_id_is_returned_in_response_header(monkeypatch):
    from salon_crm import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    with TestClient(main.app) as client:
        response = client.get("/health")

    assert response.status_code == 200
    request_id = response.headers.get("X-Request-ID")
    assert request_id
    UUID(request_id)


def test_cors_blocks_unknown_origin(monkeypatch):
    from salon_crm import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    with TestClient(main.app) as client:
        blocked_response = client.options(
            "/health",
            headers={
                "origin": "https://blocked-origin.example",
                "access-control-request-method": "GET",
            },
        )

    assert blocked_response.status_code == 400
    assert blocked_response.headers.get("access-control-allow-origin") is None


def test_production_environment_rejects_sqlite(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setattr(startup_checks, "DATABASE_URL", "sqlite:///./forbidden.db")

    with pytest.raises(RuntimeError, match="SQLite is forbidden"):
        startup_checks.validate_database_environment()


def test_migration_check_fails_when_pending_migration(tmp_path: Path, monkeypatch):
    db_path = tmp_path / "pending.db"
    conn = sqlite3.connect(db_path)
    conn.execute("CREATE TABLE alembic_version (version_num VARCHAR(32) NOT NULL)")
    conn.execute("INSERT INTO alembic_version (version_num) VALUES ('000000000000')")
    conn.commit()
    conn.close()

    monkeypatch.setenv("ENVIRONMENT", "development")
    engine = create_engine(f"sqlite:///{db_path}")

    with pytest.raises(RuntimeError, match="Pending migrations"):
        startup_checks.ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_INI)


def test_migration_check_accepts_head_revision(tmp_path: Path, monkeypatch):
    db_path = tmp_path / "current.db"
    conn = sqlite3.connect(db_path)
    conn.execute("CREATE TABLE alembic_version (version_num VARCHAR(32) NOT NULL)")
    conn.execute("INSERT INTO alembic_version (version_num) VALUES ('0001_create_schema')")
    conn.commit()
    conn.close()

    monkeypatch.setenv("ENVIRONMENT", "development")
    engine = create_engine(f"sqlite:///{db_path}")

    startup_checks.ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_INI)


def test_401_and_403_errors_are_standardized_messages():
    with pytest.raises(HTTPException) as exc401:
        get_current_profile(request=_build_request(), db=SimpleNamespace(query=lambda *_: None))

    assert exc401.value.status_code == 401
    assert isinstance(exc401.value.detail, str)

    staff = SimpleNamespace(id=10, salon_id=1, role="STAFF")
    with pytest.raises(HTTPException) as exc403:
        require_role(["OWNER"])(request=_build_request(method="POST"), user=staff)

    assert exc403.value.status_code == 403
    assert isinstance(exc403.value.detail, str)
