import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from salon_crm.core.config import CORS_ORIGINS, DATABASE_URL
from salon_crm.core.database import Base, engine
from salon_crm.core.logging_setup import configure_logging
from salon_crm.core.startup_checks import ensure_migrations_applied, validate_database_environment
from salon_crm.middleware.observability import ObservabilityMiddleware
import salon_crm.models  # noqa: F401  models must be imported before create_all

from salon_crm.routers.auth import router as auth_router
from salon_crm.routers.campaigns import router as campaigns_router
from salon_crm.routers.checkin import router as checkin_router
from salon_crm.routers.cron import router as cron_router
from salon_crm.routers.customers import router as customers_router

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="Salon CRM API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        # SQLite dev databases are created in place; everything else goes through Alembic.
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


# Routers
app.include_router(auth_router)
app.include_router(customers_router)
app.include_router(checkin_router)
app.include_router(campaigns_router)
app.include_router(cron_router)


@app.get("/health")
def health():
    return {"status": "ok"}
