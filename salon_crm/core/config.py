import os
from dotenv import load_dotenv

# Loads the .env from the project root
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./salon_crm.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_TEST = ENV_NORMALIZED == "test"
IS_PROD = ENV_NORMALIZED in {"prod", "production"}
DEV_BOOTSTRAP_ALLOW = os.getenv("DEV_BOOTSTRAP_ALLOW", "").strip().lower() in {
    "1",
    "true",
    "yes",
    "on",
}

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

# Session (signed cookie)
SESSION_SECRET = os.getenv("SESSION_SECRET", "")
SESSION_MAX_AGE_SECONDS = int(os.getenv("SESSION_MAX_AGE_SECONDS", "604800"))
SESSION_COOKIE_SECURE = os.getenv(
    "SESSION_COOKIE_SECURE",
    "0" if IS_DEV else "1",
).strip().lower() in {"1", "true", "yes", "on"}
SESSION_COOKIE_SAMESITE = os.getenv("SESSION_COOKIE_SAMESITE", "lax").strip().lower()
if SESSION_COOKIE_SAMESITE not in {"lax", "strict", "none"}:
    SESSION_COOKIE_SAMESITE = "lax"
SESSION_COOKIE_DOMAIN = os.getenv("SESSION_COOKIE_DOMAIN", "").strip() or None

# SMS transport
SMS_PROVIDER = os.getenv("SMS_PROVIDER", "mock").strip().lower()
SMS_API_URL = os.getenv("SMS_API_URL", "").strip()
SMS_API_KEY = os.getenv("SMS_API_KEY", "").strip()
SMS_SENDER_ID = os.getenv("SMS_SENDER_ID", "SALON").strip()
SMS_SEND_TIMEOUT_SECONDS = float(os.getenv("SMS_SEND_TIMEOUT_SECONDS", "10"))

# Campaigns
INACTIVITY_DAYS_DEFAULT = int(os.getenv("INACTIVITY_DAYS_DEFAULT", "30"))
CAMPAIGN_MESSAGE_MAX_LENGTH = int(os.getenv("CAMPAIGN_MESSAGE_MAX_LENGTH", "480"))
CRON_SECRET = os.getenv("CRON_SECRET", "").strip()

# Check-in
VISIT_TOKEN_TTL_MINUTES = int(os.getenv("VISIT_TOKEN_TTL_MINUTES", "5"))
