from __future__ import annotations

import logging

from salon_crm.core.config import (
    IS_PROD,
    SMS_API_KEY,
    SMS_API_URL,
    SMS_PROVIDER,
    SMS_SEND_TIMEOUT_SECONDS,
    SMS_SENDER_ID,
)
from salon_crm.sms.base import SmsProvider
from salon_crm.sms.http_provider import HttpSmsProvider
from salon_crm.sms.mock_provider import MockSmsProvider

logger = logging.getLogger(__name__)


def build_sms_provider(provider_name: str | None = None) -> SmsProvider:
    name = (provider_name or SMS_PROVIDER or "mock").strip().lower()
    if name == "http":
        if SMS_API_URL and SMS_API_KEY:
            return HttpSmsProvider(
                api_url=SMS_API_URL,
                api_key=SMS_API_KEY,
                sender_id=SMS_SENDER_ID,
                timeout=SMS_SEND_TIMEOUT_SECONDS,
            )
        if IS_PROD:
            raise RuntimeError("SMS_PROVIDER=http requires SMS_API_URL and SMS_API_KEY")
        logger.warning("SMS gateway not configured, using mock provider")
        return MockSmsProvider()
    if name != "mock":
        logger.warning("Unknown SMS_PROVIDER=%s, using mock provider", name)
    return MockSmsProvider()
