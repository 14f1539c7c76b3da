from __future__ import annotations

import logging
import uuid

from salon_crm.sms.base import SMS_STATUS_SENT, SmsProvider, SmsSendResult, mask_phone

logger = logging.getLogger(__name__)


class MockSmsProvider(SmsProvider):
    """Logs the message instead of sending it. Used in development."""

    def send(self, to_phone: str, text: str) -> SmsSendResult:
        logger.info("[MOCK SMS] to=%s chars=%s text=%s", mask_phone(to_phone), len(text), text)
        return SmsSendResult(status=SMS_STATUS_SENT, provider_message_id=f"mock-{uuid.uuid4().hex[:10]}")
