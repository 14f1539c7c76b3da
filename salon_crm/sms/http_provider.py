from __future__ import annotations

import json
import logging

import httpx

from salon_crm.sms.base import (
    SMS_STATUS_FAILED,
    SMS_STATUS_SENT,
    SmsProvider,
    SmsSendResult,
    mask_phone,
    safe_json,
    sanitize_payload,
)

logger = logging.getLogger(__name__)


class HttpSmsProvider(SmsProvider):
    """Posts each message to a JSON SMS gateway. One attempt per message."""

    def __init__(self, *, api_url: str, api_key: str, sender_id: str, timeout: float = 10.0) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.sender_id = sender_id
        self.timeout = timeout

    def send(self, to_phone: str, text: str) -> SmsSendResult:
        if not self.api_url or not self.api_key:
            return SmsSendResult(status=SMS_STATUS_FAILED, error="SMS gateway credentials missing")

        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        payload = {"from": self.sender_id, "to": to_phone, "text": text}

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.api_url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("SMS gateway request failed to=%s error=%s", mask_phone(to_phone), exc)
            return SmsSendResult(status=SMS_STATUS_FAILED, error=str(exc))

        body_text = response.text
        if not 200 <= response.status_code < 300:
            logger.warning(
                "SMS gateway rejected message to=%s status=%s payload=%s",
                mask_phone(to_phone),
                response.status_code,
                safe_json(sanitize_payload(payload)),
            )
            return SmsSendResult(
                status=SMS_STATUS_FAILED,
                error=f"SMS gateway error {response.status_code}: {body_text[:200]}",
            )

        provider_id = None
        try:
            data = response.json()
            provider_id = data.get("message_id") or data.get("id")
        except (json.JSONDecodeError, AttributeError):
            provider_id = None
        return SmsSendResult(status=SMS_STATUS_SENT, provider_message_id=provider_id)
