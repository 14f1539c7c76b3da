from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Protocol

SMS_STATUS_SENT = "sent"
SMS_STATUS_FAILED = "failed"


@dataclass
class SmsSendResult:
    status: str
    provider_message_id: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == SMS_STATUS_SENT


class SmsProvider(Protocol):
    def send(self, to_phone: str, text: str) -> SmsSendResult:
        ...


SENSITIVE_KEYS = {"api_key", "authorization", "token", "password"}


def mask_phone(phone: str | None) -> str:
    if not phone:
        return ""
    if len(phone) <= 4:
        return "****"
    return f"****{phone[-4:]}"


def sanitize_payload(payload: dict[str, Any]) -> dict[str, Any]:
    def _sanitize(value: Any) -> Any:
        if isinstance(value, dict):
            return {key: _sanitize_value(key, inner) for key, inner in value.items()}
        if isinstance(value, list):
            return [_sanitize(item) for item in value]
        return value

    def _sanitize_value(key: str, value: Any) -> Any:
        if key.lower() in SENSITIVE_KEYS:
            return "****"
        if key.lower() in {"to", "phone"} and isinstance(value, str):
            return mask_phone(value)
        return _sanitize(value)

    return _sanitize(payload)


def safe_json(payload: dict[str, Any]) -> str:
    try:
        return json.dumps(payload, ensure_ascii=False)
    except (TypeError, ValueError):
        return "{}"
