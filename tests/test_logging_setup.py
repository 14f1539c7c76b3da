import json
import logging

from salon_crm.core.logging_setup import JsonFormatter
from salon_crm.core.request_context import clear_request_context, set_request_context


def _record(message, *args, **extra):
    record = logging.LogRecord("salon_crm.test", logging.INFO, __file__, 1, message, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_request_context():
    set_request_context(request_id="req-1", salon_id="3", user_id="9")
    try:
        payload = json.loads(JsonFormatter("%(message)s").format(_record("Campaign %s finished", 12, campaign_id=12)))
    finally:
        clear_request_context()

    assert payload["message"] == "Campaign 12 finished"
    assert payload["request_id"] == "req-1"
    assert payload["salon_id"] == "3"
    assert payload["campaign_id"] == 12


def test_json_formatter_masks_secrets():
    payload = json.loads(JsonFormatter("%(message)s").format(_record("login password=hunter2 token: abc")))

    assert "hunter2" not in payload["message"]
    assert "abc" not in payload["message"]
