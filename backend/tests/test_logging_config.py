# backend/tests/test_logging_config.py
from __future__ import annotations

import json
import logging

from app.logging_config import JsonFormatter, TextFormatter
from app.middleware.request_id import accept_client_id, request_id_scope


def _record(**extra) -> logging.LogRecord:
    rec = logging.LogRecord("rentflow.test", logging.INFO, __file__, 1, "tenant request created", None, None)
    for k, v in extra.items():
        setattr(rec, k, v)
    return rec


def test_json_formatter_carries_request_id_and_domain_fields():
    with request_id_scope("rid-42"):
        line = JsonFormatter().format(_record(floor_id=7, notification_id=9, unrelated="x"))

    payload = json.loads(line)
    assert payload["message"] == "tenant request created"
    assert payload["request_id"] == "rid-42"
    assert payload["floor_id"] == 7 and payload["notification_id"] == 9
    assert "unrelated" not in payload


def test_text_formatter_without_request_context():
    line = TextFormatter().format(_record(user_id=3))
    assert "[-]" in line
    assert line.endswith("user_id=3")


def test_client_request_ids_are_sanitized():
    assert accept_client_id("abc-123_x.y") == "abc-123_x.y"
    assert accept_client_id("bad id\nwith newline") is None
    assert accept_client_id("x" * 65) is None
    assert accept_client_id(None) is None
