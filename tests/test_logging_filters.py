"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

from handoff.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    hash_for_log,
    mask_contact,
    set_request_id,
)


def _capture(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_otp_material():
    """Ensure codes, hashes and salts never reach the log sink."""

    logger, stream = _capture("test_otp_redaction")

    logger.info(
        "otp_event",
        extra={
            "otp": "4821",
            "otp_hash": "deadbeefcafebabe",
            "salt": "0123456789abcdef",
            "order_id": "order-1",
        },
    )

    payload = json.loads(stream.getvalue().strip())

    assert payload["otp"] == "[REDACTED]"
    assert payload["otp_hash"] == "[REDACTED]"
    assert payload["salt"] == "[REDACTED]"
    assert payload["order_id"] == "order-1"


def test_sensitive_filter_redacts_contacts_and_credentials():
    """Ensure phone numbers, message bodies and Twilio tokens are redacted."""

    logger, stream = _capture("test_contact_redaction")

    logger.info(
        "notify_event",
        extra={
            "customer_contact": "+2348012345678",
            "message_body": "Your delivery OTP is 4821.",
            "twilio_auth_token": "tw-secret",
            "channel": "twilio",
        },
    )

    output = stream.getvalue()

    assert "+2348012345678" not in output
    assert "Your delivery OTP" not in output
    assert "tw-secret" not in output
    assert "twilio" in output


def test_sensitive_filter_allows_safe_fields():
    """Verify safe fields pass through unmodified."""

    logger, stream = _capture("test_safe_fields")

    logger.info(
        "safe_event",
        extra={
            "limiter": "otp_generate",
            "route": "/v1/orders/order-1/otp/generate",
            "status_code": 200,
            "duration_ms": 150.5,
        },
    )

    output = stream.getvalue()

    assert "otp_generate" in output
    assert "/v1/orders/order-1/otp/generate" in output
    assert "200" in output
    assert "[REDACTED]" not in output


def test_sensitive_filter_redacts_nested_dicts():
    """Ensure nested sensitive fields are redacted."""

    logger, stream = _capture("test_nested")

    logger.info(
        "nested_event",
        extra={
            "headers": {
                "authorization": "Basic QUMxMjM6c2VjcmV0",
                "user-agent": "pytest",
            },
        },
    )

    output = stream.getvalue()

    assert "QUMxMjM6c2VjcmV0" not in output
    assert "[REDACTED]" in output
    assert "pytest" in output


def test_json_formatter_includes_request_id():
    logger, stream = _capture("test_request_id")

    set_request_id("req-7")
    try:
        logger.info("with_request_id")
    finally:
        clear_request_id()

    payload = json.loads(stream.getvalue().strip())
    assert payload["request_id"] == "req-7"


def test_mask_contact_and_hash_for_log():
    assert mask_contact("+2348012345678") == "***5678"
    assert mask_contact("123") == "***"
    assert mask_contact(None) == "***"

    fingerprint = hash_for_log("ip:10.0.0.1")
    assert len(fingerprint) == 16
    assert fingerprint == hash_for_log("ip:10.0.0.1")
    assert "10.0.0.1" not in fingerprint
