"""Tests for sensitive data filtering and request correlation in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from finance_tracker.core.logging import (
    REDACTED,
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    is_sensitive_key,
    set_request_id,
)


@pytest.fixture
def capture():
    """Logger wired like production: filters on the handler, JSON lines out."""

    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    yield logger, stream

    logger.handlers.clear()
    clear_request_id()


def _lines(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines()]


def test_sensitive_filter_redacts_credentials(capture):
    """Session tokens, CSRF tokens and cookies never reach the sink."""
    logger, stream = capture

    logger.info(
        "test_event",
        extra={
            "authorization": "Bearer session-secret",
            "csrf_token": "a" * 64,
            "cookie": "csrf-token=" + "b" * 64,
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()
    assert "session-secret" not in output
    assert "a" * 64 not in output
    assert "b" * 64 not in output
    assert "visible" in output
    assert _lines(stream)[0]["csrf_token"] == REDACTED


def test_sensitive_filter_allows_safe_fields(capture):
    logger, stream = capture

    logger.info(
        "safe_event",
        extra={
            "request_path": "/v1/transactions",
            "status_code": 429,
            "duration_ms": 1.5,
            "client_hash": "3f2a9c",
            "token_hash": "9e1d0b",
        },
    )

    line = _lines(stream)[0]
    assert line["request_path"] == "/v1/transactions"
    assert line["status_code"] == 429
    assert line["token_hash"] == "9e1d0b"
    assert REDACTED not in stream.getvalue()


def test_sensitive_filter_redacts_nested_dicts(capture):
    logger, stream = capture

    logger.info(
        "nested_event",
        extra={
            "headers": {"x-csrf-token": "secret-token", "user-agent": "pytest"},
            "config": [{"redis_url": "redis://:pw@cache:6379/0"}],
        },
    )

    output = stream.getvalue()
    assert "secret-token" not in output
    assert "pw@cache" not in output
    assert "pytest" in output


def test_request_id_is_attached_from_context(capture):
    logger, stream = capture

    set_request_id("req-123")
    logger.info("with_id")
    clear_request_id()
    logger.info("without_id")

    first, second = _lines(stream)
    assert first["request_id"] == "req-123"
    assert "request_id" not in second


def test_exception_info_is_formatted(capture):
    logger, stream = capture

    try:
        raise RuntimeError("boom")
    except RuntimeError:
        logger.exception("failure")

    assert "RuntimeError: boom" in _lines(stream)[0]["exc_info"]


@pytest.mark.parametrize(
    "key,sensitive",
    [
        ("Authorization", True),
        ("session_token", True),
        ("webhook_secret", True),
        ("token_hash", False),
        ("remaining", False),
        ("namespace", False),
    ],
)
def test_is_sensitive_key(key: str, sensitive: bool):
    assert is_sensitive_key(key) is sensitive
