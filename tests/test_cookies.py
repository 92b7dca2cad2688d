"""Tests for request/response cookie access."""

import pytest
from fastapi import Response
from starlette.requests import Request

from finance_tracker.core.cookies import CookieJar, ReadOnlyCookieJarError


def _request(cookie_header: str | None = None) -> Request:
    headers = [(b"cookie", cookie_header.encode())] if cookie_header else []
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


def test_read_only_jar_reads_request_cookies() -> None:
    jar = CookieJar.read_only(_request("csrf-token=abc; theme=dark"))

    assert jar.writable is False
    assert jar.get("csrf-token") == "abc"
    assert jar.get("missing") is None


def test_empty_cookie_value_is_absent() -> None:
    jar = CookieJar.read_only(_request("csrf-token="))

    assert jar.get("csrf-token") is None


def test_read_only_jar_rejects_writes() -> None:
    jar = CookieJar.read_only(_request())

    with pytest.raises(ReadOnlyCookieJarError):
        jar.set("csrf-token", "abc", max_age=60, secure=False)
    with pytest.raises(ReadOnlyCookieJarError):
        jar.delete("csrf-token")


def test_writes_go_to_response_and_are_visible() -> None:
    response = Response()
    jar = CookieJar.read_write(_request("csrf-token=old"), response)

    jar.set("csrf-token", "new", max_age=60, secure=True)

    assert jar.get("csrf-token") == "new"
    assert "csrf-token=new" in response.headers["set-cookie"]


def test_delete_expires_cookie() -> None:
    response = Response()
    jar = CookieJar.read_write(_request("csrf-token=old"), response)

    jar.delete("csrf-token")

    assert jar.get("csrf-token") is None
    assert "Max-Age=0" in response.headers["set-cookie"]
