from __future__ import annotations

import base64
import json

import pytest
import redis
from starlette.requests import Request
from starlette.responses import Response

from filegate.services.object_storage import BackendUnavailableError
from filegate.services.session_gate import (
    REASON_BASIC,
    REASON_NO_AUTH,
    REASON_SESSION,
    SessionGate,
    is_public_path,
)
from tests.mocks import Clock, make_settings


def _request(cookie: str | None = None, authorization: str | None = None, scheme: str = "http"):
    headers = []
    if cookie:
        headers.append((b"cookie", cookie.encode()))
    if authorization:
        headers.append((b"authorization", authorization.encode()))
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/",
            "query_string": b"",
            "headers": headers,
            "scheme": scheme,
            "server": ("files.test", 443 if scheme == "https" else 80),
        }
    )


def _basic(user: str, password: str) -> str:
    return "Basic " + base64.b64encode(f"{user}:{password}".encode()).decode()


@pytest.fixture()
def clock():
    return Clock()


@pytest.fixture()
def gate(index, clock):
    return SessionGate(make_settings(basic_user="admin", basic_pass="s3cret:pw"), index, clock=clock)


def test_no_credentials_configured_is_always_authenticated(index):
    gate = SessionGate(make_settings(), index)
    result = gate.authenticate(_request())
    assert result.authenticated is True
    assert result.reason == REASON_NO_AUTH
    assert result.has_credential is False


def test_session_accepted_until_expiry_then_deleted(gate, clock, fake_redis):
    token = gate.create_session("admin")
    assert len(token) == 64
    assert fake_redis.ttls[f"img_url:session:{token}"] == 24 * 60 * 60
    cookie = f"filegate_session={token}"

    clock.advance(hours=23, minutes=59)
    result = gate.authenticate(_request(cookie))
    assert result.authenticated is True
    assert result.reason == REASON_SESSION
    assert result.principal == "admin"

    clock.advance(minutes=2)
    assert gate.authenticate(_request(cookie)).authenticated is False
    assert f"img_url:session:{token}" not in fake_redis.hashes


def test_session_payload_shape(gate, clock, index):
    token = gate.create_session("admin")
    payload = json.loads(index.get_value(f"session:{token}"))
    assert payload == {
        "user": "admin",
        "createdAt": clock.now,
        "expiresAt": clock.now + 24 * 60 * 60 * 1000,
    }


def test_corrupt_session_payload_is_not_authenticated(gate, index):
    index.put("session:bad", "{not json", ttl=60)
    assert gate.verify_session("bad") is None
    assert gate.authenticate(_request("filegate_session=bad")).authenticated is False


def test_session_storage_error_is_not_authenticated(gate, fake_redis):
    fake_redis.fail_with = redis.ConnectionError("down")
    assert gate.authenticate(_request("filegate_session=abc")).authenticated is False


def test_basic_credentials_split_on_first_colon(gate):
    result = gate.authenticate(_request(authorization=_basic("admin", "s3cret:pw")))
    assert result.authenticated is True
    assert result.reason == REASON_BASIC
    assert result.principal == "admin"


@pytest.mark.parametrize(
    "authorization",
    [
        _basic("Admin", "s3cret:pw"),
        _basic("admin", "wrong"),
        _basic("admin\x00", "s3cret:pw"),
        "Basic !!!not-base64!!!",
        "Bearer abc",
        "Basic " + base64.b64encode(b"no-colon").decode(),
    ],
)
def test_bad_basic_credentials_are_rejected(gate, authorization):
    assert gate.authenticate(_request(authorization=authorization)).authenticated is False


def test_delete_session_is_idempotent(gate):
    token = gate.create_session("admin")
    gate.delete_session(token)
    gate.delete_session(token)
    gate.delete_session(None)
    assert gate.verify_session(token) is None


def test_create_session_needs_index():
    gate = SessionGate(make_settings(basic_user="a", basic_pass="b"), None)
    with pytest.raises(BackendUnavailableError):
        gate.create_session("a")


def test_session_cookie_attributes(gate):
    response = Response()
    gate.set_session_cookie(response, "tok", _request(scheme="https"))
    cookie = response.headers["set-cookie"]
    assert cookie.startswith("filegate_session=tok")
    assert "HttpOnly" in cookie
    assert "Max-Age=86400" in cookie
    assert "Path=/" in cookie
    assert "SameSite=strict" in cookie
    assert "Secure" in cookie

    cleared = Response()
    gate.clear_session_cookie(cleared, _request())
    assert "Max-Age=0" in cleared.headers["set-cookie"]
    assert "Secure" not in cleared.headers["set-cookie"]


@pytest.mark.parametrize(
    ("path", "public"),
    [
        ("/api/auth/login", True),
        ("/api/auth/check", True),
        ("/login.html", True),
        ("/_nuxt/app.js", True),
        ("/assets/site.css", True),
        ("/health", True),
        ("/file/abc.png", False),
        ("/api/manage/list", False),
        ("/admin.html", False),
        ("/api/manage/delete/x.png", False),
        ("/api/manage/white/1_a.jpg", False),
        ("/api/r2/upload/x.svg", False),
        ("/upload/x.png", False),
    ],
)
def test_public_paths(path, public):
    assert is_public_path(path) is public
