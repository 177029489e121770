from __future__ import annotations

import base64

import pytest
from fastapi.testclient import TestClient

from filegate.main import create_app
from tests.mocks import make_settings


@pytest.fixture()
def auth_client(storage):
    settings = make_settings(
        basic_user="admin", basic_pass="pw", redis_url="redis://fake", s3_bucket_name="files", use_r2=True
    )
    app = create_app(settings=settings, storage=storage)
    return TestClient(app, raise_server_exceptions=False)


def test_login_status_reports_requirement(auth_client, client):
    assert auth_client.get("/api/auth/login").json() == {"authRequired": True}
    assert client.get("/api/auth/login").json() == {"authRequired": False}


def test_login_without_configured_credentials_succeeds(client):
    response = client.post("/api/auth/login", json={"username": "x", "password": "y"})
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["authRequired"] is False


def test_login_success_sets_session_cookie(auth_client):
    response = auth_client.post("/api/auth/login", json={"username": "admin", "password": "pw"})
    assert response.status_code == 200
    assert response.json()["success"] is True
    cookie = response.headers["set-cookie"]
    assert cookie.startswith("filegate_session=")
    assert "HttpOnly" in cookie
    assert "SameSite=strict" in cookie


def test_login_failure(auth_client):
    response = auth_client.post("/api/auth/login", json={"username": "admin", "password": "nope"})
    assert response.status_code == 401
    assert response.json()["success"] is False
    assert "set-cookie" not in response.headers


def test_malformed_login_body(auth_client):
    response = auth_client.post(
        "/api/auth/login", content=b"not json", headers={"content-type": "application/json"}
    )
    assert response.status_code == 400
    assert auth_client.post("/api/auth/login", json={"username": "admin"}).status_code == 400


def test_check_reflects_session(auth_client):
    before = auth_client.get("/api/auth/check").json()
    assert before == {"authenticated": False, "authRequired": True}

    auth_client.post("/api/auth/login", json={"username": "admin", "password": "pw"})
    after = auth_client.get("/api/auth/check").json()
    assert after == {"authenticated": True, "authRequired": True, "reason": "session"}


def test_logout_always_succeeds(auth_client):
    response = auth_client.post("/api/auth/logout")
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert "Max-Age=0" in response.headers["set-cookie"]


def test_logout_ends_session(auth_client):
    auth_client.post("/api/auth/login", json={"username": "admin", "password": "pw"})
    assert auth_client.get("/api/status").status_code == 200

    auth_client.post("/api/auth/logout")
    auth_client.cookies.clear()
    assert auth_client.get("/api/status").status_code == 401


def test_gate_rejects_api_and_redirects_pages(auth_client):
    api = auth_client.get("/api/manage/list")
    assert api.status_code == 401
    assert api.json()["error"] == "Unauthorized"

    page = auth_client.get("/file/abc.png", follow_redirects=False)
    assert page.status_code == 302
    assert page.headers["location"].endswith("/login.html?redirect=%2Ffile%2Fabc.png")


def test_gate_accepts_basic_credentials(auth_client):
    header = "Basic " + base64.b64encode(b"admin:pw").decode()
    response = auth_client.get("/api/status", headers={"Authorization": header})
    assert response.status_code == 200


def test_public_endpoints_skip_gate(auth_client):
    assert auth_client.get("/health").json() == {"status": "ok"}
    assert auth_client.get("/metrics").status_code == 200
