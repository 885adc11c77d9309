"""Tests for identity resolution, session endpoints and CORS."""
from dataclasses import dataclass

import pytest
from flask import request

from app.rotinas import create_app
from app.rotinas.auth import HeaderAuthenticator, Identity, UsersServiceAuthenticator
from app.rotinas.errors import UsersServiceError
from app.rotinas.models import Base
from app.rotinas.users_service import UsersServiceClient


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("AUTH_BACKEND", "users_service")
    monkeypatch.setenv("USERS_SERVICE_API_URL", "https://users.invalid")
    monkeypatch.setenv("USERS_SERVICE_API_KEY", "test-key")
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:5173,https://*.rotinas.app")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@dataclass
class FakeUsersService:
    users: dict

    def get_current_user(self, token):
        return self.users.get(token)


def _fake_get_current_user(self, token):
    if token == "good":
        return {"id": "u-1", "email": "Ana@Example.com", "google_user_data": {"name": "Ana"}}
    return None


def test_users_service_authenticator_reads_cookie_then_bearer(app):
    authn = UsersServiceAuthenticator(
        client=FakeUsersService({"tok": {"id": "u-1", "email": "a@example.com"}}),
        cookie_name="rotinas_session_token",
    )
    with app.test_request_context(headers={"Cookie": "rotinas_session_token=tok"}):
        assert authn.resolve(request) == Identity(id="u-1", email="a@example.com", name=None)
    with app.test_request_context(headers={"Authorization": "Bearer tok"}):
        assert authn.resolve(request).id == "u-1"
    with app.test_request_context(headers={"Authorization": "Bearer expired"}):
        assert authn.resolve(request) is None
    with app.test_request_context():
        assert authn.resolve(request) is None


def test_header_authenticator_needs_id_and_email(app):
    authn = HeaderAuthenticator()
    with app.test_request_context(headers={"X-User-Id": "u-1"}):
        assert authn.resolve(request) is None
    with app.test_request_context(headers={"X-User-Id": "u-1", "X-User-Email": "A@X.com"}):
        assert authn.resolve(request) == Identity(id="u-1", email="a@x.com")


def test_me_via_users_service_cookie(client, monkeypatch):
    monkeypatch.setattr(UsersServiceClient, "get_current_user", _fake_get_current_user)
    client.set_cookie("rotinas_session_token", "good")
    r = client.get("/api/users/me")
    assert r.status_code == 200
    assert r.json["email"] == "ana@example.com"
    assert r.json["name"] == "Ana"

    client.set_cookie("rotinas_session_token", "bad")
    r = client.get("/api/users/me")
    assert r.status_code == 401


def test_users_service_outage_is_unauthenticated(client, monkeypatch):
    def _boom(self, token):
        raise UsersServiceError("down")

    monkeypatch.setattr(UsersServiceClient, "get_current_user", _boom)
    r = client.get("/api/users/me", headers={"Authorization": "Bearer good"})
    assert r.status_code == 401


def test_session_exchange_sets_cookie(client, monkeypatch):
    monkeypatch.setattr(UsersServiceClient, "exchange_code", lambda self, code: f"token-for-{code}")
    r = client.post("/api/sessions", json={"code": "abc"})
    assert r.status_code == 200
    assert r.json == {"success": True}
    cookie = r.headers.get("Set-Cookie")
    assert "rotinas_session_token=token-for-abc" in cookie
    assert "HttpOnly" in cookie


def test_session_exchange_requires_code(client):
    r = client.post("/api/sessions", json={})
    assert r.status_code == 400
    assert r.json["field"] == "code"


def test_session_exchange_upstream_failure(client, monkeypatch):
    def _reject(self, code):
        raise UsersServiceError("rejected")

    monkeypatch.setattr(UsersServiceClient, "exchange_code", _reject)
    r = client.post("/api/sessions", json={"code": "abc"})
    assert r.status_code == 502
    assert r.json["error"] == "upstream_error"


def test_oauth_redirect_url(client, monkeypatch):
    monkeypatch.setattr(UsersServiceClient, "get_oauth_redirect_url", lambda self, provider: f"https://auth/{provider}")
    r = client.get("/api/oauth/google/redirect_url")
    assert r.status_code == 200
    assert r.json == {"redirectUrl": "https://auth/google"}


def test_logout_deletes_remote_session_and_clears_cookie(client, monkeypatch):
    deleted = []
    monkeypatch.setattr(UsersServiceClient, "get_current_user", _fake_get_current_user)
    monkeypatch.setattr(UsersServiceClient, "delete_session", lambda self, token: deleted.append(token))
    client.set_cookie("rotinas_session_token", "good")
    r = client.get("/api/logout")
    assert r.status_code == 200
    assert deleted == ["good"]
    assert "rotinas_session_token=;" in r.headers.get("Set-Cookie")


def test_cors_preflight_for_allowed_origin(client):
    r = client.open("/api/modules", method="OPTIONS", headers={"Origin": "https://app.rotinas.app"})
    assert r.status_code == 204
    assert r.headers["Access-Control-Allow-Origin"] == "https://app.rotinas.app"
    assert r.headers["Access-Control-Allow-Credentials"] == "true"


def test_cors_headers_absent_for_unknown_origin(client):
    r = client.get("/api/users/me", headers={"Origin": "https://evil.example"})
    assert "Access-Control-Allow-Origin" not in r.headers


def test_write_from_unknown_origin_rejected(client, monkeypatch):
    monkeypatch.setattr(UsersServiceClient, "exchange_code", lambda self, code: "t")
    r = client.post("/api/sessions", json={"code": "abc"}, headers={"Origin": "https://evil.example"})
    assert r.status_code == 403
    assert r.json["error"] == "forbidden"
