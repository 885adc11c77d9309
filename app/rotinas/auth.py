from __future__ import annotations

import uuid
from dataclasses import dataclass
from collections.abc import Mapping
from typing import Any, Protocol

from flask import Blueprint, Request, current_app, g, jsonify, make_response, request

from app.rotinas.constants import SESSION_TOKEN_MAX_AGE
from app.rotinas.errors import InvalidPayload, UsersServiceError
from app.rotinas.users_service import UsersServiceClient

bp = Blueprint("auth", __name__)


@dataclass(frozen=True)
class Identity:
    id: str
    email: str
    name: str | None = None


class Authenticator(Protocol):
    def resolve(self, req: Request) -> Identity | None: ...


def _bearer_token(req: Request) -> str | None:
    header = req.headers.get("Authorization") or ""
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


@dataclass(frozen=True)
class UsersServiceAuthenticator:
    client: UsersServiceClient
    cookie_name: str

    def session_token(self, req: Request) -> str | None:
        return req.cookies.get(self.cookie_name) or _bearer_token(req)

    def resolve(self, req: Request) -> Identity | None:
        token = self.session_token(req)
        if not token:
            return None
        j = self.client.get_current_user(token)
        if not j or not j.get("id") or not j.get("email"):
            return None
        google = j.get("google_user_data") or {}
        name = google.get("name") if isinstance(google, dict) else None
        return Identity(id=str(j["id"]), email=str(j["email"]).strip().lower(), name=name or j.get("name"))


class HeaderAuthenticator:
    """
    Development/test backend: trusts X-User-* headers. Refused in production.
    """

    def resolve(self, req: Request) -> Identity | None:
        user_id = (req.headers.get("X-User-Id") or "").strip()
        email = (req.headers.get("X-User-Email") or "").strip().lower()
        if not user_id or not email:
            return None
        name = (req.headers.get("X-User-Name") or "").strip() or None
        return Identity(id=user_id, email=email, name=name)


def users_service_from_config(config: Mapping[str, Any]) -> UsersServiceClient:
    return UsersServiceClient(
        base_url=config.get("USERS_SERVICE_API_URL") or "",
        api_key=config.get("USERS_SERVICE_API_KEY") or "",
    )


def authenticator_from_config(config: Mapping[str, Any]) -> Authenticator:
    backend = (config.get("AUTH_BACKEND") or "users_service").strip().lower()
    if backend == "header":
        return HeaderAuthenticator()
    if backend == "users_service":
        return UsersServiceAuthenticator(
            client=users_service_from_config(config),
            cookie_name=config.get("SESSION_TOKEN_COOKIE_NAME") or "rotinas_session_token",
        )
    raise RuntimeError(f"Unknown AUTH_BACKEND: {backend!r}")


def _authenticator() -> Authenticator:
    authn = current_app.extensions.get("authenticator")
    if authn is None:
        authn = authenticator_from_config(current_app.config)
        current_app.extensions["authenticator"] = authn
    return authn


def load_current_user() -> None:
    """
    Resolves g.identity from the session token.
    Also assigns a simple per-request request_id (for audit/log correlation).
    The profile itself is loaded lazily by users.current_user().
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.identity = None
    g.current_user = None
    if request.path.startswith(("/health", "/healthz")) or request.method == "OPTIONS":
        return

    try:
        g.identity = _authenticator().resolve(request)
    except UsersServiceError as e:
        current_app.logger.error("Identity lookup failed (request_id=%s): %s", g.request_id, e)
        g.identity = None


def _set_session_cookie(resp, token: str, *, max_age: int) -> None:
    resp.set_cookie(
        current_app.config["SESSION_TOKEN_COOKIE_NAME"],
        token,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=True,
        samesite="None",
    )


@bp.get("/oauth/google/redirect_url")
def oauth_redirect_url():
    client = users_service_from_config(current_app.config)
    return {"redirectUrl": client.get_oauth_redirect_url("google")}


@bp.post("/sessions")
def create_session():
    body = request.get_json(silent=True) or {}
    code = (body.get("code") or "").strip() if isinstance(body, dict) else ""
    if not code:
        raise InvalidPayload("No authorization code provided.", field="code")

    client = users_service_from_config(current_app.config)
    token = client.exchange_code(code)
    resp = make_response(jsonify({"success": True}))
    _set_session_cookie(resp, token, max_age=SESSION_TOKEN_MAX_AGE)
    return resp


@bp.get("/logout")
def logout():
    token = request.cookies.get(current_app.config["SESSION_TOKEN_COOKIE_NAME"]) or _bearer_token(request)
    if token:
        client = users_service_from_config(current_app.config)
        client.delete_session(token)
    resp = make_response(jsonify({"success": True}))
    _set_session_cookie(resp, "", max_age=0)
    return resp
