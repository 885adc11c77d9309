from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any

from app.rotinas.errors import UsersServiceError


@dataclass(frozen=True)
class UsersServiceClient:
    """
    Thin client for the external users service that owns OAuth and sessions.
    Session tokens are opaque to us; we only pass them through.
    """

    base_url: str
    api_key: str
    timeout_seconds: int = 15

    def request_json(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        token: str | None = None,
    ) -> dict[str, Any] | None:
        """Returns the decoded JSON body, or None on 401 (token unknown or expired)."""
        url = self.base_url.rstrip("/") + path
        data = json.dumps(body).encode("utf-8") if body is not None else None
        req = urllib.request.Request(url, data=data, method=method)
        req.add_header("Accept", "application/json")
        req.add_header("x-api-key", self.api_key)
        if data is not None:
            req.add_header("Content-Type", "application/json")
        if token:
            req.add_header("Authorization", f"Bearer {token}")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            if e.code == 401:
                return None
            try:
                detail = e.read().decode("utf-8", errors="ignore")
            except Exception:
                detail = ""
            raise UsersServiceError(f"HTTP {e.code} from users service ({path}): {detail[:300]}") from e
        except (urllib.error.URLError, TimeoutError) as e:
            raise UsersServiceError(f"Users service unreachable ({path}): {e}") from e

        if not raw:
            return {}
        try:
            j = json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise UsersServiceError(f"Invalid JSON from users service ({path})") from e
        return j if isinstance(j, dict) else {}

    def get_oauth_redirect_url(self, provider: str = "google") -> str:
        j = self.request_json("GET", f"/oauth/{urllib.parse.quote(provider)}/redirect_url") or {}
        url = j.get("redirect_url") or j.get("redirectUrl")
        if not url:
            raise UsersServiceError("Users service returned no redirect URL")
        return str(url)

    def exchange_code(self, code: str) -> str:
        j = self.request_json("POST", "/sessions", body={"code": code})
        token = (j or {}).get("session_token")
        if not token:
            raise UsersServiceError("Users service rejected the authorization code")
        return str(token)

    def get_current_user(self, token: str) -> dict[str, Any] | None:
        return self.request_json("GET", "/users/me", token=token)

    def delete_session(self, token: str) -> None:
        self.request_json("DELETE", "/sessions", token=token)
