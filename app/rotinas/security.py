from __future__ import annotations

from collections.abc import Iterable
from fnmatch import fnmatchcase

from flask import Request, Response

ALLOWED_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
ALLOWED_HEADERS = "Content-Type, Authorization"


def origin_allowed(origin: str, patterns: Iterable[str]) -> bool:
    """Patterns are shell-style globs, e.g. "https://*.example.app"."""
    return any(fnmatchcase(origin, p) for p in patterns)


def validate_origin(req: Request, patterns: Iterable[str]) -> bool:
    """
    Cookie-authenticated writes must come from our own host or an allowed origin.
    Requests without an Origin header (same-origin navigations, server-to-server) pass.
    """
    origin = req.headers.get("Origin")
    if not origin:
        return True
    if origin.rstrip("/") == req.host_url.rstrip("/"):
        return True
    return origin_allowed(origin, patterns)


def apply_cors_headers(resp: Response, req: Request, patterns: Iterable[str]) -> Response:
    origin = req.headers.get("Origin")
    if not origin or not origin_allowed(origin, patterns):
        return resp
    resp.headers["Access-Control-Allow-Origin"] = origin
    resp.headers["Access-Control-Allow-Credentials"] = "true"
    resp.headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
    resp.headers["Access-Control-Allow-Headers"] = ALLOWED_HEADERS
    resp.headers.add("Vary", "Origin")
    return resp
