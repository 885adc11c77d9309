#!/usr/bin/env python3
"""
Production entry point.

1. Refuses configurations that only make sense in development
   (header auth, missing users-service credentials, half-set bootstrap officer).
2. Runs migrations + officer seed (release.py).
3. Refuses to serve a database with no officer, since nobody could
   ever assign roles.
4. Replaces this process with gunicorn.

Environment:
  PORT               listen port (default 8080)
  WEB_CONCURRENCY    gunicorn workers (default 2)
  GUNICORN_TIMEOUT   worker timeout in seconds (default 60)

Usage:
    python scripts/start.py
"""
from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _get(environ: Mapping[str, str], name: str) -> str:
    return (environ.get(name) or "").strip()


def _positive_int(environ: Mapping[str, str], name: str, default: int, upper: int | None = None) -> int:
    raw = _get(environ, name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).") from None
    if value < 1 or (upper is not None and value > upper):
        raise RuntimeError(f"{name} out of range (got {value}).")
    return value


def preflight_problems(environ: Mapping[str, str]) -> list[str]:
    problems: list[str] = []
    backend = _get(environ, "AUTH_BACKEND").lower() or "users_service"
    if backend == "header":
        problems.append("AUTH_BACKEND=header trusts X-User-Id from any client; use it with `flask run` only.")
    elif backend != "users_service":
        problems.append(f"Unknown AUTH_BACKEND {backend!r}.")
    else:
        for name in ("USERS_SERVICE_API_URL", "USERS_SERVICE_API_KEY"):
            if not _get(environ, name):
                problems.append(f"{name} is required.")

    officer_vars = [name for name in ("BOOTSTRAP_OFFICER_ID", "BOOTSTRAP_OFFICER_EMAIL") if _get(environ, name)]
    if len(officer_vars) == 1:
        problems.append("Set both BOOTSTRAP_OFFICER_ID and BOOTSTRAP_OFFICER_EMAIL, or neither.")
    return problems


def gunicorn_argv(environ: Mapping[str, str]) -> list[str]:
    port = _positive_int(environ, "PORT", 8080, upper=65535)
    workers = _positive_int(environ, "WEB_CONCURRENCY", 2)
    timeout = _positive_int(environ, "GUNICORN_TIMEOUT", 60)
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--timeout", str(timeout),
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def officer_count(database_url: str | None = None) -> int:
    from app.rotinas.constants import Role
    from app.rotinas.models import User
    from scripts._common import script_session

    with script_session(database_url) as s:
        return s.query(User).filter(User.role == Role.OFFICER).count()


def main() -> None:
    try:
        argv = gunicorn_argv(os.environ)
    except RuntimeError as e:
        print(f"ERROR: {e}", flush=True)
        sys.exit(1)
    problems = preflight_problems(os.environ)
    if problems:
        for p in problems:
            print(f"ERROR: {p}", flush=True)
        sys.exit(1)

    from scripts.release import run_release
    try:
        run_release()
    except Exception as e:
        print(f"Release failed: {e}", flush=True)
        sys.exit(1)

    if officer_count() == 0:
        print("ERROR: no officer profile exists. Set BOOTSTRAP_OFFICER_ID/BOOTSTRAP_OFFICER_EMAIL.", flush=True)
        sys.exit(1)

    print(f"=== Starting gunicorn ({' '.join(argv[2:6])}) ===", flush=True)
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
