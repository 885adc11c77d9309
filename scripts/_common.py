"""
Shared plumbing for operator scripts: same settings and engine options as
the web app, one session per invocation.
"""
from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.orm import Session, sessionmaker

from app.rotinas.config import load_settings
from app.rotinas.db import build_engine


def database_url_from_env() -> str:
    return load_settings().database_url


def is_production_env(env: str | None = None) -> bool:
    env = load_settings().env if env is None else env
    return env.strip().lower() in ("prod", "production")


@contextmanager
def script_session(db_url: str | None = None) -> Generator[Session, None, None]:
    engine = build_engine(db_url or database_url_from_env())
    s = sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False)()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()
