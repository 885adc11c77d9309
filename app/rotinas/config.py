import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    auth_backend: str
    users_service_api_url: str
    users_service_api_key: str
    session_token_cookie_name: str

    cors_origins: tuple[str, ...]
    module_list_limit: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).") from e


def load_settings() -> Settings:
    origins = _getenv("CORS_ORIGINS", "http://localhost:5173")
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///rotinas.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        auth_backend=_getenv("AUTH_BACKEND", "users_service").lower(),
        users_service_api_url=_getenv("USERS_SERVICE_API_URL", ""),
        users_service_api_key=_getenv("USERS_SERVICE_API_KEY", ""),
        session_token_cookie_name=_getenv("SESSION_TOKEN_COOKIE_NAME", "rotinas_session_token"),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        module_list_limit=_getenv_int("MODULE_LIST_LIMIT", 50),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "AUTH_BACKEND": s.auth_backend,
        "USERS_SERVICE_API_URL": s.users_service_api_url,
        "USERS_SERVICE_API_KEY": s.users_service_api_key,
        "SESSION_TOKEN_COOKIE_NAME": s.session_token_cookie_name,
        "CORS_ORIGINS": s.cors_origins,
        "MODULE_LIST_LIMIT": s.module_list_limit,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # form payloads are small JSON documents
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }
