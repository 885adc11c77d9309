import logging

from flask import Flask, g, request
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from app.rotinas.config import load_config
from app.rotinas.db import init_db, teardown_db_session
from app.rotinas.errors import Forbidden, RotinasError
from app.rotinas.models import Base  # noqa: F401  (registers every table)
from app.rotinas.routes import bp as routes_bp
from app.rotinas.auth import bp as auth_bp, load_current_user
from app.rotinas.users import bp as users_bp
from app.rotinas.modules.api import bp as modules_bp
from app.rotinas.security import apply_cors_headers, validate_origin


def _check_production_config(app: Flask) -> None:
    env = (app.config.get("ENV") or "").strip().lower()
    if env not in ("prod", "production"):
        return
    if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
        raise RuntimeError("DATABASE_URL is required in production.")
    if str(app.config["DATABASE_URL"]).startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
    if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
        raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
    if app.config.get("AUTH_BACKEND") != "users_service":
        raise RuntimeError("AUTH_BACKEND must be users_service in production (header auth is for development).")
    missing = [k for k in ("USERS_SERVICE_API_URL", "USERS_SERVICE_API_KEY") if not app.config.get(k)]
    if missing:
        raise RuntimeError(f"Missing required users service settings: {', '.join(missing)}")


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.logger.setLevel(app.config.get("LOG_LEVEL") or "INFO")

    # Production guardrails (fail fast with clear logs)
    _check_production_config(app)

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api")
    app.register_blueprint(users_bp, url_prefix="/api")
    app.register_blueprint(modules_bp, url_prefix="/api")

    @app.before_request
    def _cors_guard():
        if not request.path.startswith("/api/"):
            return None
        patterns = app.config.get("CORS_ORIGINS") or ()
        if request.method == "OPTIONS":
            return app.make_response(("", 204))
        if request.method in ("POST", "PUT", "PATCH", "DELETE") and not validate_origin(request, patterns):
            raise Forbidden("Origin not allowed.")
        return None

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    @app.after_request
    def _cors_headers(resp):
        if request.path.startswith("/api/"):
            apply_cors_headers(resp, request, app.config.get("CORS_ORIGINS") or ())
        return resp

    @app.errorhandler(RotinasError)
    def _err_rotinas(e: RotinasError):  # type: ignore[no-redef]
        rid = getattr(g, "request_id", None)
        if e.status_code >= 500:
            app.logger.error("%s (request_id=%s): %s", e.code, rid, e.message)
        elif e.status_code in (403, 409):
            app.logger.warning("%s (request_id=%s): %s", e.code, rid, e.message)
        return e.to_dict(), e.status_code

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):  # type: ignore[no-redef]
        return {"error": (e.name or "error").lower().replace(" ", "_"), "message": e.description}, e.code or 500

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return {"error": "internal_error", "message": "Internal server error"}, 500

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
