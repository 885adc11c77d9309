from __future__ import annotations

from flask import Blueprint, current_app, request

from app.rotinas.db import db_session
from app.rotinas.errors import InvalidPayload
from app.rotinas.modules.lifecycle import REVIEWER_ROLES
from app.rotinas.modules.payloads import parse_module_type
from app.rotinas.modules.service import (
    advance_module,
    create_module,
    get_module,
    list_recent,
    module_to_dict,
    parse_status,
    review_queue,
)
from app.rotinas.rbac import require_role, require_user
from app.rotinas.users import current_user

bp = Blueprint("modules", __name__)


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise InvalidPayload("Request body must be a JSON object.", field="body")
    return body


def _list_limit() -> int:
    return int(current_app.config.get("MODULE_LIST_LIMIT") or 50)


@bp.post("/modules")
@require_user
def create():
    s = db_session()
    u = current_user()
    body = _json_body()
    m = create_module(s, user=u, module_type=body.get("type"), payload=body.get("payload"))
    s.commit()
    return module_to_dict(m, viewer_role=u.role), 201


@bp.get("/modules")
@require_user
def list_modules():
    s = db_session()
    u = current_user()
    raw_status = (request.args.get("status") or "").strip()
    raw_type = (request.args.get("type") or "").strip()
    modules = list_recent(
        s,
        limit=_list_limit(),
        status=parse_status(raw_status) if raw_status else None,
        module_type=parse_module_type(raw_type) if raw_type else None,
    )
    return [module_to_dict(m, viewer_role=u.role) for m in modules]


@bp.get("/modules/queue")
@require_role(*REVIEWER_ROLES)
def queue():
    s = db_session()
    u = current_user()
    return [module_to_dict(m, viewer_role=u.role) for m in review_queue(s, role=u.role, limit=_list_limit())]


@bp.get("/modules/<int:module_id>")
@require_user
def detail(module_id: int):
    s = db_session()
    return module_to_dict(get_module(s, module_id), viewer_role=current_user().role)


@bp.put("/modules/<int:module_id>/status")
@require_user
def advance(module_id: int):
    s = db_session()
    u = current_user()
    body = _json_body()
    m = advance_module(s, user=u, module_id=module_id, requested_status=body.get("status"))
    s.commit()
    return module_to_dict(m, viewer_role=u.role)
