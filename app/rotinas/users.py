"""
User directory: profiles keyed by external identity id.

A profile is created exactly once, the first time an authenticated identity
shows up, with the default role. After that only an officer may change a
role.
"""
from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, g, request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.rotinas.audit import record_event
from app.rotinas.auth import Identity
from app.rotinas.constants import DEFAULT_ROLE, Role
from app.rotinas.db import db_session
from app.rotinas.errors import Forbidden, InvalidPayload, NotFound
from app.rotinas.models import User
from app.rotinas.rbac import require_role, require_user
from app.rotinas.utils import isoformat, utcnow

bp = Blueprint("users", __name__)
logger = logging.getLogger(__name__)


def user_to_dict(u: User) -> dict[str, Any]:
    return {
        "id": u.id,
        "email": u.email,
        "name": u.name,
        "role": u.role.value,
        "created_at": isoformat(u.created_at),
        "updated_at": isoformat(u.updated_at),
    }


def get_or_create(s: Session, identity: Identity) -> tuple[User, bool]:
    """Returns (profile, created). Caller commits."""
    u = s.get(User, identity.id)
    if u:
        return u, False

    u = User(id=identity.id, email=identity.email, name=identity.name, role=DEFAULT_ROLE)
    s.add(u)
    s.flush()
    record_event(
        s,
        actor=u,
        action="user.create",
        entity_type="User",
        entity_id=u.id,
        metadata={"email": u.email, "role": u.role.value},
    )
    logger.info("Created profile %s (%s) with role %s", u.id, u.email, u.role.value)
    return u, True


def apply_role(s: Session, target: User, role: Role, *, actor: User | None, source: str = "api") -> bool:
    """
    Write a role change and its audit event. No permission check: callers
    decide who may do this. actor=None means an operator script.
    Returns False when the role was already set.
    """
    old = target.role
    if old == role:
        return False
    target.role = role
    target.updated_at = utcnow()
    record_event(
        s,
        actor=actor,
        action="user.role_change",
        entity_type="User",
        entity_id=target.id,
        metadata={"from": old.value, "to": role.value, "source": source},
    )
    logger.info(
        "Role of %s changed %s -> %s by %s",
        target.id,
        old.value,
        role.value,
        actor.id if actor else source,
    )
    return True


def set_role(s: Session, *, actor: User, target_id: str, role: Role) -> User:
    if actor.role != Role.OFFICER:
        raise Forbidden("Only officers can change roles.")
    target = s.get(User, target_id)
    if not target:
        raise NotFound(f"User {target_id} not found.")
    apply_role(s, target, role, actor=actor)
    return target


def current_user() -> User | None:
    """
    Profile for the request's identity, created on first sight.
    Cached on g for the rest of the request.
    """
    u = getattr(g, "current_user", None)
    if u is not None:
        return u
    identity: Identity | None = getattr(g, "identity", None)
    if identity is None:
        return None

    s = db_session()
    try:
        u, created = get_or_create(s, identity)
        if created:
            s.commit()
    except IntegrityError:
        # Another request created the same profile first.
        s.rollback()
        u = s.get(User, identity.id)
        if u is None:
            raise
    g.current_user = u
    return u


def _parse_role_body() -> Role:
    body = request.get_json(silent=True)
    raw = body.get("role") if isinstance(body, dict) else body
    try:
        return Role.parse(raw)
    except ValueError as e:
        raise InvalidPayload(str(e), field="role") from None


@bp.get("/users/me")
@require_user
def me():
    return user_to_dict(current_user())


@bp.put("/users/<user_id>/role")
@require_role(Role.OFFICER)
def update_role(user_id: str):
    s = db_session()
    role = _parse_role_body()
    target = set_role(s, actor=current_user(), target_id=user_id, role=role)
    s.commit()
    return user_to_dict(target)
