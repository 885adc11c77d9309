"""
Module store and lifecycle service.
Handles module creation, listing, and status transitions.
"""
from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.rotinas.audit import record_event
from app.rotinas.constants import Role
from app.rotinas.errors import Conflict, Forbidden, InvalidPayload, NotFound
from app.rotinas.utils import isoformat, utcnow

from .lifecycle import can_advance, can_create, plan_advance, queue_status
from .models import INITIAL_STATUS, Module, ModuleStatus, ModuleType
from .payloads import validate_payload

if TYPE_CHECKING:
    from app.rotinas.models import User

logger = logging.getLogger(__name__)


def parse_status(raw: Any) -> ModuleStatus:
    try:
        return ModuleStatus(raw)
    except ValueError:
        raise InvalidPayload(f"Unknown status: {raw!r}", field="status") from None


def module_to_dict(m: Module, *, viewer_role: Role | None = None) -> dict[str, Any]:
    try:
        payload = json.loads(m.payload)
    except (TypeError, ValueError):
        logger.warning("Module %s has an unreadable payload", m.id)
        payload = None
    return {
        "id": m.id,
        "type": m.type.value,
        "status": m.status.value,
        "payload": payload,
        "created_by": m.created_by,
        "validated_by": m.validated_by,
        "reviewed_by": m.reviewed_by,
        "published_by": m.published_by,
        "created_at": isoformat(m.created_at),
        "updated_at": isoformat(m.updated_at),
        "actionable": bool(viewer_role and can_advance(viewer_role, m.status)),
    }


# ---- store ----


def insert_module(s: Session, m: Module) -> Module:
    s.add(m)
    s.flush()  # Get ID
    return m


def get_module(s: Session, module_id: int) -> Module:
    m = s.get(Module, module_id)
    if not m:
        raise NotFound(f"Module {module_id} not found.")
    return m


def list_recent(
    s: Session,
    *,
    limit: int,
    status: ModuleStatus | None = None,
    module_type: ModuleType | None = None,
) -> list[Module]:
    q = select(Module)
    if status is not None:
        q = q.where(Module.status == status)
    if module_type is not None:
        q = q.where(Module.type == module_type)
    q = q.order_by(Module.created_at.desc(), Module.id.desc()).limit(limit)
    return list(s.scalars(q).all())


def conditional_update_status(
    s: Session,
    module_id: int,
    *,
    expected_status: ModuleStatus,
    new_status: ModuleStatus,
    attribution_field: str,
    actor_id: str,
) -> Module:
    """
    Compare-and-set on `status`. Only one writer can move a module out of
    `expected_status`; the loser gets Conflict and nothing is stamped twice.
    """
    attribution_col = getattr(Module, attribution_field)
    stmt = (
        update(Module)
        .where(
            Module.id == module_id,
            Module.status == expected_status,
            attribution_col.is_(None),
        )
        .values({"status": new_status, attribution_field: actor_id, "updated_at": utcnow()})
        .execution_options(synchronize_session=False)
    )
    result = s.execute(stmt)
    if result.rowcount == 0:
        if s.get(Module, module_id) is None:
            raise NotFound(f"Module {module_id} not found.")
        raise Conflict(f"Module {module_id} is no longer in status {expected_status.value}; reload and retry.")
    return s.get(Module, module_id, populate_existing=True)  # type: ignore[return-value]


# ---- lifecycle ----


def create_module(s: Session, *, user: User, module_type: ModuleType | str, payload: Any) -> Module:
    """Create a module at the initial status. Nothing is written on rejection."""
    if not can_create(user.role):
        raise Forbidden(f"{user.role.value} cannot create modules.")

    doc = validate_payload(module_type, payload)
    mtype = ModuleType(module_type)

    m = insert_module(
        s,
        Module(
            type=mtype,
            status=INITIAL_STATUS,
            payload=json.dumps(doc, sort_keys=True),
            created_by=user.id,
            validated_by=None,
            reviewed_by=None,
            published_by=None,
        ),
    )

    record_event(
        s,
        actor=user,
        action="module.create",
        entity_type="Module",
        entity_id=str(m.id),
        metadata={"type": mtype.value, "status": m.status.value},
    )
    logger.info("Module %s (%s) created by %s", m.id, mtype.value, user.id)
    return m


def advance_module(s: Session, *, user: User, module_id: int, requested_status: ModuleStatus | str) -> Module:
    """
    Move a module to the caller's next status and stamp the matching attribution field.
    """
    requested = parse_status(requested_status)
    m = get_module(s, module_id)
    from_status = m.status

    try:
        t = plan_advance(user.role, from_status, requested)
    except Forbidden:
        logger.warning(
            "Advance refused: module=%s status=%s role=%s requested=%s",
            module_id,
            from_status.value,
            user.role.value,
            requested.value,
        )
        raise

    m = conditional_update_status(
        s,
        module_id,
        expected_status=t.consumes,
        new_status=t.produces,
        attribution_field=t.attribution_field,
        actor_id=user.id,
    )

    record_event(
        s,
        actor=user,
        action="module.advance",
        entity_type="Module",
        entity_id=str(m.id),
        metadata={"from": from_status.value, "to": m.status.value, "field": t.attribution_field},
    )
    logger.info("Module %s advanced %s -> %s by %s", m.id, from_status.value, m.status.value, user.id)
    return m


def review_queue(s: Session, *, role: Role, limit: int) -> list[Module]:
    """Modules waiting on `role`. Empty for creator roles."""
    status = queue_status(role)
    if status is None:
        return []
    return list_recent(s, limit=limit, status=status)
