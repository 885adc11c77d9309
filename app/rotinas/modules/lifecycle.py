"""
Lifecycle gate for submitted modules.

Each reviewer role consumes exactly one status and produces the next one.
This is a one-state lookback, not a rank check: a sergeant can never act on
a module that is already past AWAITING_SERGEANT, and an officer can never
publish a module that skipped the sergeant or B3 stages.
"""
from __future__ import annotations

from dataclasses import dataclass

from app.rotinas.constants import CREATOR_ROLES, Role
from app.rotinas.errors import Forbidden, StatusMismatch
from app.rotinas.modules.models import ModuleStatus


@dataclass(frozen=True)
class Transition:
    consumes: ModuleStatus
    produces: ModuleStatus
    attribution_field: str


# role -> the single transition it may perform. Adding a stage is one row here.
TRANSITIONS: dict[Role, Transition] = {
    Role.SERGEANT: Transition(ModuleStatus.AWAITING_SERGEANT, ModuleStatus.VALIDATED_SERGEANT, "validated_by"),
    Role.B3: Transition(ModuleStatus.VALIDATED_SERGEANT, ModuleStatus.REVIEWED_B3, "reviewed_by"),
    Role.OFFICER: Transition(ModuleStatus.REVIEWED_B3, ModuleStatus.PUBLISHED_OFFICERS, "published_by"),
}

REVIEWER_ROLES = frozenset(TRANSITIONS)

# destination status -> attribution column stamped on reaching it
ATTRIBUTION_FIELDS: dict[ModuleStatus, str] = {t.produces: t.attribution_field for t in TRANSITIONS.values()}


def can_create(role: Role) -> bool:
    return role in CREATOR_ROLES


def next_status(role: Role) -> ModuleStatus:
    """Status a reviewer role produces. Only defined for reviewer roles."""
    t = TRANSITIONS.get(role)
    if t is None:
        raise Forbidden(f"{role.value} cannot review modules.")
    return t.produces


def queue_status(role: Role) -> ModuleStatus | None:
    """Status a reviewer role consumes (its review queue), or None."""
    t = TRANSITIONS.get(role)
    return t.consumes if t else None


def can_advance(role: Role, current_status: ModuleStatus) -> bool:
    t = TRANSITIONS.get(role)
    return t is not None and t.consumes == current_status


def plan_advance(role: Role, current_status: ModuleStatus, requested_status: ModuleStatus) -> Transition:
    """
    Decide a transition without touching storage.

    Raises Forbidden when the role may not act on `current_status`, and
    StatusMismatch when the requested target is not the role's sole next
    status, even if the role is allowed to act on the current one.
    """
    if not can_advance(role, current_status):
        raise Forbidden(f"{role.value} cannot advance a module in status {current_status.value}.")
    target = next_status(role)
    if requested_status != target:
        raise StatusMismatch(
            f"{role.value} can only move a module to {target.value}, not {requested_status.value}.",
            field="status",
        )
    return TRANSITIONS[role]
