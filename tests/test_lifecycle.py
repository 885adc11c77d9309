"""Tests for the module lifecycle gate (no database)."""
import pytest

from app.rotinas.constants import Role
from app.rotinas.errors import Forbidden, StatusMismatch
from app.rotinas.modules.lifecycle import (
    ATTRIBUTION_FIELDS,
    TRANSITIONS,
    can_advance,
    can_create,
    next_status,
    plan_advance,
    queue_status,
)
from app.rotinas.modules.models import STATUS_ORDER, ModuleStatus


def test_only_drivers_and_firefighters_can_create():
    assert can_create(Role.DRIVER)
    assert can_create(Role.FIREFIGHTER)
    for role in (Role.SERGEANT, Role.B3, Role.OFFICER):
        assert not can_create(role)


def test_next_status_per_reviewer():
    assert next_status(Role.SERGEANT) == ModuleStatus.VALIDATED_SERGEANT
    assert next_status(Role.B3) == ModuleStatus.REVIEWED_B3
    assert next_status(Role.OFFICER) == ModuleStatus.PUBLISHED_OFFICERS


@pytest.mark.parametrize("role", [Role.DRIVER, Role.FIREFIGHTER])
def test_next_status_rejects_creator_roles(role):
    with pytest.raises(Forbidden):
        next_status(role)


def test_each_reviewer_consumes_exactly_one_status():
    expected = {
        Role.SERGEANT: ModuleStatus.AWAITING_SERGEANT,
        Role.B3: ModuleStatus.VALIDATED_SERGEANT,
        Role.OFFICER: ModuleStatus.REVIEWED_B3,
    }
    for role in Role:
        for status in ModuleStatus:
            assert can_advance(role, status) == (expected.get(role) == status), (role, status)


def test_sergeant_cannot_act_past_their_stage():
    assert not can_advance(Role.SERGEANT, ModuleStatus.VALIDATED_SERGEANT)
    assert not can_advance(Role.SERGEANT, ModuleStatus.REVIEWED_B3)


def test_transitions_only_move_one_step_forward():
    for t in TRANSITIONS.values():
        assert STATUS_ORDER.index(t.produces) == STATUS_ORDER.index(t.consumes) + 1


def test_published_is_terminal():
    assert not any(can_advance(role, ModuleStatus.PUBLISHED_OFFICERS) for role in Role)


def test_attribution_fields_match_destination():
    assert ATTRIBUTION_FIELDS == {
        ModuleStatus.VALIDATED_SERGEANT: "validated_by",
        ModuleStatus.REVIEWED_B3: "reviewed_by",
        ModuleStatus.PUBLISHED_OFFICERS: "published_by",
    }


def test_plan_advance_officer_on_awaiting_is_forbidden():
    with pytest.raises(Forbidden):
        plan_advance(Role.OFFICER, ModuleStatus.AWAITING_SERGEANT, ModuleStatus.PUBLISHED_OFFICERS)


def test_plan_advance_wrong_target_is_status_mismatch():
    with pytest.raises(StatusMismatch) as exc:
        plan_advance(Role.SERGEANT, ModuleStatus.AWAITING_SERGEANT, ModuleStatus.REVIEWED_B3)
    assert exc.value.field == "status"


@pytest.mark.parametrize("role", [Role.SERGEANT, Role.B3, Role.OFFICER])
def test_plan_advance_accepts_only_next_status(role):
    current = queue_status(role)
    for requested in ModuleStatus:
        if requested == next_status(role):
            assert plan_advance(role, current, requested).produces == requested
        else:
            with pytest.raises(StatusMismatch):
                plan_advance(role, current, requested)


def test_plan_advance_forbidden_checked_before_target():
    # Wrong state and wrong target: the role check wins.
    with pytest.raises(Forbidden):
        plan_advance(Role.B3, ModuleStatus.AWAITING_SERGEANT, ModuleStatus.VALIDATED_SERGEANT)


def test_plan_advance_ok():
    t = plan_advance(Role.B3, ModuleStatus.VALIDATED_SERGEANT, ModuleStatus.REVIEWED_B3)
    assert t.attribution_field == "reviewed_by"
    assert t.produces == ModuleStatus.REVIEWED_B3


def test_queue_status():
    assert queue_status(Role.SERGEANT) == ModuleStatus.AWAITING_SERGEANT
    assert queue_status(Role.OFFICER) == ModuleStatus.REVIEWED_B3
    assert queue_status(Role.DRIVER) is None


def test_role_parse_accepts_wire_and_bare_names():
    assert Role.parse("ROLE_B3") is Role.B3
    assert Role.parse("sergeant") is Role.SERGEANT
    with pytest.raises(ValueError):
        Role.parse("ROLE_CAPTAIN")
    with pytest.raises(ValueError):
        Role.parse(None)
