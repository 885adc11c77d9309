"""Tests for the user directory (profiles and roles)."""
import pytest

from app.rotinas import create_app
from app.rotinas.constants import Role
from app.rotinas.db import session_scope
from app.rotinas.models import AuditEvent, Base, User


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("AUTH_BACKEND", "header")

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add(User(id="officer-1", email="officer@example.com", role=Role.OFFICER))
        s.add(User(id="sgt-1", email="sgt@example.com", role=Role.SERGEANT))

    return app.test_client()


def _as(user_id, email=None, name=None):
    h = {"X-User-Id": user_id, "X-User-Email": email or f"{user_id}@example.com"}
    if name:
        h["X-User-Name"] = name
    return h


def test_me_requires_auth(client):
    r = client.get("/api/users/me")
    assert r.status_code == 401


def test_first_sight_creates_firefighter_profile_once(client):
    r = client.get("/api/users/me", headers=_as("new-1", "New@Example.com", "Ana"))
    assert r.status_code == 200
    assert r.json["id"] == "new-1"
    assert r.json["email"] == "new@example.com"
    assert r.json["name"] == "Ana"
    assert r.json["role"] == "ROLE_FIREFIGHTER"

    r = client.get("/api/users/me", headers=_as("new-1", "new@example.com"))
    assert r.status_code == 200

    with session_scope(client.application) as s:
        assert s.query(User).filter(User.id == "new-1").count() == 1
        created = s.query(AuditEvent).filter(AuditEvent.action == "user.create").all()
        assert [e.entity_id for e in created] == ["new-1"]


def test_existing_profile_is_returned_unchanged(client):
    r = client.get("/api/users/me", headers=_as("sgt-1", "sgt@example.com"))
    assert r.json["role"] == "ROLE_SERGEANT"


def test_officer_sets_role(client):
    client.get("/api/users/me", headers=_as("new-1"))
    r = client.put("/api/users/new-1/role", json="ROLE_DRIVER", headers=_as("officer-1", "officer@example.com"))
    assert r.status_code == 200
    assert r.json["role"] == "ROLE_DRIVER"

    r = client.put("/api/users/new-1/role", json={"role": "B3"}, headers=_as("officer-1", "officer@example.com"))
    assert r.status_code == 200
    assert r.json["role"] == "ROLE_B3"

    with session_scope(client.application) as s:
        assert s.get(User, "new-1").role == Role.B3
        changes = s.query(AuditEvent).filter(AuditEvent.action == "user.role_change").count()
        assert changes == 2


def test_non_officer_cannot_set_role(client):
    client.get("/api/users/me", headers=_as("new-1"))
    r = client.put("/api/users/new-1/role", json="ROLE_OFFICER", headers=_as("sgt-1", "sgt@example.com"))
    assert r.status_code == 403
    with session_scope(client.application) as s:
        assert s.get(User, "new-1").role == Role.FIREFIGHTER


def test_set_role_unknown_user(client):
    r = client.put("/api/users/ghost/role", json="ROLE_DRIVER", headers=_as("officer-1", "officer@example.com"))
    assert r.status_code == 404


def test_set_role_invalid_value(client):
    r = client.put("/api/users/sgt-1/role", json="ROLE_CAPTAIN", headers=_as("officer-1", "officer@example.com"))
    assert r.status_code == 400
    assert r.json["field"] == "role"


def test_set_role_service_checks_actor(client):
    from app.rotinas.errors import Forbidden
    from app.rotinas.users import set_role

    with pytest.raises(Forbidden):
        with session_scope(client.application) as s:
            sergeant = s.get(User, "sgt-1")
            set_role(s, actor=sergeant, target_id="sgt-1", role=Role.OFFICER)

    with session_scope(client.application) as s:
        assert s.get(User, "sgt-1").role == Role.SERGEANT
