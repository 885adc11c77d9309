"""
Create tables (development) and bootstrap the first officer.

Profiles are normally created on first login with the default role, and only
an officer can promote anyone, so a fresh install needs one officer seeded
from the environment:

  BOOTSTRAP_OFFICER_ID     identity id from the users service
  BOOTSTRAP_OFFICER_EMAIL  email for that identity

Usage:
  python scripts/init_db.py            # seed only (after alembic upgrade head)
  python scripts/init_db.py --create   # also create tables without alembic (dev/sqlite)
"""
import argparse
import os
import sys
from pathlib import Path

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.rotinas.audit import record_event
from app.rotinas.constants import Role
from app.rotinas.db import build_engine
from app.rotinas.models import Base, User
from app.rotinas.users import apply_role
from scripts._common import database_url_from_env, script_session


def create_tables(database_url: str) -> None:
    engine = build_engine(database_url)
    try:
        Base.metadata.create_all(bind=engine)
    finally:
        engine.dispose()


def seed_only(*, database_url: str | None = None) -> None:
    """
    Idempotent. Creates or promotes the bootstrap officer; never touches other profiles.
    """
    officer_id = (os.environ.get("BOOTSTRAP_OFFICER_ID") or "").strip()
    officer_email = (os.environ.get("BOOTSTRAP_OFFICER_EMAIL") or "").strip().lower()
    if not officer_id or not officer_email:
        print("BOOTSTRAP_OFFICER_ID/BOOTSTRAP_OFFICER_EMAIL not set; nothing to seed.")
        return

    db_url = (database_url or database_url_from_env()).strip()
    with script_session(db_url) as s:
        user = s.get(User, officer_id)
        if not user:
            user = User(id=officer_id, email=officer_email, role=Role.OFFICER)
            s.add(user)
            s.flush()
            record_event(
                s,
                actor=None,
                action="user.create",
                entity_type="User",
                entity_id=user.id,
                metadata={"email": user.email, "role": user.role.value, "source": "bootstrap"},
            )
            print(f"Created officer profile: {officer_email}")
        elif apply_role(s, user, Role.OFFICER, actor=None, source="bootstrap"):
            print(f"Promoted existing profile to officer: {officer_email}")
        else:
            print(f"Officer already present: {officer_email}")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--create", action="store_true", help="Create tables directly (dev only; prod uses alembic)")
    args = parser.parse_args()

    db_url = database_url_from_env()
    if args.create:
        create_tables(db_url)
        print("Tables created.")
    seed_only(database_url=db_url)


if __name__ == "__main__":
    main()
