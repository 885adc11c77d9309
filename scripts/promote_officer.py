#!/usr/bin/env python3
"""Change a profile's role from the command line (idempotent, audited).

The profile must already exist: users get one the first time they sign in.

Usage:
  python scripts/promote_officer.py --email someone@example.com
  python scripts/promote_officer.py --email someone@example.com --role SERGEANT
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.rotinas.constants import Role
from app.rotinas.models import User
from app.rotinas.users import apply_role
from scripts._common import script_session


def promote(email: str, role: Role = Role.OFFICER, *, database_url: str | None = None) -> str:
    """Returns "changed", "unchanged" or "missing"."""
    with script_session(database_url) as s:
        user = s.query(User).filter(User.email.ilike(email.strip())).one_or_none()
        if user is None:
            return "missing"
        if apply_role(s, user, role, actor=None, source="cli"):
            return "changed"
        return "unchanged"


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="Email of an existing profile")
    parser.add_argument("--role", default="OFFICER", help="Role name, e.g. SERGEANT or ROLE_SERGEANT")
    args = parser.parse_args()

    try:
        role = Role.parse(args.role)
    except ValueError as e:
        print(str(e))
        sys.exit(2)

    outcome = promote(args.email, role)
    if outcome == "missing":
        print(f"Profile not found: {args.email} (the user must sign in once first)")
        sys.exit(1)
    if outcome == "unchanged":
        print(f"{args.email} already has role {role.value}")
    else:
        print(f"{args.email}: role set to {role.value}")


if __name__ == "__main__":
    main()
