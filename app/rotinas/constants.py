"""
Central constants for the Rotinas application.
"""
from __future__ import annotations

import enum


class Role(str, enum.Enum):
    DRIVER = "ROLE_DRIVER"
    FIREFIGHTER = "ROLE_FIREFIGHTER"
    SERGEANT = "ROLE_SERGEANT"
    B3 = "ROLE_B3"
    OFFICER = "ROLE_OFFICER"

    @classmethod
    def parse(cls, raw: object) -> "Role":
        """Accept the wire value ("ROLE_B3") or the bare name ("B3")."""
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            raise ValueError(f"Invalid role: {raw!r}")
        key = raw.strip().upper()
        for role in cls:
            if key in (role.value, role.name):
                return role
        raise ValueError(f"Invalid role: {raw!r}")


# Role given to a profile the first time its identity is seen
DEFAULT_ROLE = Role.FIREFIGHTER

CREATOR_ROLES = frozenset({Role.DRIVER, Role.FIREFIGHTER})

# Newest-first page size for the module list
MODULE_LIST_LIMIT = 50

# Session cookie lifetime handed out after the OAuth exchange
SESSION_TOKEN_MAX_AGE = 60 * 24 * 60 * 60  # 60 days
