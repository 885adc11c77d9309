from collections.abc import Callable
from functools import wraps
from typing import Any

from app.rotinas.constants import Role
from app.rotinas.errors import Forbidden, Unauthenticated


def require_user(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        from app.rotinas.users import current_user

        if current_user() is None:
            raise Unauthenticated("Not authenticated.")
        return fn(*args, **kwargs)

    return wrapped


def require_role(*roles: Role) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    allowed = frozenset(roles)

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            from app.rotinas.users import current_user

            user = current_user()
            # Unauthenticated -> 401
            if user is None:
                raise Unauthenticated("Not authenticated.")
            # Authenticated but wrong role -> 403
            if user.role not in allowed:
                raise Forbidden("Insufficient permissions.")
            return fn(*args, **kwargs)

        return wrapped

    return decorator
