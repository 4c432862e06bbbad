from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, current_app, g

from app.schoolpanel.errors import Forbidden
from app.schoolpanel.models import User


class AuthorizationGuard:
    """
    Decides whether an actor may perform an operation.

    Permissions come from the actor's roles. Holders of `superuser_role`
    pass every permission check.
    """

    def __init__(self, superuser_role: str | None = None) -> None:
        self.superuser_role = superuser_role or None

    def permissions_for(self, actor: User | None) -> frozenset[str]:
        if not actor or not actor.is_active:
            return frozenset()
        return frozenset(perm.key for role in actor.roles for perm in role.permissions)

    def has_role(self, actor: User | None, role_key: str) -> bool:
        if not actor or not actor.is_active:
            return False
        return any(role.key == role_key for role in actor.roles)

    def check(self, actor: User | None, permission_key: str) -> bool:
        if not actor or not actor.is_active:
            return False
        if self.superuser_role and self.has_role(actor, self.superuser_role):
            return True
        return permission_key in self.permissions_for(actor)


def current_guard() -> AuthorizationGuard:
    return current_app.extensions["authorization_guard"]


def require_permission(permission_key: str | Callable[..., str | None]) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Gate a view on a permission. `permission_key` may be a callable receiving the
    view kwargs, for routes whose permission depends on the URL; a callable
    returning None admits any signed-in actor.
    """

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Unauthenticated -> 401 (login lives outside this app).
            if not user or not user.is_active:
                abort(401)
            key = permission_key(**kwargs) if callable(permission_key) else permission_key
            # Authenticated but unauthorized -> 403
            if key is not None and not current_guard().check(user, key):
                g.missing_permission = key
                raise Forbidden(key)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
