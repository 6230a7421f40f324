from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g

from app.samaj.errors import ApiError
from app.samaj.models import User


def current_user() -> User | None:
    return getattr(g, "current_user", None)


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active or user.deleted_at is not None:
        return False
    role = user.role_ref
    if not role or not role.is_active:
        return False
    return any(perm.key == permission_key for perm in role.permissions)


def user_has_any_permission(user: User | None, *permission_keys: str) -> bool:
    return any(user_has_permission(user, k) for k in permission_keys)


def _require_user() -> User:
    user = current_user()
    if user is None:
        if getattr(g, "auth_error", None) == "inactive":
            raise ApiError("Your account has been deactivated", 403)
        if getattr(g, "auth_error", None) == "deleted":
            raise ApiError("This account has been deleted", 403)
        raise ApiError("Please login to access this resource", 401)
    return user


def _check_role(user: User) -> None:
    if not user.role_ref:
        abort(403, description="No role assigned. Please contact administrator.")
    if not user.role_ref.is_active:
        abort(403, description="Your role has been deactivated. Please contact administrator.")


def login_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        _require_user()
        return fn(*args, **kwargs)

    return wrapped


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    return require_any_permission(permission_key)


def require_any_permission(*permission_keys: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user = _require_user()
            _check_role(user)
            if not user_has_any_permission(user, *permission_keys):
                g.missing_permission = " | ".join(permission_keys)
                abort(403, description="You don't have permission to perform this action")
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def require_all_permissions(*permission_keys: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user = _require_user()
            _check_role(user)
            missing = [k for k in permission_keys if not user_has_permission(user, k)]
            if missing:
                g.missing_permission = ", ".join(missing)
                abort(403, description="You don't have permission to perform this action")
            return fn(*args, **kwargs)

        return wrapped

    return decorator
