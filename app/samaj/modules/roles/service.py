from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.samaj.audit import log_activity
from app.samaj.errors import ApiError
from app.samaj.models import Permission, Role, User
from app.samaj.permissions import (
    ALL_PERMISSIONS,
    CRITICAL_ADMIN_PERMISSIONS,
    SYSTEM_ROLES,
    is_valid_permission,
    permission_category,
    permission_label,
)
from app.samaj.utils import clean_str, slugify

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def ensure_permissions(s: "Session") -> dict[str, Permission]:
    """Create any missing Permission rows from the catalogue. Returns key -> Permission."""
    existing = {p.key: p for p in s.query(Permission).all()}
    for key in ALL_PERMISSIONS:
        if key in existing:
            continue
        perm = Permission(key=key, name=permission_label(key), category=permission_category(key))
        s.add(perm)
        existing[key] = perm
    s.flush()
    return existing


def _enabled_keys(permissions: Any) -> list[str]:
    """Accept a {key: bool} map or a list of keys; unknown keys are dropped."""
    if isinstance(permissions, dict):
        return [k for k, v in permissions.items() if v is True and is_valid_permission(k)]
    if isinstance(permissions, (list, tuple)):
        return [k for k in permissions if isinstance(k, str) and is_valid_permission(k)]
    return []


def _apply_permissions(s: "Session", role: Role, keys: list[str]) -> None:
    catalogue = ensure_permissions(s)
    role.permissions = [catalogue[k] for k in ALL_PERMISSIONS if k in set(keys)]


def get_role_by_key(s: "Session", key: str) -> Role | None:
    return s.query(Role).filter(Role.key == key).one_or_none()


def get_role_or_404(s: "Session", role_id: int) -> Role:
    role = s.get(Role, role_id)
    if role is None:
        raise ApiError("Role not found", 404)
    return role


def role_user_count(s: "Session", role: Role, *, active_only: bool = False) -> int:
    q = s.query(func.count(User.id)).filter(User.role_id == role.id, User.deleted_at.is_(None))
    if active_only:
        q = q.filter(User.is_active.is_(True))
    return int(q.scalar() or 0)


def initialize_system_roles(s: "Session", user: User | None = None) -> dict[str, Role]:
    """
    Create or refresh the system roles, then give every role-less user the `user` role.
    Idempotent.
    """
    ensure_permissions(s)
    now = datetime.utcnow()
    roles: dict[str, Role] = {}
    for entry in SYSTEM_ROLES:
        role = get_role_by_key(s, entry["key"])
        if role is None:
            role = Role(key=entry["key"], created_at=now, created_by_user_id=user.id if user else None)
            s.add(role)
        role.name = entry["name"]
        role.description = entry["description"]
        role.is_system_role = True
        role.is_active = True
        role.updated_at = now
        _apply_permissions(s, role, list(entry["permissions"]))
        roles[entry["key"]] = role
    s.flush()

    default_role = roles["user"]
    orphans = s.query(User).filter(User.role_id.is_(None)).all()
    for u in orphans:
        u.role_id = roles[u.role].id if u.role in roles else default_role.id
    s.flush()
    logger.info("System roles initialized (%s users assigned a default role)", len(orphans))
    log_activity(
        s,
        performed_by=user,
        action_type="roles_initialized",
        details={"roles": sorted(roles), "usersAssigned": len(orphans)},
    )
    return roles


def validate_role_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors: list[str] = []
    name = payload.get("roleName")
    if name is not None or not partial:
        name = clean_str(name)
        if not name:
            errors.append("Role name is required")
        elif not 3 <= len(name) <= 50:
            errors.append("Role name must be between 3 and 50 characters")
    if "permissions" in payload or not partial:
        if not _enabled_keys(payload.get("permissions")):
            errors.append("At least one permission must be enabled")
    description = payload.get("description")
    if description and len(str(description)) > 500:
        errors.append("Description cannot exceed 500 characters")
    return errors


def _name_taken(s: "Session", name: str, exclude_id: int | None = None) -> bool:
    q = s.query(Role).filter(func.lower(Role.name) == name.lower(), Role.is_active.is_(True))
    if exclude_id is not None:
        q = q.filter(Role.id != exclude_id)
    return s.query(q.exists()).scalar()


def create_role(s: "Session", payload: dict, user: User) -> Role:
    name = clean_str(payload.get("roleName"))
    if _name_taken(s, name):
        raise ApiError("A role with this name already exists", 409)
    key = slugify(name)
    if get_role_by_key(s, key) is not None:
        # An inactive role may already hold the slug.
        key = f"{key}_{int(datetime.utcnow().timestamp())}"
    now = datetime.utcnow()
    role = Role(
        key=key,
        name=name,
        description=clean_str(payload.get("description")),
        is_system_role=False,
        is_active=True,
        created_by_user_id=user.id,
        created_at=now,
        updated_at=now,
    )
    s.add(role)
    _apply_permissions(s, role, _enabled_keys(payload.get("permissions")))
    s.flush()
    log_activity(
        s,
        performed_by=user,
        action_type="role_created",
        details={"roleId": role.id, "roleName": role.name, "permissions": role.enabled_permissions()},
    )
    return role


def update_role(s: "Session", role: Role, payload: dict, user: User) -> Role:
    changes: dict[str, Any] = {}

    new_name = payload.get("roleName")
    if new_name is not None:
        new_name = clean_str(new_name) or role.name
        if new_name != role.name:
            if role.is_system_role:
                raise ApiError("Cannot rename system roles", 400)
            if _name_taken(s, new_name, exclude_id=role.id):
                raise ApiError("A role with this name already exists", 409)
            changes["roleName"] = {"old": role.name, "new": new_name}
            role.name = new_name

    if "description" in payload:
        role.description = clean_str(payload.get("description"))

    if "permissions" in payload:
        keys = _enabled_keys(payload.get("permissions"))
        if not keys:
            raise ApiError("At least one permission must be enabled", 400)
        if role.key == "admin":
            lost = [k for k in CRITICAL_ADMIN_PERMISSIONS if k not in keys]
            if lost:
                raise ApiError(f"Admin role must keep: {', '.join(lost)}", 400)
        old = role.enabled_permissions()
        _apply_permissions(s, role, keys)
        if set(old) != set(keys):
            changes["permissions"] = {
                "added": sorted(set(keys) - set(old)),
                "removed": sorted(set(old) - set(keys)),
            }

    if "isActive" in payload and not role.is_system_role:
        role.is_active = bool(payload.get("isActive"))

    role.updated_at = datetime.utcnow()
    s.flush()
    if changes:
        log_activity(s, performed_by=user, action_type="role_updated", details={"roleId": role.id, "changes": changes})
    return role


def delete_role(s: "Session", role: Role, user: User) -> Role:
    if role.is_system_role:
        raise ApiError("Cannot delete system roles", 400)
    in_use = role_user_count(s, role, active_only=True)
    if in_use:
        raise ApiError(f"Cannot delete role. {in_use} active users are assigned to this role", 400)
    role.is_active = False
    role.updated_at = datetime.utcnow()
    s.flush()
    log_activity(s, performed_by=user, action_type="role_deleted", details={"roleId": role.id, "roleName": role.name})
    return role


def legacy_role_for(role: Role) -> str:
    if role.key in ("admin", "committee"):
        return role.key
    return "user"


def assign_role(s: "Session", target: User, role: Role, user: User) -> User:
    if not role.is_active:
        raise ApiError("Cannot assign an inactive role", 400)
    old_role_id = target.role_id
    target.role_id = role.id
    target.role_ref = role
    target.role = legacy_role_for(role)
    target.updated_at = datetime.utcnow()
    s.flush()
    log_activity(
        s,
        performed_by=user,
        action_type="role_changed",
        target_user=target,
        details={"oldRoleId": old_role_id, "newRoleId": role.id, "roleName": role.name},
    )
    return target
