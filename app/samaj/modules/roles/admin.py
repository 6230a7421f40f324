from __future__ import annotations

from flask import Blueprint, jsonify, request
from sqlalchemy import case

from app.samaj.db import db_session
from app.samaj.errors import ApiError, validation_error
from app.samaj.models import Role, User
from app.samaj.modules.roles.service import (
    assign_role,
    create_role,
    delete_role,
    get_role_or_404,
    initialize_system_roles,
    role_user_count,
    update_role,
    validate_role_payload,
)
from app.samaj.permissions import ALL_PERMISSIONS, permissions_by_category
from app.samaj.rbac import current_user, require_permission
from app.samaj.utils import as_bool

bp = Blueprint("roles", __name__)


def _role_row(s, role: Role) -> dict:
    data = role.to_dict()
    data["enabledPermissionsCount"] = len(role.enabled_permissions())
    data["totalPermissionsCount"] = len(ALL_PERMISSIONS)
    data["userCount"] = role_user_count(s, role)
    return data


@bp.get("/permissions")
@require_permission("canManageRoles")
def permissions_catalogue():
    return jsonify(
        {
            "success": True,
            "data": {"categories": permissions_by_category(), "allPermissions": ALL_PERMISSIONS},
        }
    )


@bp.post("/initialize")
@require_permission("canManageRoles")
def roles_initialize():
    s = db_session()
    roles = initialize_system_roles(s, current_user())
    s.commit()
    return jsonify(
        {
            "success": True,
            "message": "System roles initialized",
            "data": [r.to_dict(include_permissions=False) for r in roles.values()],
        }
    )


@bp.get("/")
@require_permission("canManageRoles")
def roles_list():
    s = db_session()
    q = s.query(Role)
    if not as_bool(request.args.get("includeInactive")):
        q = q.filter(Role.is_active.is_(True))
    roles = q.order_by(case((Role.is_system_role.is_(True), 0), else_=1), Role.name.asc()).all()
    return jsonify({"success": True, "count": len(roles), "data": [_role_row(s, r) for r in roles]})


@bp.post("/")
@require_permission("canManageRoles")
def roles_create():
    s = db_session()
    payload = request.get_json(silent=True) or {}
    errors = validate_role_payload(payload)
    if errors:
        raise validation_error(errors)
    role = create_role(s, payload, current_user())
    s.commit()
    return jsonify({"success": True, "message": "Role created successfully", "data": _role_row(s, role)}), 201


@bp.get("/<int:role_id>")
@require_permission("canManageRoles")
def role_detail(role_id: int):
    s = db_session()
    role = get_role_or_404(s, role_id)
    users = (
        s.query(User)
        .filter(User.role_id == role.id, User.deleted_at.is_(None))
        .order_by(User.created_at.desc())
        .limit(10)
        .all()
    )
    data = _role_row(s, role)
    data["enabledPermissions"] = role.enabled_permissions()
    data["allPermissions"] = permissions_by_category()
    data["users"] = [u.summary() for u in users]
    return jsonify({"success": True, "data": data})


@bp.patch("/<int:role_id>")
@require_permission("canManageRoles")
def role_update(role_id: int):
    s = db_session()
    role = get_role_or_404(s, role_id)
    payload = request.get_json(silent=True) or {}
    errors = validate_role_payload(payload, partial=True)
    if errors:
        raise validation_error(errors)
    update_role(s, role, payload, current_user())
    s.commit()
    return jsonify({"success": True, "message": "Role updated successfully", "data": _role_row(s, role)})


@bp.delete("/<int:role_id>")
@require_permission("canManageRoles")
def role_delete(role_id: int):
    s = db_session()
    role = get_role_or_404(s, role_id)
    delete_role(s, role, current_user())
    s.commit()
    return jsonify({"success": True, "message": "Role deleted successfully"})


@bp.patch("/users/<int:user_id>/assign")
@require_permission("canChangeRoles")
def role_assign(user_id: int):
    s = db_session()
    payload = request.get_json(silent=True) or {}
    role_id = payload.get("roleId")
    if not role_id:
        raise ApiError("roleId is required", 400)
    target = s.get(User, user_id)
    if target is None or target.is_deleted:
        raise ApiError("User not found", 404)
    role = get_role_or_404(s, int(role_id))
    assign_role(s, target, role, current_user())
    s.commit()
    return jsonify({"success": True, "message": f"Role {role.name} assigned", "user": target.to_dict()})
