from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from app.samaj.db import db_session
from app.samaj.errors import ApiError, validation_error
from app.samaj.modules.users.queries import (
    all_people,
    committee_members,
    deleted_users,
    family_complete,
    family_for_transfer,
    family_users,
    list_users,
    owned_family_members,
    search_families,
    search_users,
)
from app.samaj.modules.users.service import (
    bulk_set_status,
    change_password,
    get_user_or_404,
    hard_delete_user,
    next_pending_user,
    profile_image_key,
    restore_user,
    set_status,
    soft_delete_user,
    toggle_active,
    update_me,
    update_role_and_status,
    validate_profile_payload,
)
from app.samaj.modules.users.transfer import transfer_history, transfer_primary
from app.samaj.rbac import current_user, login_required, require_any_permission, require_permission
from app.samaj.storage import storage_from_config
from app.samaj.utils import as_bool, page_args

bp = Blueprint("users", __name__)


def _page_body(items, total: int, page: int, pages: int, **extra) -> dict:
    return {
        "success": True,
        "count": len(items),
        "total": total,
        "page": page,
        "pages": pages,
        "users": [u.to_dict() for u in items],
        **extra,
    }


# ---------- Self ----------
@bp.get("/me")
@login_required
def me():
    s = db_session()
    u = current_user()
    data = u.to_dict()
    data["permissions"] = u.role_ref.permission_map() if u.role_ref and u.role_ref.is_active else {}
    data["transferHistory"] = [r.to_dict() for r in transfer_history(s, u)]
    return jsonify({"success": True, "user": data})


@bp.patch("/me")
@login_required
def me_update():
    s = db_session()
    payload = request.get_json(silent=True) or {}
    errors = validate_profile_payload(s, payload)
    if errors:
        raise validation_error(errors)
    user = update_me(s, current_user(), payload)
    s.commit()
    return jsonify({"success": True, "message": "Profile updated successfully", "user": user.to_dict()})


@bp.patch("/change-password")
@login_required
def me_change_password():
    s = db_session()
    payload = request.get_json(silent=True) or {}
    change_password(s, current_user(), payload.get("currentPassword") or "", payload.get("newPassword") or "")
    s.commit()
    return jsonify({"success": True, "message": "Password changed successfully"})


@bp.post("/me/profile-image")
@login_required
def me_profile_image():
    s = db_session()
    u = current_user()
    f = request.files.get("file") or request.files.get("profileImage")
    if not f or not f.filename:
        raise ApiError("Please upload an image", 400)
    content_type = f.mimetype or ""
    if not content_type.startswith("image/"):
        raise ApiError("Only image files are allowed", 400)
    data = f.read()
    key = profile_image_key(u, f.filename, content_type)
    storage_from_config(current_app.config).put_bytes(key, data, content_type=content_type)
    update_me(s, u, {"profileImage": f"/uploads/{key}"})
    s.commit()
    return jsonify({"success": True, "message": "Profile image updated", "profileImage": u.profile_image})


# ---------- Listings ----------
@bp.get("/")
@require_permission("canViewUsers")
def users_list():
    s = db_session()
    page, limit = page_args(request.args)
    items, total, pages = list_users(s, request.args, page, limit)
    return jsonify(_page_body(items, total, page, pages))


@bp.get("/search")
@require_any_permission("canSearchUsers", "canViewUsers")
def users_search():
    s = db_session()
    page, limit = page_args(request.args)
    items, total, pages = search_users(s, request.args, page, limit)
    return jsonify(_page_body(items, total, page, pages))


@bp.get("/search-family")
@login_required
def users_search_family():
    s = db_session()
    families = search_families(s, request.args.get("q"))
    return jsonify({"success": True, "count": len(families), "data": families})


@bp.get("/committee-members")
def users_committee():
    s = db_session()
    members = committee_members(s)
    return jsonify({"success": True, "count": len(members), "data": [m.to_dict(include_role=False) for m in members]})


@bp.get("/family/<sfn>")
@login_required
def users_family(sfn: str):
    s = db_session()
    users = family_users(s, sfn)
    return jsonify({"success": True, "count": len(users), "users": [u.to_dict(include_role=False) for u in users]})


@bp.get("/family-complete/<sfn>")
@login_required
def users_family_complete(sfn: str):
    s = db_session()
    page, limit = page_args(request.args, default_limit=50)
    entries, pagination = family_complete(s, sfn, request.args, page, limit)
    return jsonify({"success": True, "data": entries, "pagination": pagination})


@bp.get("/admin/all-users")
@require_permission("canViewUsers")
def users_admin_all():
    s = db_session()
    page, limit = page_args(request.args)
    entries, pagination = all_people(s, request.args, page, limit)
    return jsonify({"success": True, "data": entries, "pagination": pagination})


@bp.get("/deleted")
@require_permission("canDeleteUsers")
def users_deleted():
    s = db_session()
    page, limit = page_args(request.args)
    items, total, pages = deleted_users(s, page, limit)
    return jsonify(_page_body(items, total, page, pages))


@bp.get("/<int:user_id>/family-for-transfer")
@require_permission("canManageUsers")
def users_family_for_transfer(user_id: int):
    s = db_session()
    primary = get_user_or_404(s, user_id, include_deleted=False)
    return jsonify({"success": True, "data": family_for_transfer(s, primary)})


@bp.get("/<int:user_id>/family-members")
@login_required
def users_family_members(user_id: int):
    s = db_session()
    members = owned_family_members(s, user_id)
    return jsonify({"success": True, "count": len(members), "data": [m.to_dict() for m in members]})


@bp.get("/<int:user_id>")
@login_required
def user_detail(user_id: int):
    s = db_session()
    user = get_user_or_404(s, user_id)
    return jsonify({"success": True, "user": user.to_dict()})


# ---------- Moderation ----------
@bp.patch("/<int:user_id>/role")
@require_any_permission("canChangeRoles", "canApproveUsers")
def user_role_update(user_id: int):
    s = db_session()
    target = get_user_or_404(s, user_id, include_deleted=False)
    payload = request.get_json(silent=True) or {}
    update_role_and_status(s, target, payload, current_user())
    s.commit()
    body = {"success": True, "message": "User updated successfully", "user": target.to_dict()}
    if payload.get("status") == "approved":
        nxt = next_pending_user(s)
        body["nextPendingUser"] = nxt.to_dict(include_role=False) if nxt else None
    return jsonify(body)


@bp.patch("/<int:user_id>/approve")
@require_permission("canApproveUsers")
def user_approve(user_id: int):
    s = db_session()
    target = set_status(s, get_user_or_404(s, user_id, include_deleted=False), "approved", current_user())
    s.commit()
    nxt = next_pending_user(s)
    return jsonify(
        {
            "success": True,
            "message": "User approved successfully",
            "user": target.to_dict(),
            "nextPendingUser": nxt.to_dict(include_role=False) if nxt else None,
        }
    )


@bp.patch("/<int:user_id>/reject")
@require_permission("canRejectUsers")
def user_reject(user_id: int):
    s = db_session()
    payload = request.get_json(silent=True) or {}
    target = set_status(
        s,
        get_user_or_404(s, user_id, include_deleted=False),
        "rejected",
        current_user(),
        reason=payload.get("reason"),
    )
    s.commit()
    return jsonify({"success": True, "message": "User rejected", "user": target.to_dict()})


@bp.patch("/bulk-approve")
@require_permission("canBulkApproveUsers")
def users_bulk_approve():
    s = db_session()
    payload = request.get_json(silent=True) or {}
    modified = bulk_set_status(s, payload.get("userIds"), "approved", current_user())
    s.commit()
    return jsonify({"success": True, "message": f"{modified} users approved", "modifiedCount": modified})


@bp.patch("/bulk-reject")
@require_permission("canBulkRejectUsers")
def users_bulk_reject():
    s = db_session()
    payload = request.get_json(silent=True) or {}
    modified = bulk_set_status(s, payload.get("userIds"), "rejected", current_user())
    s.commit()
    return jsonify({"success": True, "message": f"{modified} users rejected", "modifiedCount": modified})


@bp.patch("/<int:user_id>/deactivate")
@require_permission("canDeactivateUsers")
def user_toggle_active(user_id: int):
    s = db_session()
    target = toggle_active(s, get_user_or_404(s, user_id, include_deleted=False), current_user())
    s.commit()
    state = "activated" if target.is_active else "deactivated"
    return jsonify({"success": True, "message": f"User {state} successfully", "user": target.to_dict()})


def _soft_delete(user_id: int):
    s = db_session()
    payload = request.get_json(silent=True) or {}
    target = soft_delete_user(s, get_user_or_404(s, user_id), current_user(), payload.get("reason"))
    s.commit()
    return jsonify({"success": True, "message": "User deleted successfully", "user": target.to_dict()})


@bp.patch("/<int:user_id>/soft-delete")
@require_permission("canDeleteUsers")
def user_soft_delete(user_id: int):
    return _soft_delete(user_id)


@bp.delete("/<int:user_id>/soft")
@require_permission("canDeleteUsers")
def user_soft_delete_alias(user_id: int):
    return _soft_delete(user_id)


@bp.delete("/<int:user_id>/hard")
@require_permission("canDeleteUsers")
def user_hard_delete(user_id: int):
    s = db_session()
    payload = request.get_json(silent=True) or {}
    target = get_user_or_404(s, user_id)
    deps = hard_delete_user(
        s,
        target,
        current_user(),
        payload.get("reason"),
        as_bool(payload.get("deleteDependentData")),
    )
    s.commit()
    return jsonify({"success": True, "message": "User permanently deleted", "deletedDependencies": deps})


@bp.patch("/<int:user_id>/restore")
@require_permission("canDeleteUsers")
def user_restore(user_id: int):
    s = db_session()
    target = restore_user(s, get_user_or_404(s, user_id), current_user())
    s.commit()
    return jsonify({"success": True, "message": "User restored successfully", "user": target.to_dict()})


@bp.patch("/admin/<int:user_id>/transfer-primary")
@require_permission("canManageUsers")
def user_transfer_primary(user_id: int):
    s = db_session()
    payload = request.get_json(silent=True) or {}
    result = transfer_primary(s, user_id, payload, current_user())
    s.commit()
    return jsonify({"success": True, "message": "Primary account transferred successfully", "data": result})
