from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.samaj.db import db_session
from app.samaj.errors import ApiError, validation_error
from app.samaj.models import User
from app.samaj.modules.family_members.service import (
    approve_family_member,
    create_family_member,
    delete_family_member,
    get_member_or_404,
    my_family_members,
    pending_family_members,
    reject_family_member,
    sub_family_members,
    update_family_member,
    validate_family_member_payload,
)
from app.samaj.rbac import current_user, login_required, require_permission, user_has_permission

bp = Blueprint("family_members", __name__)


def _own_member(s, member_id: int):
    member = get_member_or_404(s, member_id)
    if member.user_id != current_user().id:
        raise ApiError("You can only manage your own family members", 403)
    return member


@bp.post("/")
@login_required
def family_member_add():
    s = db_session()
    u = current_user()
    manager = user_has_permission(u, "canManageFamilyMembers")
    if not u.is_primary_account and not manager:
        raise ApiError("Only primary account holders can add family members", 403)
    payload = request.get_json(silent=True) or {}
    if payload.get("createLoginAccount") and not u.is_primary_account:
        raise ApiError("Only primary account holders can create login accounts for family members", 403)

    errors = validate_family_member_payload(s, payload)
    if errors:
        raise validation_error(errors)

    owner = u
    if manager and payload.get("userId"):
        owner = s.get(User, int(payload["userId"]))
        if owner is None or owner.is_deleted:
            raise ApiError("User not found", 404)

    member, login_info = create_family_member(s, owner, payload, u)
    s.commit()
    body = {
        "success": True,
        "message": "Family member added, pending approval" if member.needs_approval else "Family member added",
        "data": member.to_dict(),
    }
    if login_info:
        body["loginInfo"] = login_info
    return jsonify(body), 201


@bp.get("/my")
@login_required
def family_members_my():
    s = db_session()
    members = my_family_members(s, current_user())
    return jsonify({"success": True, "count": len(members), "data": [m.to_dict() for m in members]})


@bp.get("/pending")
@require_permission("canViewPendingFamilyMembers")
def family_members_pending():
    s = db_session()
    members = pending_family_members(s)
    return jsonify({"success": True, "count": len(members), "data": [m.to_dict() for m in members]})


@bp.get("/sub-family/<sfn>")
@login_required
def family_members_by_sub_family(sfn: str):
    s = db_session()
    members = sub_family_members(s, sfn)
    return jsonify({"success": True, "count": len(members), "data": [m.to_dict() for m in members]})


@bp.patch("/<int:member_id>")
@login_required
def family_member_update(member_id: int):
    s = db_session()
    member = _own_member(s, member_id)
    payload = request.get_json(silent=True) or {}
    errors = validate_family_member_payload(s, payload, partial=True)
    if errors:
        raise validation_error(errors)
    update_family_member(s, member, payload, current_user())
    s.commit()
    return jsonify({"success": True, "message": "Family member updated", "data": member.to_dict()})


@bp.delete("/<int:member_id>")
@login_required
def family_member_delete(member_id: int):
    s = db_session()
    member = _own_member(s, member_id)
    delete_family_member(s, member, current_user())
    s.commit()
    return jsonify({"success": True, "message": "Family member removed"})


@bp.patch("/<int:member_id>/approve")
@require_permission("canApproveFamilyMembers")
def family_member_approve(member_id: int):
    s = db_session()
    member = approve_family_member(s, get_member_or_404(s, member_id), current_user())
    s.commit()
    return jsonify({"success": True, "message": "Family member approved", "data": member.to_dict()})


@bp.patch("/<int:member_id>/reject")
@require_permission("canRejectFamilyMembers")
def family_member_reject(member_id: int):
    s = db_session()
    payload = request.get_json(silent=True) or {}
    member = reject_family_member(
        s,
        get_member_or_404(s, member_id),
        current_user(),
        payload.get("reason") or payload.get("rejectionReason"),
    )
    s.commit()
    return jsonify({"success": True, "message": "Family member rejected", "data": member.to_dict()})


# ---------- Admin ----------
@bp.patch("/admin/family-members/<int:member_id>")
@require_permission("canManageUsers")
def admin_family_member_update(member_id: int):
    s = db_session()
    member = get_member_or_404(s, member_id)
    payload = request.get_json(silent=True) or {}
    errors = validate_family_member_payload(s, payload, partial=True)
    if errors:
        raise validation_error(errors)
    update_family_member(s, member, payload, current_user(), admin=True)
    s.commit()
    return jsonify({"success": True, "message": "Family member updated", "data": member.to_dict()})


@bp.delete("/admin/family-members/<int:member_id>")
@require_permission("canManageUsers")
def admin_family_member_delete(member_id: int):
    s = db_session()
    member = get_member_or_404(s, member_id)
    payload = request.get_json(silent=True) or {}
    delete_family_member(s, member, current_user(), reason=payload.get("reason"), admin=True)
    s.commit()
    return jsonify({"success": True, "message": "Family member deleted"})
