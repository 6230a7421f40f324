from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.samaj.db import db_session
from app.samaj.errors import validation_error
from app.samaj.modules.family_member_requests.service import (
    approve_request,
    create_request,
    get_pending_request,
    list_requests,
    my_requests,
    reject_request,
)
from app.samaj.modules.family_members.service import validate_family_member_payload
from app.samaj.rbac import current_user, login_required, require_permission
from app.samaj.utils import clean_str, page_args

bp = Blueprint("family_member_requests", __name__)


@bp.post("/")
@login_required
def request_create():
    s = db_session()
    payload = request.get_json(silent=True) or {}
    errors = validate_family_member_payload(s, payload)
    if errors:
        raise validation_error(errors)
    req = create_request(s, current_user(), payload)
    s.commit()
    return jsonify({"success": True, "message": "Request submitted for admin approval", "data": req.to_dict()}), 201


@bp.get("/")
@login_required
def requests_mine():
    s = db_session()
    rows = my_requests(s, current_user())
    return jsonify({"success": True, "count": len(rows), "data": [r.to_dict() for r in rows]})


@bp.get("/admin")
@require_permission("canApproveFamilyMembers")
def requests_admin_list():
    s = db_session()
    page, limit = page_args(request.args)
    rows, total, pages = list_requests(s, clean_str(request.args.get("status")), page, limit)
    return jsonify(
        {
            "success": True,
            "count": len(rows),
            "total": total,
            "page": page,
            "pages": pages,
            "data": [r.to_dict() for r in rows],
        }
    )


@bp.patch("/admin/<int:request_id>/approve")
@require_permission("canApproveFamilyMembers")
def request_approve(request_id: int):
    s = db_session()
    req = get_pending_request(s, request_id)
    member, login_info = approve_request(s, req, current_user())
    s.commit()
    body = {
        "success": True,
        "message": "Request approved and family member added",
        "data": req.to_dict(),
        "familyMember": member.to_dict(),
    }
    if login_info:
        body["loginInfo"] = login_info
    return jsonify(body)


@bp.patch("/admin/<int:request_id>/reject")
@require_permission("canRejectFamilyMembers")
def request_reject(request_id: int):
    s = db_session()
    req = get_pending_request(s, request_id)
    payload = request.get_json(silent=True) or {}
    reject_request(s, req, current_user(), payload.get("rejectionReason"))
    s.commit()
    return jsonify({"success": True, "message": "Request rejected", "data": req.to_dict()})
