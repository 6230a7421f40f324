from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from werkzeug.security import generate_password_hash

from app.samaj.audit import log_activity
from app.samaj.errors import ApiError
from app.samaj.models import User
from app.samaj.modules.family_member_requests.models import FamilyMemberRequest
from app.samaj.modules.family_members.models import FamilyMember
from app.samaj.modules.family_members.service import apply_profile, create_family_member
from app.samaj.utils import as_bool, bare_mobile, clean_str, paginate

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def create_request(s: "Session", requester: User, payload: dict) -> FamilyMemberRequest:
    if requester.is_primary_account:
        raise ApiError("Primary account holders can add family members directly", 400)
    if not requester.sub_family_number:
        raise ApiError("Your account has no sub-family number", 400)

    now = datetime.utcnow()
    req = FamilyMemberRequest(
        requested_by_id=requester.id,
        sub_family_number=requester.sub_family_number,
        create_login_account=as_bool(payload.get("createLoginAccount")),
        use_mobile_as_password=as_bool(payload.get("useMobileAsPassword")),
        request_reason=clean_str(payload.get("requestReason")),
        status="pending",
        created_at=now,
        updated_at=now,
    )
    apply_profile(req, payload)
    if req.create_login_account:
        if not req.email and not req.mobile_number:
            raise ApiError("Email or mobile number is required to create a login account", 400)
        password = clean_str(payload.get("password"))
        if req.use_mobile_as_password and req.mobile_number:
            password = bare_mobile(req.mobile_number)
        if password:
            req.password_hash = generate_password_hash(password)
    s.add(req)
    s.flush()
    log_activity(
        s,
        performed_by=requester,
        action_type="family_member_request_created",
        target_user=requester,
        details={"requestId": req.id, "name": f"{req.first_name} {req.last_name}"},
    )
    return req


def my_requests(s: "Session", user: User) -> list[FamilyMemberRequest]:
    return (
        s.query(FamilyMemberRequest)
        .filter(FamilyMemberRequest.requested_by_id == user.id)
        .order_by(FamilyMemberRequest.created_at.desc())
        .all()
    )


def list_requests(s: "Session", status: str | None, page: int, limit: int):
    q = s.query(FamilyMemberRequest)
    if status:
        q = q.filter(FamilyMemberRequest.status == status)
    return paginate(q.order_by(FamilyMemberRequest.created_at.desc()), page, limit)


def get_pending_request(s: "Session", request_id: int) -> FamilyMemberRequest:
    req = s.get(FamilyMemberRequest, request_id)
    if req is None:
        raise ApiError("Request not found", 404)
    if req.status != "pending":
        raise ApiError(f"Request has already been {req.status}", 400)
    return req


def _request_payload(req: FamilyMemberRequest) -> dict[str, Any]:
    return {
        "relationshipToUser": req.relationship_to_user,
        "firstName": req.first_name,
        "middleName": req.middle_name,
        "lastName": req.last_name,
        "dateOfBirth": req.date_of_birth,
        "age": req.age,
        "bloodGroup": req.blood_group,
        "gender": req.gender,
        "mobileNumber": req.mobile_number,
        "email": req.email,
        "address": req.address,
        "maritalStatus": req.marital_status,
        "occupationType": req.occupation_type,
        "occupationTitle": req.occupation_title,
        "companyOrBusinessName": req.company_or_business_name,
        "qualification": req.qualification,
        "profileImage": req.profile_image,
        "createLoginAccount": req.create_login_account,
    }


def approve_request(s: "Session", req: FamilyMemberRequest, actor: User) -> tuple[FamilyMember, dict[str, Any] | None]:
    primary = (
        s.query(User)
        .filter(
            User.sub_family_number == req.sub_family_number,
            User.is_primary_account.is_(True),
            User.deleted_at.is_(None),
        )
        .first()
    )
    if primary is None:
        raise ApiError("Primary account for this sub-family was not found", 404)

    member, login_info = create_family_member(s, primary, _request_payload(req), actor, password_hash=req.password_hash)
    now = datetime.utcnow()
    req.status = "approved"
    req.reviewed_by_id = actor.id
    req.reviewed_at = now
    req.family_member_id = member.id
    req.updated_at = now
    s.flush()
    log_activity(
        s,
        performed_by=actor,
        action_type="family_member_request_approved",
        target_user=req.requested_by_id,
        target_family_member_id=member.id,
        details={"requestId": req.id, "primaryUserId": primary.id},
    )
    return member, login_info


def reject_request(s: "Session", req: FamilyMemberRequest, actor: User, reason: str | None) -> FamilyMemberRequest:
    now = datetime.utcnow()
    req.status = "rejected"
    req.rejection_reason = clean_str(reason)
    req.reviewed_by_id = actor.id
    req.reviewed_at = now
    req.updated_at = now
    s.flush()
    log_activity(
        s,
        performed_by=actor,
        action_type="family_member_request_rejected",
        target_user=req.requested_by_id,
        details={"requestId": req.id, "reason": req.rejection_reason},
    )
    return req
