from __future__ import annotations

import hashlib
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from werkzeug.security import generate_password_hash

from app.samaj.audit import log_activity
from app.samaj.constants import BLOOD_GROUPS, FAMILY_APPROVAL_THRESHOLD, GENDERS
from app.samaj.errors import ApiError
from app.samaj.models import User
from app.samaj.modules.enums.service import get_enum_values
from app.samaj.modules.family_members.models import FamilyMember
from app.samaj.utils import (
    age_from_dob,
    bare_mobile,
    clean_str,
    format_phone_for_storage,
    is_valid_email,
    is_valid_indian_phone,
    parse_date,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

FALLBACK_PASSWORD = "12345678"

_PROFILE_COLUMNS = {
    "relationshipToUser": "relationship_to_user",
    "firstName": "first_name",
    "middleName": "middle_name",
    "lastName": "last_name",
    "gender": "gender",
    "maritalStatus": "marital_status",
    "occupationType": "occupation_type",
    "occupationTitle": "occupation_title",
    "companyOrBusinessName": "company_or_business_name",
    "qualification": "qualification",
    "profileImage": "profile_image",
}


def validate_family_member_payload(s: "Session", payload: dict, *, partial: bool = False) -> list[str]:
    """Shared by direct adds, edits and requests."""
    errors: list[str] = []
    for field, label in (("firstName", "First name"), ("lastName", "Last name")):
        value = clean_str(payload.get(field))
        if value is None:
            if not partial:
                errors.append(f"{label} is required")
        elif len(value) > 50:
            errors.append(f"{label} cannot exceed 50 characters")

    relation = clean_str(payload.get("relationshipToUser"))
    if relation is None:
        if not partial:
            errors.append("Relationship to user is required")
    elif relation not in get_enum_values(s, "RELATIONSHIP_TYPES"):
        errors.append("Invalid relationship type")

    mobile = clean_str(payload.get("mobileNumber"))
    if mobile and not is_valid_indian_phone(mobile):
        errors.append("Please enter a valid 10-digit Indian mobile number")
    email = clean_str(payload.get("email"))
    if email and not is_valid_email(email):
        errors.append("Please enter a valid email")
    if payload.get("dateOfBirth"):
        try:
            parse_date(payload["dateOfBirth"])
        except ValueError:
            errors.append("Date of birth must be a valid date (YYYY-MM-DD)")
    blood_group = payload.get("bloodGroup")
    if blood_group and blood_group not in BLOOD_GROUPS:
        errors.append(f"bloodGroup must be one of: {', '.join(BLOOD_GROUPS)}")
    gender = payload.get("gender")
    if gender and gender not in GENDERS:
        errors.append(f"gender must be one of: {', '.join(GENDERS)}")
    marital = clean_str(payload.get("maritalStatus"))
    if marital and marital not in get_enum_values(s, "MARITAL_STATUS"):
        errors.append("Invalid marital status")
    password = payload.get("password")
    if password and len(str(password)) < 6:
        errors.append("Password must be at least 6 characters")
    return errors


def apply_profile(record: Any, payload: dict) -> None:
    """Copy camelCase payload fields onto a FamilyMember or FamilyMemberRequest."""
    for key, column in _PROFILE_COLUMNS.items():
        if key in payload:
            setattr(record, column, clean_str(payload.get(key)))
    if "bloodGroup" in payload:
        record.blood_group = clean_str(payload.get("bloodGroup")) or "Unknown"
    if "mobileNumber" in payload:
        record.mobile_number = format_phone_for_storage(payload.get("mobileNumber"))
    if "email" in payload:
        email = clean_str(payload.get("email"))
        record.email = email.lower() if email else None
    if "address" in payload:
        record.address = payload.get("address") if isinstance(payload.get("address"), dict) else None
    if payload.get("dateOfBirth"):
        record.date_of_birth = parse_date(payload["dateOfBirth"])
        record.age = age_from_dob(record.date_of_birth)
    elif payload.get("age") not in (None, ""):
        record.age = int(payload["age"])


def open_member_count(s: "Session", sfn: str) -> int:
    return (
        s.query(FamilyMember)
        .filter(
            FamilyMember.sub_family_number == sfn,
            FamilyMember.approval_status.in_(("approved", "pending")),
            FamilyMember.deleted_at.is_(None),
        )
        .count()
    )


def _login_credentials(member: FamilyMember, password: str | None) -> tuple[str, str, str]:
    """(email, mobile, password) for a generated login account."""
    sfn = member.sub_family_number
    email = member.email
    mobile = member.mobile_number
    if not email:
        email = f"family.{bare_mobile(mobile)}@{sfn}.family.local".lower()
    if not mobile:
        mobile = "+919" + hashlib.md5(email.encode("utf-8")).hexdigest()[:9]
    if not password:
        if member.mobile_number:
            password = bare_mobile(member.mobile_number)
        elif member.email:
            password = member.email.split("@")[0]
        else:
            password = FALLBACK_PASSWORD
    return email, mobile, password


def link_or_create_login(
    s: "Session",
    member: FamilyMember,
    owner: User,
    *,
    password: str | None = None,
    password_hash: str | None = None,
) -> dict[str, Any]:
    """
    Attach a login account to a family-member record: reuse a live user with the
    same mobile or email, else create an approved non-primary account.
    """
    from app.samaj.modules.users.service import default_role, find_live_user

    if not member.email and not member.mobile_number:
        raise ApiError("Email or mobile number is required to create a login account", 400)

    existing = find_live_user(s, email=member.email, mobile=member.mobile_number)
    if existing is not None:
        member.has_user_account = True
        member.linked_user_id = existing.id
        existing.linked_family_member_id = member.id
        s.flush()
        return {"linked": True, "userId": existing.id, "email": existing.email, "mobileNumber": existing.mobile_number}

    email, mobile, plain = _login_credentials(member, password)
    role = default_role(s)
    now = datetime.utcnow()
    account = User(
        first_name=member.first_name,
        middle_name=member.middle_name,
        last_name=member.last_name,
        email=email,
        mobile_number=mobile,
        password_hash=password_hash or generate_password_hash(plain),
        date_of_birth=member.date_of_birth,
        age=member.age,
        blood_group=member.blood_group or "Unknown",
        gender=member.gender,
        marital_status=member.marital_status,
        occupation_type=member.occupation_type,
        occupation_title=member.occupation_title,
        qualification=member.qualification,
        samaj=owner.samaj,
        sub_family_number=member.sub_family_number,
        is_primary_account=False,
        linked_family_member_id=member.id,
        status="approved",
        role="user",
        role_id=role.id if role else None,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    s.add(account)
    s.flush()
    member.has_user_account = True
    member.linked_user_id = account.id
    s.flush()
    logger.info("Login account %s created for family member %s", account.id, member.id)
    return {"linked": False, "userId": account.id, "email": email, "mobileNumber": mobile, "passwordSet": True}


def create_family_member(
    s: "Session",
    owner: User,
    payload: dict,
    actor: User,
    *,
    password_hash: str | None = None,
) -> tuple[FamilyMember, dict[str, Any] | None]:
    """Add a family-member record under `owner`. Returns (member, loginInfo)."""
    sfn = owner.sub_family_number
    if not sfn:
        raise ApiError("Primary account has no sub-family number", 400)
    pending = open_member_count(s, sfn) >= FAMILY_APPROVAL_THRESHOLD
    now = datetime.utcnow()
    member = FamilyMember(
        user_id=owner.id,
        sub_family_number=sfn,
        samaj=clean_str(payload.get("samaj")) or owner.samaj,
        needs_approval=pending,
        approval_status="pending" if pending else "approved",
        approved_by_id=None if pending else actor.id,
        approved_at=None if pending else now,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    apply_profile(member, payload)
    s.add(member)
    s.flush()

    login_info = None
    if payload.get("createLoginAccount"):
        login_info = link_or_create_login(
            s,
            member,
            owner,
            password=clean_str(payload.get("password")),
            password_hash=password_hash,
        )

    owner.family_members_count = owner.family_members_count + 1
    owner.updated_at = now
    s.flush()
    log_activity(
        s,
        performed_by=actor,
        action_type="family_member_added",
        target_user=owner,
        target_family_member_id=member.id,
        details={"approvalStatus": member.approval_status, "loginAccount": bool(login_info)},
    )
    return member, login_info


def get_member_or_404(s: "Session", member_id: int) -> FamilyMember:
    member = s.get(FamilyMember, member_id)
    if member is None or member.deleted_at is not None:
        raise ApiError("Family member not found", 404)
    return member


def update_family_member(s: "Session", member: FamilyMember, payload: dict, actor: User, *, admin: bool = False) -> FamilyMember:
    apply_profile(member, payload)
    if "samaj" in payload:
        member.samaj = clean_str(payload.get("samaj"))
    if admin and "isActive" in payload:
        member.is_active = bool(payload.get("isActive"))
    member.updated_at = datetime.utcnow()
    s.flush()
    if admin:
        log_activity(
            s,
            performed_by=actor,
            action_type="family_member_updated",
            target_user=member.user_id,
            target_family_member_id=member.id,
            details={"fields": sorted(payload)},
        )
    return member


def _decrement_owner(s: "Session", member: FamilyMember) -> None:
    owner = s.get(User, member.user_id)
    if owner is not None:
        owner.family_members_count = max(owner.family_members_count - 1, 0)
        owner.updated_at = datetime.utcnow()


def delete_family_member(s: "Session", member: FamilyMember, actor: User, *, reason: str | None = None, admin: bool = False) -> None:
    now = datetime.utcnow()
    member.is_active = False
    member.deleted_at = now
    member.deleted_by_id = actor.id
    member.delete_type = "soft"
    member.deletion_reason = clean_str(reason)
    member.updated_at = now
    if member.approval_status != "rejected":
        _decrement_owner(s, member)
    s.flush()
    if admin:
        log_activity(
            s,
            performed_by=actor,
            action_type="family_member_deleted",
            target_user=member.user_id,
            target_family_member_id=member.id,
            details={"reason": member.deletion_reason},
        )


def approve_family_member(s: "Session", member: FamilyMember, actor: User) -> FamilyMember:
    member.approval_status = "approved"
    member.needs_approval = False
    member.approved_by_id = actor.id
    member.approved_at = datetime.utcnow()
    member.rejection_reason = None
    member.updated_at = member.approved_at
    s.flush()
    log_activity(
        s,
        performed_by=actor,
        action_type="family_member_approved",
        target_user=member.user_id,
        target_family_member_id=member.id,
    )
    return member


def reject_family_member(s: "Session", member: FamilyMember, actor: User, reason: str | None) -> FamilyMember:
    was_counted = member.approval_status != "rejected"
    member.approval_status = "rejected"
    member.needs_approval = False
    member.rejection_reason = clean_str(reason)
    member.updated_at = datetime.utcnow()
    if was_counted:
        _decrement_owner(s, member)
    s.flush()
    log_activity(
        s,
        performed_by=actor,
        action_type="family_member_rejected",
        target_user=member.user_id,
        target_family_member_id=member.id,
        details={"reason": member.rejection_reason},
    )
    return member


def my_family_members(s: "Session", user: User) -> list[FamilyMember]:
    return (
        s.query(FamilyMember)
        .filter(FamilyMember.user_id == user.id, FamilyMember.is_active.is_(True), FamilyMember.deleted_at.is_(None))
        .order_by(FamilyMember.created_at.asc())
        .all()
    )


def pending_family_members(s: "Session") -> list[FamilyMember]:
    return (
        s.query(FamilyMember)
        .filter(FamilyMember.approval_status == "pending", FamilyMember.deleted_at.is_(None))
        .order_by(FamilyMember.created_at.asc())
        .all()
    )


def sub_family_members(s: "Session", sfn: str) -> list[FamilyMember]:
    return (
        s.query(FamilyMember)
        .filter(
            FamilyMember.sub_family_number == sfn,
            FamilyMember.approval_status == "approved",
            FamilyMember.is_active.is_(True),
            FamilyMember.deleted_at.is_(None),
        )
        .order_by(FamilyMember.first_name.asc())
        .all()
    )
