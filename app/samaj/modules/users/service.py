"""
User lifecycle: registration, profile edits, passwords, approval, role changes,
activation and deletion.
"""
from __future__ import annotations

import hashlib
import logging
import re
import secrets
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_
from werkzeug.security import check_password_hash, generate_password_hash

from app.samaj.audit import log_activity
from app.samaj.constants import BLOOD_GROUPS, DELETED_USER_LABEL, GENDERS
from app.samaj.errors import ApiError
from app.samaj.models import Role, User
from app.samaj.modules.enums.service import get_enum_values
from app.samaj.utils import (
    age_from_dob,
    as_int,
    bare_mobile,
    clean_str,
    format_phone_for_storage,
    generate_sub_family_number,
    is_strong_password,
    is_valid_email,
    is_valid_pincode,
    parse_date,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_REGISTER_MOBILE_RE = re.compile(r"^(\+91)?[6-9]\d{9}$")
RESET_TOKEN_TTL = timedelta(hours=1)

ADDRESS_FIELDS = {
    "line1": "address_line1",
    "line2": "address_line2",
    "city": "city",
    "state": "state",
    "country": "country",
    "pincode": "pincode",
}


# ---------- Lookups ----------
def get_user_or_404(s: "Session", user_id: int, *, include_deleted: bool = True) -> User:
    user = s.get(User, user_id)
    if user is None or (not include_deleted and user.is_deleted):
        raise ApiError("User not found", 404)
    return user


def _live_users(s: "Session"):
    return s.query(User).filter(
        User.status.in_(("pending", "approved")),
        User.is_active.is_(True),
        User.deleted_at.is_(None),
    )


def find_live_duplicate(s: "Session", *, email: str | None, mobile: str | None, exclude_id: int | None = None) -> str | None:
    """
    Email and mobile are unique only among pending/approved, active, non-deleted
    accounts. Returns "email", "mobile" or None.
    """
    if email:
        q = _live_users(s).filter(func.lower(User.email) == email.lower())
        if exclude_id is not None:
            q = q.filter(User.id != exclude_id)
        if s.query(q.exists()).scalar():
            return "email"
    if mobile:
        q = _live_users(s).filter(User.mobile_number == mobile)
        if exclude_id is not None:
            q = q.filter(User.id != exclude_id)
        if s.query(q.exists()).scalar():
            return "mobile"
    return None


def find_live_user(s: "Session", *, email: str | None = None, mobile: str | None = None) -> User | None:
    q = s.query(User).filter(User.is_active.is_(True), User.deleted_at.is_(None))
    clauses = []
    if email:
        clauses.append(func.lower(User.email) == email.lower())
    if mobile:
        clauses.append(User.mobile_number == mobile)
    if not clauses:
        return None
    return q.filter(or_(*clauses)).order_by(User.id.asc()).first()


def default_role(s: "Session") -> Role | None:
    return s.query(Role).filter(Role.key == "user").one_or_none()


# ---------- Registration ----------
def _check_enum(s: "Session", errors: list[str], payload: dict, field: str, enum_type: str, *, required: bool) -> None:
    value = clean_str(payload.get(field))
    if value is None:
        if required:
            errors.append(f"{field} is required")
        return
    allowed = get_enum_values(s, enum_type)
    if value not in allowed:
        errors.append(f"{field} must be one of: {', '.join(allowed)}")


def _check_name(errors: list[str], payload: dict, field: str, label: str, *, required: bool) -> None:
    raw = payload.get(field)
    if raw is not None and not isinstance(raw, str):
        errors.append(f"{label} must be text")
        return
    value = clean_str(raw)
    if value is None:
        if required:
            errors.append(f"{label} is required")
        return
    if required and len(value) < 2:
        errors.append(f"{label} must be at least 2 characters")
    if len(value) > 50:
        errors.append(f"{label} cannot exceed 50 characters")


def _check_dob_and_age(errors: list[str], payload: dict) -> None:
    if payload.get("age") not in (None, ""):
        try:
            age = int(payload["age"])
        except (TypeError, ValueError):
            errors.append("Age must be a number")
        else:
            if not 0 <= age <= 120:
                errors.append("Age must be between 0 and 120")
    if payload.get("dateOfBirth"):
        try:
            dob = parse_date(payload["dateOfBirth"])
        except ValueError:
            errors.append("Date of birth must be a valid date (YYYY-MM-DD)")
        else:
            if dob and dob > date.today():
                errors.append("Date of birth cannot be in the future")


def _check_address(errors: list[str], address: Any, *, required: bool) -> None:
    if not isinstance(address, dict):
        if required:
            errors.append("Address is required")
        return
    if required:
        for key, label in (("line1", "Address line 1"), ("city", "City"), ("state", "State")):
            if not clean_str(address.get(key)):
                errors.append(f"{label} is required")
    pincode = clean_str(address.get("pincode"))
    if pincode is None:
        if required:
            errors.append("Pincode is required")
    elif not is_valid_pincode(pincode):
        errors.append("Pincode must be 6 digits")


def validate_registration_payload(s: "Session", payload: dict) -> list[str]:
    errors: list[str] = []
    _check_name(errors, payload, "firstName", "First name", required=True)
    _check_name(errors, payload, "lastName", "Last name", required=True)
    _check_name(errors, payload, "middleName", "Middle name", required=False)
    _check_address(errors, payload.get("address"), required=True)

    mobile = re.sub(r"\s", "", str(payload.get("mobileNumber") or ""))
    if not mobile:
        errors.append("Mobile number is required")
    elif not _REGISTER_MOBILE_RE.match(mobile):
        errors.append("Please enter a valid 10-digit Indian mobile number")

    email = clean_str(payload.get("email"))
    if not email:
        errors.append("Email is required")
    elif not is_valid_email(email):
        errors.append("Please enter a valid email")

    _check_enum(s, errors, payload, "occupationType", "OCCUPATION_TYPES", required=True)
    _check_enum(s, errors, payload, "maritalStatus", "MARITAL_STATUS", required=True)
    _check_enum(s, errors, payload, "samaj", "SAMAJ_TYPES", required=True)
    _check_dob_and_age(errors, payload)

    password = payload.get("password")
    if password and len(str(password)) < 8:
        errors.append("Password must be at least 8 characters")
    return errors


def _apply_address(user: User, address: Any) -> None:
    if not isinstance(address, dict):
        return
    for key, column in ADDRESS_FIELDS.items():
        if key in address:
            value = clean_str(address.get(key))
            if column == "country" and value is None:
                value = "India"
            setattr(user, column, value)


def register_user(s: "Session", payload: dict) -> User:
    email = clean_str(payload.get("email")).lower()
    mobile = format_phone_for_storage(payload["mobileNumber"])
    dup = find_live_duplicate(s, email=email, mobile=mobile)
    if dup == "email":
        raise ApiError(f"Email {email} is already registered. Please use a different email.", 409)
    if dup == "mobile":
        raise ApiError(f"Mobile number {mobile} is already registered. Please use a different mobile number.", 409)

    dob = parse_date(payload.get("dateOfBirth"))
    now = datetime.utcnow()
    role = default_role(s)
    user = User(
        first_name=clean_str(payload.get("firstName")),
        middle_name=clean_str(payload.get("middleName")),
        last_name=clean_str(payload.get("lastName")),
        email=email,
        mobile_number=mobile,
        password_hash=generate_password_hash(payload.get("password") or bare_mobile(mobile)),
        date_of_birth=dob,
        age=age_from_dob(dob) if dob else as_int(payload.get("age")),
        occupation_type=clean_str(payload.get("occupationType")),
        occupation_title=clean_str(payload.get("occupationTitle")),
        company_or_business_name=clean_str(payload.get("companyOrBusinessName")),
        position=clean_str(payload.get("position")),
        qualification=clean_str(payload.get("qualification")),
        marital_status=clean_str(payload.get("maritalStatus")),
        samaj=clean_str(payload.get("samaj")),
        profile_image=clean_str(payload.get("profileImage")),
        sub_family_number=clean_str(payload.get("subFamilyNumber")) or generate_sub_family_number(),
        is_primary_account=True,
        status="pending",
        role="user",
        role_id=role.id if role else None,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    _apply_address(user, payload.get("address"))
    s.add(user)
    s.flush()
    logger.info("User registered id=%s sub_family=%s", user.id, user.sub_family_number)
    return user


# ---------- Authentication helpers ----------
def authenticate(s: "Session", email_or_mobile: str, password: str) -> User:
    """Resolve login credentials or raise the matching ApiError."""
    value = (email_or_mobile or "").strip()
    q = s.query(User).filter(User.deleted_at.is_(None))
    if "@" in value:
        q = q.filter(func.lower(User.email) == value.lower())
    else:
        q = q.filter(User.mobile_number == format_phone_for_storage(value))
    candidates = q.order_by(User.is_active.desc(), User.id.desc()).all()
    user = next((u for u in candidates if u.is_active), None)
    if user is None:
        if candidates:
            raise ApiError("Your account has been deactivated", 403)
        raise ApiError("Invalid email/mobile or password", 401)
    if user.status != "approved":
        raise ApiError("Your account is pending approval. Please wait for admin approval.", 403)
    if not check_password_hash(user.password_hash, password):
        raise ApiError("Invalid email/mobile or password", 401)
    return user


def needs_password_change(user: User, password: str) -> bool:
    """True while the account still uses its default password."""
    if user.mobile_number:
        return password == bare_mobile(user.mobile_number)
    if user.email:
        return password == user.email.split("@")[0]
    return False


def issue_reset_token(s: "Session", email: str) -> str:
    user = (
        s.query(User)
        .filter(func.lower(User.email) == (email or "").strip().lower(), User.deleted_at.is_(None))
        .order_by(User.id.desc())
        .first()
    )
    if user is None:
        raise ApiError("User not found with this email", 404)
    token = secrets.token_hex(20)
    user.password_reset_token = hashlib.sha256(token.encode("utf-8")).hexdigest()
    user.password_reset_expires = datetime.utcnow() + RESET_TOKEN_TTL
    s.flush()
    return token


def reset_password(s: "Session", token: str, password: str) -> User:
    if not password or len(password) < 8:
        raise ApiError("Password must be at least 8 characters", 400)
    digest = hashlib.sha256((token or "").encode("utf-8")).hexdigest()
    user = (
        s.query(User)
        .filter(User.password_reset_token == digest, User.password_reset_expires > datetime.utcnow())
        .one_or_none()
    )
    if user is None:
        raise ApiError("Password reset token is invalid or has expired", 400)
    user.password_hash = generate_password_hash(password)
    user.password_reset_token = None
    user.password_reset_expires = None
    user.updated_at = datetime.utcnow()
    s.flush()
    log_activity(s, performed_by=user, action_type="password_reset", target_user=user)
    return user


def change_password(s: "Session", user: User, current_password: str, new_password: str) -> None:
    if not current_password or not new_password:
        raise ApiError("Current password and new password are required", 400)
    if not is_strong_password(new_password):
        raise ApiError("New password must be at least 8 characters and contain a letter and a number", 400)
    if not check_password_hash(user.password_hash, current_password):
        raise ApiError("Current password is incorrect", 401)
    user.password_hash = generate_password_hash(new_password)
    user.updated_at = datetime.utcnow()
    s.flush()
    log_activity(s, performed_by=user, action_type="password_changed", target_user=user)


# ---------- Profile ----------
def validate_profile_payload(s: "Session", payload: dict) -> list[str]:
    errors: list[str] = []
    if "address" in payload:
        _check_address(errors, payload.get("address"), required=False)
    _check_dob_and_age(errors, payload)
    if payload.get("maritalStatus"):
        _check_enum(s, errors, payload, "maritalStatus", "MARITAL_STATUS", required=False)
    if payload.get("occupationType"):
        _check_enum(s, errors, payload, "occupationType", "OCCUPATION_TYPES", required=False)
    if payload.get("samaj"):
        _check_enum(s, errors, payload, "samaj", "SAMAJ_TYPES", required=False)
    blood_group = payload.get("bloodGroup")
    if blood_group and blood_group not in BLOOD_GROUPS:
        errors.append(f"bloodGroup must be one of: {', '.join(BLOOD_GROUPS)}")
    gender = payload.get("gender")
    if gender and gender not in GENDERS:
        errors.append(f"gender must be one of: {', '.join(GENDERS)}")
    contact = payload.get("emergencyContact")
    if contact is not None and not isinstance(contact, dict):
        errors.append("emergencyContact must be an object")
    return errors


_ME_FIELDS = {
    "occupationTitle": "occupation_title",
    "companyOrBusinessName": "company_or_business_name",
    "position": "position",
    "qualification": "qualification",
    "maritalStatus": "marital_status",
    "subFamilyNumber": "sub_family_number",
}

_PROFILE_FIELDS = {
    "occupationType": "occupation_type",
    "occupationTitle": "occupation_title",
    "companyOrBusinessName": "company_or_business_name",
    "qualification": "qualification",
    "maritalStatus": "marital_status",
    "samaj": "samaj",
    "bloodGroup": "blood_group",
    "gender": "gender",
}


def _apply_dob_and_age(user: User, payload: dict) -> None:
    if payload.get("dateOfBirth"):
        user.date_of_birth = parse_date(payload["dateOfBirth"])
        user.age = age_from_dob(user.date_of_birth)
    elif payload.get("age") not in (None, ""):
        user.age = int(payload["age"])


def update_me(s: "Session", user: User, payload: dict) -> User:
    _apply_address(user, payload.get("address"))
    _apply_dob_and_age(user, payload)
    for key, column in _ME_FIELDS.items():
        if key in payload:
            setattr(user, column, clean_str(payload.get(key)))
    if "profileImage" in payload:
        # null removes the image
        user.profile_image = clean_str(payload.get("profileImage"))
    user.updated_at = datetime.utcnow()
    s.flush()
    log_activity(s, performed_by=user, action_type="profile_updated", target_user=user, details={"fields": sorted(payload)})
    return user


def complete_profile(s: "Session", user: User, payload: dict) -> User:
    _apply_address(user, payload.get("address"))
    _apply_dob_and_age(user, payload)
    for key, column in _PROFILE_FIELDS.items():
        if key in payload:
            value = clean_str(payload.get(key))
            if column == "blood_group" and value is None:
                value = "Unknown"
            setattr(user, column, value)
    if "emergencyContact" in payload:
        user.emergency_contact = payload.get("emergencyContact") or None
    user.profile_completed = True
    user.updated_at = datetime.utcnow()
    s.flush()
    log_activity(s, performed_by=user, action_type="profile_completed", target_user=user)
    return user


# ---------- Approval / role ----------
def next_pending_user(s: "Session") -> User | None:
    return (
        s.query(User)
        .filter(User.status == "pending", User.is_active.is_(True), User.deleted_at.is_(None))
        .order_by(User.created_at.asc(), User.id.asc())
        .first()
    )


def set_status(s: "Session", target: User, status: str, actor: User, *, reason: str | None = None) -> User:
    """Approve or reject. Allowed from any state; repeating is harmless."""
    old = target.status
    target.status = status
    target.updated_at = datetime.utcnow()
    s.flush()
    details: dict[str, Any] = {"oldStatus": old, "newStatus": status}
    if reason:
        details["reason"] = reason
    log_activity(
        s,
        performed_by=actor,
        action_type="user_approved" if status == "approved" else "user_rejected",
        target_user=target,
        details=details,
    )
    return target


def update_role_and_status(s: "Session", target: User, payload: dict, actor: User) -> User:
    from app.samaj.modules.roles.service import get_role_by_key

    new_role = clean_str(payload.get("role") or payload.get("newRole"))
    new_status = clean_str(payload.get("status"))
    if not new_role and not new_status:
        raise ApiError("Please provide role or status to update", 400)

    if new_status:
        allowed = get_enum_values(s, "USER_STATUS")
        if new_status not in allowed:
            raise ApiError(f"Invalid status. Must be one of: {', '.join(allowed)}", 400)
        set_status(s, target, new_status, actor)

    if new_role:
        allowed = get_enum_values(s, "USER_ROLES")
        if new_role not in allowed:
            raise ApiError(f"Invalid role. Must be one of: {', '.join(allowed)}", 400)
        old_role = target.role
        if new_role == "committee":
            position = clean_str(payload.get("committeePosition"))
            if not position:
                raise ApiError("Committee position is required when assigning the committee role", 400)
            target.committee_position = position
            if payload.get("committeeDisplayOrder") not in (None, ""):
                target.committee_display_order = int(payload["committeeDisplayOrder"])
            if "committeeBio" in payload:
                target.committee_bio = clean_str(payload.get("committeeBio"))
        else:
            target.committee_position = None
            target.committee_display_order = 0
            target.committee_bio = None
        target.role = new_role
        role_row = get_role_by_key(s, new_role)
        if role_row is not None and role_row.is_active:
            target.role_id = role_row.id
            target.role_ref = role_row
        target.updated_at = datetime.utcnow()
        s.flush()
        log_activity(
            s,
            performed_by=actor,
            action_type="committee_assigned" if new_role == "committee" else "role_changed",
            target_user=target,
            details={"oldRole": old_role, "newRole": new_role, "committeePosition": target.committee_position},
        )
    return target


def bulk_set_status(s: "Session", user_ids: Any, status: str, actor: User) -> int:
    if not isinstance(user_ids, list) or not user_ids:
        raise ApiError("Please provide an array of user IDs", 400)
    ids = [int(i) for i in user_ids]
    targets = s.query(User).filter(User.id.in_(ids), User.deleted_at.is_(None)).all()
    now = datetime.utcnow()
    modified = 0
    for t in targets:
        if t.status != status:
            t.status = status
            t.updated_at = now
            modified += 1
    s.flush()
    log_activity(
        s,
        performed_by=actor,
        action_type="users_bulk_approved" if status == "approved" else "users_bulk_rejected",
        details={"userIds": ids, "modifiedCount": modified},
    )
    return modified


def toggle_active(s: "Session", target: User, actor: User) -> User:
    target.is_active = not target.is_active
    target.updated_at = datetime.utcnow()
    s.flush()
    log_activity(
        s,
        performed_by=actor,
        action_type="user_activated" if target.is_active else "user_deactivated",
        target_user=target,
    )
    return target


# ---------- Deletion ----------
def soft_delete_user(s: "Session", target: User, actor: User, reason: str | None) -> User:
    if target.id == actor.id:
        raise ApiError("You cannot delete your own account", 400)
    if target.is_deleted:
        raise ApiError("User is already deleted", 400)
    now = datetime.utcnow()
    target.is_active = False
    target.deleted_at = now
    target.deleted_by_id = actor.id
    target.delete_type = "soft"
    target.deletion_reason = clean_str(reason)
    target.updated_at = now
    s.flush()
    log_activity(
        s,
        performed_by=actor,
        action_type="user_soft_deleted",
        target_user=target,
        details={"reason": target.deletion_reason},
    )
    return target


def restore_user(s: "Session", target: User, actor: User) -> User:
    if not target.is_deleted or target.delete_type != "soft":
        raise ApiError("User is not soft-deleted", 400)
    target.deleted_at = None
    target.deleted_by_id = None
    target.delete_type = None
    target.deletion_reason = None
    target.is_active = True
    target.updated_at = datetime.utcnow()
    s.flush()
    log_activity(s, performed_by=actor, action_type="user_restored", target_user=target)
    return target


def count_dependencies(s: "Session", target: User) -> dict[str, int]:
    from app.samaj.modules.comments.models import Comment
    from app.samaj.modules.family_members.models import FamilyMember
    from app.samaj.modules.relationships.models import UserRelationship

    deps = {
        "familyMembers": s.query(FamilyMember).filter(FamilyMember.user_id == target.id).count(),
        "comments": s.query(Comment).filter(Comment.user_id == target.id).count(),
        "relationships": s.query(UserRelationship)
        .filter(or_(UserRelationship.user1_id == target.id, UserRelationship.user2_id == target.id))
        .count(),
        "familyAccounts": 0,
    }
    if target.is_primary_account and target.sub_family_number:
        deps["familyAccounts"] = (
            s.query(User)
            .filter(
                User.sub_family_number == target.sub_family_number,
                User.id != target.id,
                User.is_primary_account.is_(False),
            )
            .count()
        )
    return deps


def hard_delete_user(s: "Session", target: User, actor: User, reason: str | None, delete_dependent_data: bool) -> dict[str, int]:
    from app.samaj.modules.comments.models import Comment
    from app.samaj.modules.family_members.models import FamilyMember
    from app.samaj.modules.relationships.models import UserRelationship

    if target.id == actor.id:
        raise ApiError("You cannot delete your own account", 400)
    deps = count_dependencies(s, target)
    if any(deps.values()) and not delete_dependent_data:
        raise ApiError(
            "User has dependent data. Pass deleteDependentData=true to remove it.",
            400,
            dependencies=deps,
        )

    snapshot = {"email": target.email, "name": f"{target.first_name} {target.last_name}", "reason": clean_str(reason)}
    s.query(FamilyMember).filter(FamilyMember.user_id == target.id).delete(synchronize_session=False)
    if deps["familyAccounts"]:
        s.query(User).filter(
            User.sub_family_number == target.sub_family_number,
            User.id != target.id,
            User.is_primary_account.is_(False),
        ).delete(synchronize_session=False)
    s.query(UserRelationship).filter(
        or_(UserRelationship.user1_id == target.id, UserRelationship.user2_id == target.id)
    ).delete(synchronize_session=False)
    s.query(Comment).filter(Comment.user_id == target.id).update(
        {Comment.user_id: None, Comment.author_label: DELETED_USER_LABEL}, synchronize_session=False
    )
    target_id = target.id
    s.delete(target)
    s.flush()
    s.expire_all()
    log_activity(
        s,
        performed_by=actor,
        action_type="user_hard_deleted",
        details={"deletedUserId": target_id, **snapshot, "dependencies": deps},
        description=f"Permanently deleted user {snapshot['name']}",
    )
    return deps


def profile_image_key(user: User, filename: str, content_type: str | None) -> str:
    from app.samaj.storage import build_media_key

    return build_media_key(f"profiles/{user.id}", filename, content_type)
