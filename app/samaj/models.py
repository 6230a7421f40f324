from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from app.samaj.permissions import ALL_PERMISSIONS
from app.samaj.utils import iso


class Base(DeclarativeBase):
    pass


class RolePermission(Base):
    __tablename__ = "role_permissions"
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    permission_id: Mapped[int] = mapped_column(ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True)


class Permission(Base):
    __tablename__ = "permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)  # e.g. "canViewUsers"
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    roles: Mapped[list["Role"]] = relationship(secondary="role_permissions", back_populates="permissions", lazy="selectin")


class Role(Base):
    __tablename__ = "roles"
    __table_args__ = (Index("idx_roles_active", "is_active"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # roleKey, e.g. "admin"
    name: Mapped[str] = mapped_column(String(64), nullable=False)  # roleName (display)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_system_role: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    permissions: Mapped[list[Permission]] = relationship(
        secondary="role_permissions",
        back_populates="roles",
        lazy="selectin",
    )

    def enabled_permissions(self) -> list[str]:
        keys = {p.key for p in self.permissions}
        return [k for k in ALL_PERMISSIONS if k in keys]

    def permission_map(self) -> dict[str, bool]:
        keys = {p.key for p in self.permissions}
        return {k: k in keys for k in ALL_PERMISSIONS}

    def to_dict(self, include_permissions: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "roleName": self.name,
            "roleKey": self.key,
            "description": self.description or "",
            "isSystemRole": self.is_system_role,
            "isActive": self.is_active,
            "createdBy": self.created_by_user_id,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
        if include_permissions:
            data["permissions"] = self.permission_map()
        return data


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_email", "email"),
        Index("idx_users_mobile", "mobile_number"),
        Index("idx_users_status", "status"),
        Index("idx_users_sub_family", "sub_family_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Identity
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    middle_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    # Uniqueness only applies among live accounts (see users.service.find_live_duplicate)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    mobile_number: Mapped[str] = mapped_column(String(16), nullable=False)  # +91XXXXXXXXXX
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Address
    address_line1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address_line2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    state: Mapped[str | None] = mapped_column(String(128), nullable=True)
    country: Mapped[str] = mapped_column(String(128), nullable=False, default="India")
    pincode: Mapped[str | None] = mapped_column(String(6), nullable=True)

    # Profile
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    blood_group: Mapped[str] = mapped_column(String(8), nullable=False, default="Unknown")
    gender: Mapped[str | None] = mapped_column(String(16), nullable=True)
    emergency_contact: Mapped[dict | None] = mapped_column(JSON, nullable=True)  # {name, phone, relation}
    occupation_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    occupation_title: Mapped[str | None] = mapped_column(String(128), nullable=True)
    company_or_business_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    position: Mapped[str | None] = mapped_column(String(128), nullable=True)
    qualification: Mapped[str | None] = mapped_column(String(100), nullable=True)
    marital_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    profile_image: Mapped[str | None] = mapped_column(String(512), nullable=True)
    samaj: Mapped[str | None] = mapped_column(String(128), nullable=True)
    profile_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Family
    sub_family_number: Mapped[str | None] = mapped_column(String(30), nullable=True)
    is_primary_account: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    family_members_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    linked_family_member_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Primary transfer (head of the transfer chain; see PrimaryAccountTransfer)
    transferred_from_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    transferred_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    transferred_by_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    transfer_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    last_transfer_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Approval + role
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="user")
    role_id: Mapped[int | None] = mapped_column(ForeignKey("roles.id", ondelete="SET NULL"), nullable=True)
    committee_position: Mapped[str | None] = mapped_column(String(64), nullable=True)
    committee_display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    committee_bio: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Password reset (sha256 of the emailed token)
    password_reset_token: Mapped[str | None] = mapped_column(String(64), nullable=True)
    password_reset_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    # Lifecycle
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    deleted_by_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    delete_type: Mapped[str | None] = mapped_column(String(8), nullable=True)
    deletion_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    role_ref: Mapped[Role | None] = relationship("Role", lazy="joined")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "profileImage": self.profile_image,
        }

    def to_dict(self, include_role: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "firstName": self.first_name,
            "middleName": self.middle_name,
            "lastName": self.last_name,
            "email": self.email,
            "mobileNumber": self.mobile_number,
            "address": {
                "line1": self.address_line1,
                "line2": self.address_line2,
                "city": self.city,
                "state": self.state,
                "country": self.country,
                "pincode": self.pincode,
            },
            "age": self.age,
            "dateOfBirth": iso(self.date_of_birth),
            "bloodGroup": self.blood_group,
            "gender": self.gender,
            "emergencyContact": self.emergency_contact,
            "occupationType": self.occupation_type,
            "occupationTitle": self.occupation_title,
            "companyOrBusinessName": self.company_or_business_name,
            "position": self.position,
            "qualification": self.qualification,
            "maritalStatus": self.marital_status,
            "profileImage": self.profile_image,
            "samaj": self.samaj,
            "profileCompleted": self.profile_completed,
            "subFamilyNumber": self.sub_family_number,
            "isPrimaryAccount": self.is_primary_account,
            "familyMembersCount": self.family_members_count,
            "linkedFamilyMemberId": self.linked_family_member_id,
            "transferredFrom": self.transferred_from_id,
            "transferredAt": iso(self.transferred_at),
            "transferredBy": self.transferred_by_id,
            "transferReason": self.transfer_reason,
            "status": self.status,
            "role": self.role,
            "committeePosition": self.committee_position,
            "committeeDisplayOrder": self.committee_display_order,
            "committeeBio": self.committee_bio,
            "isActive": self.is_active,
            "deletedAt": iso(self.deleted_at),
            "deletedBy": self.deleted_by_id,
            "deleteType": self.delete_type,
            "deletionReason": self.deletion_reason,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
        if include_role:
            data["roleRef"] = self.role_ref.to_dict() if self.role_ref else None
        return data


class PrimaryAccountTransfer(Base):
    """
    One hop in a sub-family's primary-account history.
    Records form a singly linked list through previous_transfer_id; a user's
    history is the chain ending at users.last_transfer_id.
    """

    __tablename__ = "primary_account_transfers"
    __table_args__ = (Index("idx_transfers_sub_family", "sub_family_number"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    previous_transfer_id: Mapped[int | None] = mapped_column(
        ForeignKey("primary_account_transfers.id", ondelete="SET NULL"), nullable=True
    )
    sub_family_number: Mapped[str | None] = mapped_column(String(30), nullable=True)

    from_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    from_user_name: Mapped[str] = mapped_column(String(128), nullable=False)
    to_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    to_user_name: Mapped[str] = mapped_column(String(128), nullable=False)
    transferred_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    transferred_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    family_members_migrated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fromUserId": self.from_user_id,
            "fromUserName": self.from_user_name,
            "toUserId": self.to_user_id,
            "toUserName": self.to_user_name,
            "transferredBy": self.transferred_by_id,
            "transferredAt": iso(self.transferred_at),
            "reason": self.reason,
            "familyMembersMigrated": self.family_members_migrated,
        }


class ActivityLog(Base):
    """
    Append-only administrative activity trail.
    """

    __tablename__ = "activity_logs"
    __table_args__ = (
        Index("idx_activity_logs_created", "created_at"),
        Index("idx_activity_logs_action", "action_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    performed_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action_type: Mapped[str] = mapped_column(String(64), nullable=False)  # e.g. "user_approved"
    target_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    target_family_member_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    details_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # small JSON string
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)

    performed_by: Mapped[User | None] = relationship("User", foreign_keys=[performed_by_id], lazy="joined")
    target_user: Mapped[User | None] = relationship("User", foreign_keys=[target_user_id], lazy="joined")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "actionType": self.action_type,
            "performedBy": {**self.performed_by.summary(), "role": self.performed_by.role} if self.performed_by else None,
            "targetUser": self.target_user.summary() if self.target_user else None,
            "targetFamilyMember": self.target_family_member_id,
            "details": json.loads(self.details_json) if self.details_json else {},
            "description": self.description,
            "ipAddress": self.ip_address,
            "requestId": self.request_id,
            "createdAt": iso(self.created_at),
        }


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.samaj.modules.family_members.models import FamilyMember  # noqa: E402,F401
from app.samaj.modules.family_member_requests.models import FamilyMemberRequest  # noqa: E402,F401
from app.samaj.modules.enums.models import EnumList  # noqa: E402,F401
from app.samaj.modules.events.models import Event, EventMedia, EventRsvp  # noqa: E402,F401
from app.samaj.modules.polls.models import Poll, PollOption, PollVote  # noqa: E402,F401
from app.samaj.modules.comments.models import Comment, CommentFlag, CommentLike  # noqa: E402,F401
from app.samaj.modules.relationships.models import UserRelationship  # noqa: E402,F401
