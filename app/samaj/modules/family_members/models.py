from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.samaj.models import Base, User
from app.samaj.utils import iso


class PersonProfileMixin:
    """Columns shared by family members and pending family-member requests."""

    sub_family_number: Mapped[str] = mapped_column(String(30), nullable=False)
    relationship_to_user: Mapped[str] = mapped_column(String(32), nullable=False)

    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    middle_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    blood_group: Mapped[str] = mapped_column(String(8), nullable=False, default="Unknown")
    gender: Mapped[str | None] = mapped_column(String(16), nullable=True)
    mobile_number: Mapped[str | None] = mapped_column(String(16), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    address: Mapped[dict | None] = mapped_column(JSON, nullable=True)  # {line1, line2, city, state, country, pincode}

    marital_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    occupation_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    occupation_title: Mapped[str | None] = mapped_column(String(128), nullable=True)
    company_or_business_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    qualification: Mapped[str | None] = mapped_column(String(100), nullable=True)
    profile_image: Mapped[str | None] = mapped_column(String(512), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def profile_dict(self) -> dict[str, Any]:
        return {
            "subFamilyNumber": self.sub_family_number,
            "relationshipToUser": self.relationship_to_user,
            "firstName": self.first_name,
            "middleName": self.middle_name,
            "lastName": self.last_name,
            "dateOfBirth": iso(self.date_of_birth),
            "age": self.age,
            "bloodGroup": self.blood_group,
            "gender": self.gender,
            "mobileNumber": self.mobile_number,
            "email": self.email,
            "address": self.address,
            "maritalStatus": self.marital_status,
            "occupationType": self.occupation_type,
            "occupationTitle": self.occupation_title,
            "companyOrBusinessName": self.company_or_business_name,
            "qualification": self.qualification,
            "profileImage": self.profile_image,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class FamilyMember(PersonProfileMixin, Base):
    __tablename__ = "family_members"
    __table_args__ = (
        Index("idx_family_members_owner_status", "user_id", "approval_status"),
        Index("idx_family_members_sub_family", "sub_family_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Owning (primary) account
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    samaj: Mapped[str | None] = mapped_column(String(128), nullable=True)

    needs_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approval_status: Mapped[str] = mapped_column(String(16), nullable=False, default="approved")
    approved_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    has_user_account: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    linked_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    deleted_by_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    delete_type: Mapped[str | None] = mapped_column(String(8), nullable=True)
    deletion_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    owner: Mapped[User] = relationship("User", foreign_keys=[user_id], lazy="joined")

    def to_dict(self) -> dict[str, Any]:
        data = self.profile_dict()
        data.update(
            {
                "id": self.id,
                "userId": self.user_id,
                "owner": self.owner.summary() if self.owner else None,
                "samaj": self.samaj,
                "needsApproval": self.needs_approval,
                "approvalStatus": self.approval_status,
                "approvedBy": self.approved_by_id,
                "approvedAt": iso(self.approved_at),
                "rejectionReason": self.rejection_reason,
                "isActive": self.is_active,
                "hasUserAccount": self.has_user_account,
                "linkedUserId": self.linked_user_id,
                "deletedAt": iso(self.deleted_at),
                "deleteType": self.delete_type,
            }
        )
        return data
