from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.samaj.models import Base, User
from app.samaj.modules.family_members.models import PersonProfileMixin
from app.samaj.utils import iso


class FamilyMemberRequest(PersonProfileMixin, Base):
    """A non-primary member's request to add someone to the family, reviewed by an admin."""

    __tablename__ = "family_member_requests"
    __table_args__ = (Index("idx_fm_requests_status", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    requested_by_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    create_login_account: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Hashed; the plaintext never touches the table.
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    use_mobile_as_password: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    request_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    reviewed_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    family_member_id: Mapped[int | None] = mapped_column(ForeignKey("family_members.id", ondelete="SET NULL"), nullable=True)

    requested_by: Mapped[User] = relationship("User", foreign_keys=[requested_by_id], lazy="joined")
    reviewed_by: Mapped[User | None] = relationship("User", foreign_keys=[reviewed_by_id], lazy="joined")

    def to_dict(self) -> dict[str, Any]:
        data = self.profile_dict()
        data.update(
            {
                "id": self.id,
                "requestedBy": self.requested_by.summary() | {"mobileNumber": self.requested_by.mobile_number}
                if self.requested_by
                else None,
                "createLoginAccount": self.create_login_account,
                "useMobileAsPassword": self.use_mobile_as_password,
                "requestReason": self.request_reason,
                "status": self.status,
                "reviewedBy": self.reviewed_by.summary() if self.reviewed_by else None,
                "reviewedAt": iso(self.reviewed_at),
                "rejectionReason": self.rejection_reason,
                "familyMemberId": self.family_member_id,
            }
        )
        return data
