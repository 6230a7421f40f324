from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.samaj.models import Base, User
from app.samaj.utils import iso


class UserRelationship(Base):
    """
    A declared relationship between two accounts.
    One row per unordered pair; the service looks pairs up in both directions.
    """

    __tablename__ = "user_relationships"
    __table_args__ = (
        Index("idx_user_relationships_pair", "user1_id", "user2_id"),
        Index("idx_user_relationships_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user1_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user2_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    relationship_type: Mapped[str] = mapped_column(String(32), nullable=False)
    relationship_from: Mapped[str] = mapped_column(String(32), nullable=False, default="user1_to_user2")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    requested_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    user1: Mapped[User] = relationship("User", foreign_keys=[user1_id], lazy="joined")
    user2: Mapped[User] = relationship("User", foreign_keys=[user2_id], lazy="joined")

    def other_party_id(self, user_id: int) -> int:
        return self.user2_id if self.user1_id == user_id else self.user1_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user1": self.user1.summary() if self.user1 else None,
            "user2": self.user2.summary() if self.user2 else None,
            "relationshipType": self.relationship_type,
            "relationshipFrom": self.relationship_from,
            "status": self.status,
            "requestedBy": self.requested_by_id,
            "approvedBy": self.approved_by_id,
            "note": self.note,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
