from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.samaj.constants import DELETED_USER_LABEL
from app.samaj.models import Base, User
from app.samaj.utils import iso


class Comment(Base):
    __tablename__ = "comments"
    __table_args__ = (
        Index("idx_comments_event_parent", "event_id", "parent_comment_id", "status"),
        Index("idx_comments_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    comment_text: Mapped[str] = mapped_column(String(1000), nullable=False)
    comment_type: Mapped[str] = mapped_column(String(32), nullable=False, default="general")
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    # Null once the author has been hard-deleted.
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    author_label: Mapped[str | None] = mapped_column(String(64), nullable=True)
    parent_comment_id: Mapped[int | None] = mapped_column(ForeignKey("comments.id", ondelete="CASCADE"), nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="published")
    flagged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approved_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    like_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reply_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attached_image: Mapped[str | None] = mapped_column(String(512), nullable=True)

    edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    edit_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    user: Mapped[User | None] = relationship("User", foreign_keys=[user_id], lazy="joined")
    likes: Mapped[list["CommentLike"]] = relationship(
        "CommentLike", back_populates="comment", cascade="all, delete-orphan", lazy="selectin"
    )
    flags: Mapped[list["CommentFlag"]] = relationship(
        "CommentFlag", back_populates="comment", cascade="all, delete-orphan", lazy="selectin"
    )

    def to_dict(self) -> dict[str, Any]:
        if self.user is not None:
            author: dict[str, Any] | None = self.user.summary()
        else:
            author = {"id": None, "firstName": self.author_label or DELETED_USER_LABEL, "lastName": ""}
        return {
            "id": self.id,
            "commentText": self.comment_text,
            "commentType": self.comment_type,
            "eventId": self.event_id,
            "user": author,
            "parentCommentId": self.parent_comment_id,
            "status": self.status,
            "flagged": self.flagged,
            "flaggedBy": [f.to_dict() for f in self.flags],
            "approvedBy": self.approved_by_id,
            "likeCount": self.like_count,
            "replyCount": self.reply_count,
            "attachedImage": self.attached_image,
            "editedAt": iso(self.edited_at),
            "editCount": self.edit_count,
            "isActive": self.is_active,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class CommentLike(Base):
    __tablename__ = "comment_likes"
    __table_args__ = (UniqueConstraint("comment_id", "user_id", name="uq_comment_likes_comment_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    comment_id: Mapped[int] = mapped_column(ForeignKey("comments.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    liked_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    comment: Mapped[Comment] = relationship("Comment", back_populates="likes")


class CommentFlag(Base):
    __tablename__ = "comment_flags"
    __table_args__ = (UniqueConstraint("comment_id", "user_id", name="uq_comment_flags_comment_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    comment_id: Mapped[int] = mapped_column(ForeignKey("comments.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    flagged_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    comment: Mapped[Comment] = relationship("Comment", back_populates="flags")

    def to_dict(self) -> dict[str, Any]:
        return {"userId": self.user_id, "reason": self.reason, "flaggedAt": iso(self.flagged_at)}
