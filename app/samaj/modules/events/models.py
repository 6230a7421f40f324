from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.samaj.models import Base, User
from app.samaj.utils import iso


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        Index("idx_events_start", "start_date"),
        Index("idx_events_type_status", "event_type", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_name: Mapped[str] = mapped_column(String(200), nullable=False)
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    location: Mapped[dict | None] = mapped_column(JSON, nullable=True)  # {venueName, address, city, state, country}
    youtube_links: Mapped[list | None] = mapped_column(JSON, nullable=True)  # [{url, title, isLive}]

    visibility: Mapped[str] = mapped_column(String(16), nullable=False, default="public")
    visible_to_samaj: Mapped[list | None] = mapped_column(JSON, nullable=True)
    visible_to_roles: Mapped[list | None] = mapped_column(JSON, nullable=True)  # role ids
    visible_to_families: Mapped[list | None] = mapped_column(JSON, nullable=True)  # sub-family numbers

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="upcoming")
    is_pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_important: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allow_rsvp: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allow_comments: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    funeral_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    related_person_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    related_person_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurrence_pattern: Mapped[str | None] = mapped_column(String(32), nullable=True)

    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approval_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    rsvp_attending: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rsvp_not_attending: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rsvp_maybe: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    poll_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    created_by: Mapped[User | None] = relationship("User", foreign_keys=[created_by_id], lazy="joined")
    media: Mapped[list["EventMedia"]] = relationship(
        "EventMedia", back_populates="event", cascade="all, delete-orphan", lazy="selectin", order_by="EventMedia.id"
    )

    @property
    def photos(self) -> list["EventMedia"]:
        return [m for m in self.media if m.media_type == "photo"]

    @property
    def videos(self) -> list["EventMedia"]:
        return [m for m in self.media if m.media_type == "video"]

    def rsvp_counts(self) -> dict[str, int]:
        return {
            "attending": self.rsvp_attending,
            "notAttending": self.rsvp_not_attending,
            "maybe": self.rsvp_maybe,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "eventName": self.event_name,
            "eventType": self.event_type,
            "description": self.description,
            "startDate": iso(self.start_date),
            "endDate": iso(self.end_date),
            "location": self.location or {},
            "youtubeLinks": self.youtube_links or [],
            "photos": [m.to_dict() for m in self.photos],
            "videos": [m.to_dict() for m in self.videos],
            "visibility": self.visibility,
            "visibleToSamaj": self.visible_to_samaj or [],
            "visibleToRoles": self.visible_to_roles or [],
            "visibleToFamilies": self.visible_to_families or [],
            "status": self.status,
            "isPinned": self.is_pinned,
            "isImportant": self.is_important,
            "allowRSVP": self.allow_rsvp,
            "allowComments": self.allow_comments,
            "funeralDetails": self.funeral_details,
            "relatedPersonId": self.related_person_id,
            "relatedPersonName": self.related_person_name,
            "isRecurring": self.is_recurring,
            "recurrencePattern": self.recurrence_pattern,
            "createdBy": self.created_by.summary() if self.created_by else None,
            "approvedBy": self.approved_by_id,
            "approvalStatus": self.approval_status,
            "approvedAt": iso(self.approved_at),
            "rsvpCounts": self.rsvp_counts(),
            "viewCount": self.view_count,
            "commentCount": self.comment_count,
            "pollCount": self.poll_count,
            "isActive": self.is_active,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class EventMedia(Base):
    __tablename__ = "event_media"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    media_type: Mapped[str] = mapped_column(String(8), nullable=False)  # photo | video
    storage_key: Mapped[str] = mapped_column(String(512), nullable=False)
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sha256: Mapped[str | None] = mapped_column(String(64), nullable=True)
    caption: Mapped[str | None] = mapped_column(String(255), nullable=True)
    uploaded_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    event: Mapped[Event] = relationship("Event", back_populates="media")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": f"/uploads/{self.storage_key}",
            "caption": self.caption,
            "filename": self.original_filename,
            "contentType": self.content_type,
            "size": self.size_bytes,
            "uploadedBy": self.uploaded_by_id,
            "uploadedAt": iso(self.uploaded_at),
        }


class EventRsvp(Base):
    __tablename__ = "event_rsvps"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_event_rsvps_event_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    responded_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {"userId": self.user_id, "status": self.status, "respondedAt": iso(self.responded_at)}
