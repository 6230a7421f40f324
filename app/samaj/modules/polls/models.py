from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.samaj.models import Base, User
from app.samaj.utils import iso


class Poll(Base):
    __tablename__ = "polls"
    __table_args__ = (Index("idx_polls_event_status", "event_id", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    question: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    event_id: Mapped[int | None] = mapped_column(ForeignKey("events.id", ondelete="SET NULL"), nullable=True)
    poll_type: Mapped[str] = mapped_column(String(32), nullable=False, default="single_choice")

    allow_anonymous: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    show_live_results: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allow_vote_changes: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    max_votes_per_user: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")

    restrict_to: Mapped[str] = mapped_column(String(16), nullable=False, default="all")
    restricted_to_samaj: Mapped[list | None] = mapped_column(JSON, nullable=True)
    restricted_to_roles: Mapped[list | None] = mapped_column(JSON, nullable=True)  # role ids
    restricted_to_families: Mapped[list | None] = mapped_column(JSON, nullable=True)

    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    total_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    created_by: Mapped[User | None] = relationship("User", foreign_keys=[created_by_id], lazy="joined")
    options: Mapped[list["PollOption"]] = relationship(
        "PollOption", back_populates="poll", cascade="all, delete-orphan", lazy="selectin", order_by="PollOption.order"
    )
    votes: Mapped[list["PollVote"]] = relationship(
        "PollVote", back_populates="poll", cascade="all, delete-orphan", lazy="selectin"
    )

    def to_dict(self, *, hide_counts: bool = False) -> dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "description": self.description,
            "eventId": self.event_id,
            "pollType": self.poll_type,
            "options": [o.to_dict(hide_counts=hide_counts) for o in self.options],
            "allowAnonymous": self.allow_anonymous,
            "showLiveResults": self.show_live_results,
            "allowVoteChanges": self.allow_vote_changes,
            "maxVotesPerUser": self.max_votes_per_user,
            "startDate": iso(self.start_date),
            "endDate": iso(self.end_date),
            "status": self.status,
            "restrictTo": self.restrict_to,
            "restrictedToSamaj": self.restricted_to_samaj or [],
            "restrictedToRoles": self.restricted_to_roles or [],
            "restrictedToFamilies": self.restricted_to_families or [],
            "createdBy": self.created_by.summary() if self.created_by else None,
            "totalVotes": None if hide_counts else self.total_votes,
            "isActive": self.is_active,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class PollOption(Base):
    __tablename__ = "poll_options"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    poll_id: Mapped[int] = mapped_column(ForeignKey("polls.id", ondelete="CASCADE"), nullable=False)
    option_text: Mapped[str] = mapped_column(String(200), nullable=False)
    vote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    poll: Mapped[Poll] = relationship("Poll", back_populates="options")

    def to_dict(self, *, hide_counts: bool = False) -> dict[str, Any]:
        return {
            "id": self.id,
            "optionText": self.option_text,
            "voteCount": None if hide_counts else self.vote_count,
            "order": self.order,
        }


class PollVote(Base):
    __tablename__ = "poll_votes"
    __table_args__ = (Index("idx_poll_votes_poll_user", "poll_id", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    poll_id: Mapped[int] = mapped_column(ForeignKey("polls.id", ondelete="CASCADE"), nullable=False)
    option_id: Mapped[int] = mapped_column(ForeignKey("poll_options.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    voted_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    poll: Mapped[Poll] = relationship("Poll", back_populates="votes")
