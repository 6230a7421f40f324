from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from app.samaj.audit import log_activity
from app.samaj.constants import (
    COMMENT_EDIT_WINDOW_MINUTES,
    COMMENT_MAX_LENGTH,
    COMMENT_TYPES,
    DELETED_COMMENT_TEXT,
    MAX_REPLIES_PER_COMMENT,
)
from app.samaj.errors import ApiError
from app.samaj.modules.comments.models import Comment, CommentFlag, CommentLike
from app.samaj.modules.events.models import Event
from app.samaj.rbac import user_has_permission
from app.samaj.utils import clean_str, paginate

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.samaj.models import User

SORT_ORDERS = {
    "recent": (Comment.created_at.desc(), Comment.id.desc()),
    "oldest": (Comment.created_at.asc(), Comment.id.asc()),
    "most_liked": (Comment.like_count.desc(), Comment.created_at.desc()),
}
MODERATION_ACTIONS = ("approve", "reject", "hide", "dismiss")


# ---------- Rules ----------
def can_edit(comment: Comment, user: "User | None", now: datetime | None = None) -> bool:
    if user is None or comment.user_id != user.id or comment.status == "deleted":
        return False
    now = now or datetime.utcnow()
    if now - comment.created_at > timedelta(minutes=COMMENT_EDIT_WINDOW_MINUTES):
        return False
    return comment.reply_count == 0


def can_delete(comment: Comment, user: "User | None") -> bool:
    if user is None:
        return False
    return comment.user_id == user.id or user_has_permission(user, "canDeleteAnyComment")


def validate_comment_text(raw: Any) -> str:
    text = clean_str(raw)
    if not text:
        raise ApiError("Comment text is required", 400)
    if len(text) > COMMENT_MAX_LENGTH:
        raise ApiError(f"Comment cannot exceed {COMMENT_MAX_LENGTH} characters", 400)
    return text


def _comment_type(raw: Any) -> str:
    kind = raw or "general"
    if kind not in COMMENT_TYPES:
        raise ApiError(f"Invalid comment type. Must be one of: {', '.join(COMMENT_TYPES)}", 400)
    return kind


def get_comment_or_404(s: "Session", comment_id: int) -> Comment:
    comment = s.get(Comment, comment_id)
    if comment is None or not comment.is_active:
        raise ApiError("Comment not found", 404)
    return comment


def _commentable_event(s: "Session", event_id: int) -> Event:
    event = s.get(Event, event_id)
    if event is None or not event.is_active:
        raise ApiError("Event not found", 404)
    if not event.allow_comments:
        raise ApiError("Comments are disabled for this event", 400)
    return event


# ---------- Serialization ----------
def comment_view(comment: Comment, user: "User | None") -> dict[str, Any]:
    data = comment.to_dict()
    data["userLiked"] = user is not None and any(like.user_id == user.id for like in comment.likes)
    data["canEdit"] = can_edit(comment, user)
    data["canDelete"] = can_delete(comment, user)
    return data


def _replies(s: "Session", parent: Comment) -> list[Comment]:
    return (
        s.query(Comment)
        .filter(
            Comment.parent_comment_id == parent.id,
            Comment.status == "published",
            Comment.is_active.is_(True),
        )
        .order_by(Comment.created_at.asc())
        .limit(MAX_REPLIES_PER_COMMENT)
        .all()
    )


# ---------- Create / list ----------
def create_comment(s: "Session", event_id: int, payload: dict, user: "User") -> Comment:
    event = _commentable_event(s, event_id)
    now = datetime.utcnow()
    comment = Comment(
        comment_text=validate_comment_text(payload.get("commentText")),
        comment_type=_comment_type(payload.get("commentType")),
        event_id=event.id,
        user_id=user.id,
        parent_comment_id=None,
        status="published",
        attached_image=clean_str(payload.get("attachedImage")),
        created_at=now,
        updated_at=now,
    )
    s.add(comment)
    event.comment_count = event.comment_count + 1
    s.flush()
    return comment


def list_event_comments(
    s: "Session", event_id: int, user: "User | None", *, sort: str | None, page: int, limit: int
) -> tuple[list[dict[str, Any]], int, int]:
    event = s.get(Event, event_id)
    if event is None or not event.is_active:
        raise ApiError("Event not found", 404)
    order = SORT_ORDERS.get(sort or "recent", SORT_ORDERS["recent"])
    q = (
        s.query(Comment)
        .filter(
            Comment.event_id == event_id,
            Comment.parent_comment_id.is_(None),
            Comment.status == "published",
            Comment.is_active.is_(True),
        )
        .order_by(*order)
    )
    comments, total, pages = paginate(q, page, limit)
    out = []
    for c in comments:
        data = comment_view(c, user)
        data["replies"] = [comment_view(r, user) for r in _replies(s, c)]
        out.append(data)
    return out, total, pages


# ---------- Author actions ----------
def edit_comment(s: "Session", comment: Comment, payload: dict, user: "User") -> Comment:
    if not can_edit(comment, user):
        raise ApiError("You can only edit your own comments within 15 minutes and before anyone replies", 403)
    now = datetime.utcnow()
    comment.comment_text = validate_comment_text(payload.get("commentText"))
    comment.edit_count = comment.edit_count + 1
    comment.edited_at = now
    comment.updated_at = now
    s.flush()
    return comment


def _shift_parent_reply_count(s: "Session", comment: Comment, delta: int) -> None:
    if comment.parent_comment_id is None:
        return
    parent = s.get(Comment, comment.parent_comment_id)
    if parent is not None:
        parent.reply_count = max(parent.reply_count + delta, 0)


def delete_comment(s: "Session", comment: Comment, user: "User") -> Comment:
    if not can_delete(comment, user):
        raise ApiError("You don't have permission to delete this comment", 403)
    if comment.status == "deleted":
        raise ApiError("Comment already deleted", 400)
    comment.status = "deleted"
    comment.comment_text = DELETED_COMMENT_TEXT
    comment.updated_at = datetime.utcnow()
    _shift_parent_reply_count(s, comment, -1)
    if comment.user_id != user.id:
        log_activity(
            s,
            performed_by=user,
            action_type="comment_deleted",
            details={"commentId": comment.id, "eventId": comment.event_id},
        )
    s.flush()
    return comment


def toggle_like(s: "Session", comment: Comment, user: "User") -> bool:
    """Returns True if the comment is now liked by the user."""
    existing = next((like for like in comment.likes if like.user_id == user.id), None)
    if existing is not None:
        comment.likes.remove(existing)
        s.delete(existing)
        comment.like_count = max(comment.like_count - 1, 0)
        liked = False
    else:
        comment.likes.append(CommentLike(user_id=user.id, liked_at=datetime.utcnow()))
        comment.like_count = comment.like_count + 1
        liked = True
    s.flush()
    return liked


def reply_to_comment(s: "Session", parent: Comment, payload: dict, user: "User") -> Comment:
    if parent.parent_comment_id is not None:
        raise ApiError("Cannot reply to a reply", 400)
    if parent.status != "published":
        raise ApiError("Cannot reply to this comment", 400)
    event = _commentable_event(s, parent.event_id)
    now = datetime.utcnow()
    reply = Comment(
        comment_text=validate_comment_text(payload.get("commentText")),
        comment_type=_comment_type(payload.get("commentType")),
        event_id=event.id,
        user_id=user.id,
        parent_comment_id=parent.id,
        status="published",
        created_at=now,
        updated_at=now,
    )
    s.add(reply)
    parent.reply_count = parent.reply_count + 1
    s.flush()
    return reply


def report_comment(s: "Session", comment: Comment, reason: Any, user: "User") -> Comment:
    if any(f.user_id == user.id for f in comment.flags):
        raise ApiError("You have already reported this comment", 400)
    comment.flags.append(CommentFlag(user_id=user.id, reason=clean_str(reason), flagged_at=datetime.utcnow()))
    comment.flagged = True
    comment.updated_at = datetime.utcnow()
    s.flush()
    log_activity(
        s,
        performed_by=user,
        action_type="comment_reported",
        details={"commentId": comment.id, "reason": clean_str(reason)},
    )
    return comment


# ---------- Moderation ----------
def pending_comments(s: "Session", page: int, limit: int) -> tuple[list[Comment], int, int]:
    q = (
        s.query(Comment)
        .filter(Comment.status == "pending", Comment.is_active.is_(True))
        .order_by(Comment.created_at.asc())
    )
    return paginate(q, page, limit)


def flagged_comments(s: "Session", page: int, limit: int) -> tuple[list[Comment], int, int]:
    q = (
        s.query(Comment)
        .filter(Comment.flagged.is_(True), Comment.status != "deleted", Comment.is_active.is_(True))
        .order_by(Comment.updated_at.desc())
    )
    return paginate(q, page, limit)


def moderate_comment(s: "Session", comment: Comment, action: Any, user: "User") -> Comment:
    if action not in MODERATION_ACTIONS:
        raise ApiError(f"Invalid action. Must be one of: {', '.join(MODERATION_ACTIONS)}", 400)
    was_deleted = comment.status == "deleted"
    if action == "approve":
        comment.status = "published"
        comment.approved_by_id = user.id
    elif action == "reject":
        comment.status = "deleted"
    elif action == "hide":
        comment.status = "hidden"
    else:
        for flag in list(comment.flags):
            comment.flags.remove(flag)
            s.delete(flag)
        comment.flagged = False
    # Replies counted on the parent are the ones not deleted.
    if comment.status == "deleted" and not was_deleted:
        _shift_parent_reply_count(s, comment, -1)
    elif was_deleted and comment.status != "deleted":
        _shift_parent_reply_count(s, comment, 1)
    comment.updated_at = datetime.utcnow()
    s.flush()
    log_activity(
        s,
        performed_by=user,
        action_type="comment_moderated",
        details={"commentId": comment.id, "action": action},
    )
    return comment
