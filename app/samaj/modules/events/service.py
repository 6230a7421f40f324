from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_

from app.samaj.audit import log_activity
from app.samaj.constants import (
    ALLOWED_MEDIA_PREFIXES,
    EVENT_TYPES,
    EVENT_VISIBILITY,
    MAX_EVENT_PHOTOS,
    MAX_EVENT_VIDEOS,
    MAX_UPLOAD_BYTES,
    RSVP_STATUS,
)
from app.samaj.errors import ApiError
from app.samaj.modules.events.models import Event, EventMedia, EventRsvp
from app.samaj.rbac import user_has_permission
from app.samaj.storage import Storage, build_media_key, file_digest_and_size
from app.samaj.utils import as_bool, as_int, as_int_list, clean_str, page_count, parse_datetime

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.samaj.models import User

logger = logging.getLogger(__name__)

_RSVP_COLUMNS = {
    "attending": "rsvp_attending",
    "not_attending": "rsvp_not_attending",
    "maybe": "rsvp_maybe",
}


# ---------- Rules ----------
def compute_status(event: Event, now: datetime | None = None) -> str:
    if event.status == "cancelled":
        return "cancelled"
    now = now or datetime.utcnow()
    if event.start_date > now:
        return "upcoming"
    if event.end_date is not None and event.end_date < now:
        return "completed"
    return "ongoing"


def can_user_view(event: Event, user: "User | None") -> bool:
    if event.visibility not in ("samaj", "family", "role"):
        return True
    if user is None:
        return False
    if event.visibility == "samaj":
        allowed = event.visible_to_samaj or []
        return not allowed or user.samaj in allowed
    if event.visibility == "family":
        allowed = event.visible_to_families or []
        return not allowed or user.sub_family_number in allowed
    allowed = as_int_list(event.visible_to_roles) or []
    return not allowed or user.role_id in allowed


def is_live(event: Event, now: datetime | None = None) -> bool:
    now = now or datetime.utcnow()
    if event.status != "ongoing":
        return False
    if not any(link.get("isLive") for link in (event.youtube_links or []) if isinstance(link, dict)):
        return False
    if now < event.start_date:
        return False
    return event.end_date is None or now <= event.end_date


def can_manage(event: Event, user: "User", permission_key: str) -> bool:
    return event.created_by_id == user.id or user_has_permission(user, permission_key)


# ---------- Validation ----------
def _parse_dt(errors: list[str], raw: Any, label: str) -> datetime | None:
    try:
        return parse_datetime(raw)
    except ValueError:
        errors.append(f"{label} must be a valid ISO date")
        return None


def validate_event_payload(payload: dict, *, partial: bool = False, existing: Event | None = None) -> list[str]:
    errors: list[str] = []
    name = clean_str(payload.get("eventName"))
    if name is None:
        if not partial:
            errors.append("Event name is required")
    elif len(name) > 200:
        errors.append("Event name cannot exceed 200 characters")

    event_type = clean_str(payload.get("eventType"))
    if event_type is None:
        if not partial:
            errors.append("Event type is required")
    elif event_type not in EVENT_TYPES:
        errors.append(f"Invalid event type. Must be one of: {', '.join(EVENT_TYPES)}")

    description = payload.get("description")
    if description and len(str(description)) > 2000:
        errors.append("Description cannot exceed 2000 characters")

    if not payload.get("startDate") and not partial:
        errors.append("Start date is required")
    start = _parse_dt(errors, payload.get("startDate"), "startDate")
    end = _parse_dt(errors, payload.get("endDate"), "endDate")
    start = start or (existing.start_date if existing else None)
    if start and end and end < start:
        errors.append("End date must be after start date")

    visibility = clean_str(payload.get("visibility"))
    if visibility and visibility not in EVENT_VISIBILITY:
        errors.append(f"Invalid visibility. Must be one of: {', '.join(EVENT_VISIBILITY)}")
    if payload.get("visibleToRoles") and as_int_list(payload.get("visibleToRoles")) is None:
        errors.append("visibleToRoles must be a list of role ids")
    if payload.get("relatedPersonId") and as_int(payload.get("relatedPersonId")) is None:
        errors.append("relatedPersonId must be an integer")
    return errors


_SIMPLE_FIELDS = {
    "eventName": "event_name",
    "eventType": "event_type",
    "description": "description",
    "visibility": "visibility",
    "relatedPersonName": "related_person_name",
    "recurrencePattern": "recurrence_pattern",
}
_FLAG_FIELDS = {
    "isPinned": "is_pinned",
    "isImportant": "is_important",
    "allowRSVP": "allow_rsvp",
    "allowComments": "allow_comments",
    "isRecurring": "is_recurring",
}
_JSON_FIELDS = {
    "location": "location",
    "youtubeLinks": "youtube_links",
    "visibleToSamaj": "visible_to_samaj",
    "visibleToFamilies": "visible_to_families",
    "funeralDetails": "funeral_details",
}


def _apply_fields(event: Event, payload: dict) -> None:
    for key, column in _SIMPLE_FIELDS.items():
        if key in payload:
            setattr(event, column, clean_str(payload.get(key)))
    for key, column in _FLAG_FIELDS.items():
        if key in payload:
            setattr(event, column, as_bool(payload.get(key)))
    for key, column in _JSON_FIELDS.items():
        if key in payload:
            setattr(event, column, payload.get(key) or None)
    if "visibleToRoles" in payload:
        event.visible_to_roles = as_int_list(payload.get("visibleToRoles")) or None
    if payload.get("startDate"):
        event.start_date = parse_datetime(payload["startDate"])
    if "endDate" in payload:
        event.end_date = parse_datetime(payload.get("endDate"))
    if "relatedPersonId" in payload:
        event.related_person_id = as_int(payload.get("relatedPersonId"))
    if payload.get("status") == "cancelled":
        event.status = "cancelled"
    if not event.visibility:
        event.visibility = "public"


# ---------- CRUD ----------
def create_event(s: "Session", payload: dict, user: "User") -> Event:
    now = datetime.utcnow()
    moderator = user_has_permission(user, "canModerateEvents")
    event = Event(
        created_by_id=user.id,
        approval_status="approved" if moderator else "pending",
        approved_by_id=user.id if moderator else None,
        approved_at=now if moderator else None,
        status="upcoming",
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    _apply_fields(event, payload)
    event.status = compute_status(event, now)
    s.add(event)
    s.flush()
    log_activity(
        s,
        performed_by=user,
        action_type="event_created",
        details={"eventId": event.id, "eventName": event.event_name, "approvalStatus": event.approval_status},
    )
    return event


def get_event_or_404(s: "Session", event_id: int) -> Event:
    event = s.get(Event, event_id)
    if event is None or not event.is_active:
        raise ApiError("Event not found", 404)
    return event


def update_event(s: "Session", event: Event, payload: dict, user: "User") -> Event:
    _apply_fields(event, payload)
    event.status = compute_status(event)
    event.updated_at = datetime.utcnow()
    s.flush()
    log_activity(s, performed_by=user, action_type="event_updated", details={"eventId": event.id, "fields": sorted(payload)})
    return event


def delete_event(s: "Session", event: Event, user: "User") -> None:
    event.is_active = False
    event.updated_at = datetime.utcnow()
    s.flush()
    log_activity(s, performed_by=user, action_type="event_deleted", details={"eventId": event.id, "eventName": event.event_name})


def _visible_to_caller(event: Event, user: "User | None") -> bool:
    if not can_user_view(event, user):
        return False
    if event.approval_status == "approved":
        return True
    if user is None:
        return False
    return event.created_by_id == user.id or user_has_permission(user, "canModerateEvents")


def list_events(s: "Session", args: Any, user: "User | None", page: int, limit: int) -> tuple[list[Event], int, int]:
    q = s.query(Event).filter(Event.is_active.is_(True))
    event_type = clean_str(args.get("eventType"))
    if event_type:
        q = q.filter(Event.event_type == event_type)
    status = clean_str(args.get("status"))
    if status:
        q = q.filter(Event.status == status)
    if as_bool(args.get("upcoming")):
        q = q.filter(Event.start_date >= datetime.utcnow())
    search = clean_str(args.get("search"))
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Event.event_name.ilike(like), Event.description.ilike(like)))
    rows = q.order_by(Event.is_pinned.desc(), Event.start_date.asc(), Event.id.asc()).all()

    # visibility lists are JSON; filtered here rather than in SQL
    visible = [e for e in rows if _visible_to_caller(e, user)]
    total = len(visible)
    pages = page_count(total, limit)
    start = (page - 1) * limit
    return visible[start : start + limit], total, pages


def my_events(s: "Session", user: "User") -> list[Event]:
    return (
        s.query(Event)
        .filter(Event.created_by_id == user.id, Event.is_active.is_(True))
        .order_by(Event.start_date.desc())
        .all()
    )


def event_detail(s: "Session", event: Event, user: "User | None") -> dict[str, Any]:
    if not _visible_to_caller(event, user):
        raise ApiError("You don't have permission to view this event", 403)
    event.view_count = event.view_count + 1
    s.flush()
    data = event.to_dict()
    data["isLive"] = is_live(event)
    data["userRsvp"] = None
    if user is not None:
        rsvp = s.query(EventRsvp).filter(EventRsvp.event_id == event.id, EventRsvp.user_id == user.id).one_or_none()
        data["userRsvp"] = rsvp.status if rsvp else None
    return data


# ---------- Media ----------
def add_media(
    s: "Session",
    storage: Storage,
    event: Event,
    *,
    filename: str,
    content_type: str | None,
    data: bytes,
    caption: str | None,
    user: "User",
) -> EventMedia:
    content_type = content_type or ""
    if not content_type.startswith(ALLOWED_MEDIA_PREFIXES):
        raise ApiError("Only image and video files are allowed", 400)
    digest, size = file_digest_and_size(data)
    if size > MAX_UPLOAD_BYTES:
        raise ApiError("File too large. Maximum size is 50MB.", 400)
    media_type = "video" if content_type.startswith("video/") else "photo"
    if media_type == "photo" and len(event.photos) >= MAX_EVENT_PHOTOS:
        raise ApiError(f"Maximum {MAX_EVENT_PHOTOS} photos allowed per event", 400)
    if media_type == "video" and len(event.videos) >= MAX_EVENT_VIDEOS:
        raise ApiError(f"Maximum {MAX_EVENT_VIDEOS} videos allowed per event", 400)

    key = build_media_key(f"events/{event.id}", filename, content_type)
    storage.put_bytes(key, data, content_type=content_type)
    media = EventMedia(
        event_id=event.id,
        media_type=media_type,
        storage_key=key,
        original_filename=filename,
        content_type=content_type,
        size_bytes=size,
        sha256=digest,
        caption=clean_str(caption),
        uploaded_by_id=user.id,
        uploaded_at=datetime.utcnow(),
    )
    event.media.append(media)
    event.updated_at = datetime.utcnow()
    s.flush()
    logger.info("Event %s media uploaded key=%s size=%s", event.id, key, size)
    return media


def remove_media(s: "Session", storage: Storage, event: Event, media_id: int) -> None:
    media = next((m for m in event.media if m.id == media_id), None)
    if media is None:
        raise ApiError("Media not found", 404)
    storage.delete(media.storage_key)
    event.media.remove(media)
    event.updated_at = datetime.utcnow()
    s.flush()


# ---------- RSVP / moderation ----------
def set_rsvp(s: "Session", event: Event, user: "User", status: str | None) -> Event:
    if not event.allow_rsvp:
        raise ApiError("RSVP is not enabled for this event", 400)
    if status not in RSVP_STATUS:
        raise ApiError(f"Invalid RSVP status. Must be one of: {', '.join(RSVP_STATUS)}", 400)
    rsvp = s.query(EventRsvp).filter(EventRsvp.event_id == event.id, EventRsvp.user_id == user.id).one_or_none()
    if rsvp is None:
        rsvp = EventRsvp(event_id=event.id, user_id=user.id, status=status)
        s.add(rsvp)
    elif rsvp.status != status:
        column = _RSVP_COLUMNS[rsvp.status]
        setattr(event, column, max(getattr(event, column) - 1, 0))
        rsvp.status = status
    else:
        return event
    column = _RSVP_COLUMNS[status]
    setattr(event, column, getattr(event, column) + 1)
    rsvp.responded_at = datetime.utcnow()
    s.flush()
    return event


def moderate_event(s: "Session", event: Event, action: str | None, user: "User") -> Event:
    if action not in ("approve", "reject"):
        raise ApiError("Action must be approve or reject", 400)
    event.approval_status = "approved" if action == "approve" else "rejected"
    event.approved_by_id = user.id
    event.approved_at = datetime.utcnow()
    event.updated_at = event.approved_at
    s.flush()
    log_activity(
        s,
        performed_by=user,
        action_type=f"event_{event.approval_status}",
        details={"eventId": event.id, "eventName": event.event_name},
    )
    return event
