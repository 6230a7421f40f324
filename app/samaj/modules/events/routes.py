from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from app.samaj.db import db_session
from app.samaj.errors import ApiError, validation_error
from app.samaj.modules.events.service import (
    add_media,
    can_manage,
    create_event,
    delete_event,
    event_detail,
    get_event_or_404,
    list_events,
    moderate_event,
    my_events,
    remove_media,
    set_rsvp,
    update_event,
    validate_event_payload,
)
from app.samaj.rbac import current_user, login_required, require_permission
from app.samaj.storage import storage_from_config
from app.samaj.utils import page_args

bp = Blueprint("events", __name__)


def _managed_event(s, event_id: int, permission_key: str):
    event = get_event_or_404(s, event_id)
    if not can_manage(event, current_user(), permission_key):
        g.missing_permission = permission_key
        raise ApiError("You don't have permission to perform this action", 403)
    return event


@bp.post("/")
@require_permission("canCreateEvents")
def event_create():
    s = db_session()
    payload = request.get_json(silent=True) or {}
    errors = validate_event_payload(payload)
    if errors:
        raise validation_error(errors)
    event = create_event(s, payload, current_user())
    s.commit()
    return jsonify({"success": True, "message": "Event created successfully", "data": event.to_dict()}), 201


@bp.get("/")
def events_list():
    s = db_session()
    page, limit = page_args(request.args)
    events, total, pages = list_events(s, request.args, current_user(), page, limit)
    return jsonify(
        {
            "success": True,
            "count": len(events),
            "total": total,
            "page": page,
            "pages": pages,
            "data": [e.to_dict() for e in events],
        }
    )


@bp.get("/my")
@login_required
def events_mine():
    s = db_session()
    events = my_events(s, current_user())
    return jsonify({"success": True, "count": len(events), "data": [e.to_dict() for e in events]})


@bp.get("/<int:event_id>")
def event_get(event_id: int):
    s = db_session()
    data = event_detail(s, get_event_or_404(s, event_id), current_user())
    s.commit()
    return jsonify({"success": True, "data": data})


@bp.patch("/<int:event_id>")
@login_required
def event_update(event_id: int):
    s = db_session()
    event = _managed_event(s, event_id, "canEditEvents")
    payload = request.get_json(silent=True) or {}
    errors = validate_event_payload(payload, partial=True, existing=event)
    if errors:
        raise validation_error(errors)
    update_event(s, event, payload, current_user())
    s.commit()
    return jsonify({"success": True, "message": "Event updated successfully", "data": event.to_dict()})


@bp.delete("/<int:event_id>")
@login_required
def event_delete(event_id: int):
    s = db_session()
    event = _managed_event(s, event_id, "canDeleteEvents")
    delete_event(s, event, current_user())
    s.commit()
    return jsonify({"success": True, "message": "Event deleted successfully"})


@bp.post("/<int:event_id>/media")
@login_required
def event_media_upload(event_id: int):
    s = db_session()
    event = _managed_event(s, event_id, "canManageEventMedia")
    f = request.files.get("file")
    if not f or not f.filename:
        raise ApiError("No file uploaded", 400)
    media = add_media(
        s,
        storage_from_config(current_app.config),
        event,
        filename=f.filename,
        content_type=f.mimetype,
        data=f.read(),
        caption=request.form.get("caption"),
        user=current_user(),
    )
    s.commit()
    return jsonify({"success": True, "message": "Media uploaded", "media": media.to_dict(), "data": event.to_dict()}), 201


@bp.delete("/<int:event_id>/media/<int:media_id>")
@login_required
def event_media_delete(event_id: int, media_id: int):
    s = db_session()
    event = _managed_event(s, event_id, "canManageEventMedia")
    remove_media(s, storage_from_config(current_app.config), event, media_id)
    s.commit()
    return jsonify({"success": True, "message": "Media removed", "data": event.to_dict()})


@bp.post("/<int:event_id>/rsvp")
@login_required
def event_rsvp(event_id: int):
    s = db_session()
    event = get_event_or_404(s, event_id)
    payload = request.get_json(silent=True) or {}
    set_rsvp(s, event, current_user(), payload.get("status"))
    s.commit()
    return jsonify({"success": True, "message": "RSVP recorded", "rsvpCounts": event.rsvp_counts()})


@bp.patch("/admin/<int:event_id>/approve")
@require_permission("canModerateEvents")
def event_moderate(event_id: int):
    s = db_session()
    payload = request.get_json(silent=True) or {}
    event = moderate_event(s, get_event_or_404(s, event_id), payload.get("action"), current_user())
    s.commit()
    return jsonify({"success": True, "message": f"Event {event.approval_status}", "data": event.to_dict()})
