from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from app.samaj.db import db_session
from app.samaj.errors import ApiError, validation_error
from app.samaj.modules.polls.service import (
    can_manage,
    change_vote,
    close_poll,
    create_poll,
    delete_poll,
    event_polls,
    get_poll_or_404,
    poll_results,
    validate_poll_payload,
    vote,
)
from app.samaj.rbac import current_user, login_required, require_permission

bp = Blueprint("polls", __name__)


def _managed_poll(s, poll_id: int):
    poll = get_poll_or_404(s, poll_id)
    if not can_manage(poll, current_user()):
        g.missing_permission = "canManagePolls"
        raise ApiError("You don't have permission to perform this action", 403)
    return poll


@bp.post("/")
@require_permission("canCreatePolls")
def poll_create():
    s = db_session()
    payload = request.get_json(silent=True) or {}
    errors = validate_poll_payload(payload)
    if errors:
        raise validation_error(errors)
    poll = create_poll(s, payload, current_user())
    s.commit()
    return jsonify({"success": True, "message": "Poll created successfully", "data": poll_results(poll, current_user())}), 201


@bp.get("/event/<int:event_id>")
def polls_for_event(event_id: int):
    s = db_session()
    polls = event_polls(s, event_id)
    s.commit()
    user = current_user()
    return jsonify({"success": True, "count": len(polls), "data": [poll_results(p, user) for p in polls]})


@bp.get("/<int:poll_id>")
def poll_get(poll_id: int):
    s = db_session()
    poll = get_poll_or_404(s, poll_id)
    s.commit()
    return jsonify({"success": True, "data": poll_results(poll, current_user())})


@bp.post("/<int:poll_id>/vote")
@login_required
def poll_vote(poll_id: int):
    s = db_session()
    poll = get_poll_or_404(s, poll_id)
    payload = request.get_json(silent=True) or {}
    vote(s, poll, current_user(), payload.get("optionIds"))
    s.commit()
    return jsonify({"success": True, "message": "Vote recorded", "data": poll_results(poll, current_user())})


@bp.patch("/<int:poll_id>/vote")
@login_required
def poll_change_vote(poll_id: int):
    s = db_session()
    poll = get_poll_or_404(s, poll_id)
    payload = request.get_json(silent=True) or {}
    change_vote(s, poll, current_user(), payload.get("optionIds"))
    s.commit()
    return jsonify({"success": True, "message": "Vote updated", "data": poll_results(poll, current_user())})


@bp.patch("/<int:poll_id>/close")
@login_required
def poll_close(poll_id: int):
    s = db_session()
    poll = close_poll(s, _managed_poll(s, poll_id), current_user())
    s.commit()
    return jsonify({"success": True, "message": "Poll closed", "data": poll_results(poll, current_user())})


@bp.delete("/<int:poll_id>")
@login_required
def poll_delete(poll_id: int):
    s = db_session()
    delete_poll(s, _managed_poll(s, poll_id), current_user())
    s.commit()
    return jsonify({"success": True, "message": "Poll deleted"})
