from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.samaj.db import db_session
from app.samaj.modules.comments.service import (
    comment_view,
    create_comment,
    delete_comment,
    edit_comment,
    flagged_comments,
    get_comment_or_404,
    list_event_comments,
    moderate_comment,
    pending_comments,
    reply_to_comment,
    report_comment,
    toggle_like,
)
from app.samaj.rbac import current_user, login_required, require_permission
from app.samaj.utils import page_args

bp = Blueprint("comments", __name__)


def _page_body(items: list, total: int, page: int, pages: int) -> dict:
    return {"success": True, "count": len(items), "total": total, "page": page, "pages": pages, "data": items}


@bp.post("/events/<int:event_id>/comments")
@login_required
def comment_create(event_id: int):
    s = db_session()
    comment = create_comment(s, event_id, request.get_json(silent=True) or {}, current_user())
    s.commit()
    return jsonify({"success": True, "message": "Comment posted", "data": comment_view(comment, current_user())}), 201


@bp.get("/events/<int:event_id>/comments")
def comments_for_event(event_id: int):
    s = db_session()
    page, limit = page_args(request.args)
    items, total, pages = list_event_comments(
        s, event_id, current_user(), sort=request.args.get("sort"), page=page, limit=limit
    )
    return jsonify(_page_body(items, total, page, pages))


@bp.patch("/<int:comment_id>")
@login_required
def comment_edit(comment_id: int):
    s = db_session()
    comment = edit_comment(s, get_comment_or_404(s, comment_id), request.get_json(silent=True) or {}, current_user())
    s.commit()
    return jsonify({"success": True, "message": "Comment updated", "data": comment_view(comment, current_user())})


@bp.delete("/<int:comment_id>")
@login_required
def comment_delete(comment_id: int):
    s = db_session()
    delete_comment(s, get_comment_or_404(s, comment_id), current_user())
    s.commit()
    return jsonify({"success": True, "message": "Comment deleted"})


@bp.post("/<int:comment_id>/like")
@login_required
def comment_like(comment_id: int):
    s = db_session()
    comment = get_comment_or_404(s, comment_id)
    liked = toggle_like(s, comment, current_user())
    s.commit()
    return jsonify({"success": True, "liked": liked, "likeCount": comment.like_count})


@bp.post("/<int:comment_id>/reply")
@login_required
def comment_reply(comment_id: int):
    s = db_session()
    parent = get_comment_or_404(s, comment_id)
    reply = reply_to_comment(s, parent, request.get_json(silent=True) or {}, current_user())
    s.commit()
    return jsonify({"success": True, "message": "Reply posted", "data": comment_view(reply, current_user())}), 201


@bp.post("/<int:comment_id>/report")
@login_required
def comment_report(comment_id: int):
    s = db_session()
    payload = request.get_json(silent=True) or {}
    report_comment(s, get_comment_or_404(s, comment_id), payload.get("reason"), current_user())
    s.commit()
    return jsonify({"success": True, "message": "Comment reported"})


@bp.get("/admin/pending")
@require_permission("canModerateComments")
def comments_pending():
    s = db_session()
    page, limit = page_args(request.args)
    comments, total, pages = pending_comments(s, page, limit)
    return jsonify(_page_body([c.to_dict() for c in comments], total, page, pages))


@bp.get("/admin/flagged")
@require_permission("canModerateComments")
def comments_flagged():
    s = db_session()
    page, limit = page_args(request.args)
    comments, total, pages = flagged_comments(s, page, limit)
    return jsonify(_page_body([c.to_dict() for c in comments], total, page, pages))


@bp.patch("/admin/<int:comment_id>/approve")
@require_permission("canModerateComments")
def comment_moderate(comment_id: int):
    s = db_session()
    payload = request.get_json(silent=True) or {}
    comment = moderate_comment(s, get_comment_or_404(s, comment_id), payload.get("action"), current_user())
    s.commit()
    return jsonify({"success": True, "message": "Comment moderated", "data": comment.to_dict()})
