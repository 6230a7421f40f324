from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.samaj.db import db_session
from app.samaj.errors import ApiError
from app.samaj.models import ActivityLog
from app.samaj.rbac import require_permission
from app.samaj.utils import as_int, day_end_exclusive, day_start, page_args, paginate, parse_date

bp = Blueprint("activity_logs", __name__)


def _filter_date(raw: str | None, label: str):
    try:
        return parse_date(raw)
    except ValueError as e:
        raise ApiError(f"Invalid {label}", 400) from e


@bp.get("/")
@require_permission("canViewActivityLogs")
def activity_logs_list():
    s = db_session()
    page, limit = page_args(request.args, default_limit=50)
    q = s.query(ActivityLog)

    action_type = (request.args.get("actionType") or "").strip()
    if action_type:
        q = q.filter(ActivityLog.action_type == action_type)
    target_user = as_int(request.args.get("targetUser"))
    if target_user is not None:
        q = q.filter(ActivityLog.target_user_id == target_user)
    performed_by = as_int(request.args.get("performedBy"))
    if performed_by is not None:
        q = q.filter(ActivityLog.performed_by_id == performed_by)
    start = _filter_date(request.args.get("startDate"), "startDate")
    if start:
        q = q.filter(ActivityLog.created_at >= day_start(start))
    end = _filter_date(request.args.get("endDate"), "endDate")
    if end:
        q = q.filter(ActivityLog.created_at < day_end_exclusive(end))

    logs, total, pages = paginate(q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()), page, limit)
    return jsonify(
        {
            "success": True,
            "count": len(logs),
            "total": total,
            "page": page,
            "pages": pages,
            "data": [entry.to_dict() for entry in logs],
        }
    )


@bp.get("/<int:log_id>")
@require_permission("canViewActivityLogs")
def activity_log_get(log_id: int):
    s = db_session()
    entry = s.get(ActivityLog, log_id)
    if entry is None:
        raise ApiError("Activity log not found", 404)
    return jsonify({"success": True, "data": entry.to_dict()})
