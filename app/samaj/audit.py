import json
import logging
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.samaj.models import ActivityLog, User

logger = logging.getLogger(__name__)


def client_ip() -> str | None:
    if not has_request_context():
        return None
    forwarded = (request.headers.get("X-Forwarded-For") or "").split(",")[0].strip()
    return forwarded or request.remote_addr


def log_activity(
    s: Session,
    *,
    performed_by: User | None,
    action_type: str,
    target_user: User | int | None = None,
    target_family_member_id: int | None = None,
    details: dict[str, Any] | None = None,
    description: str | None = None,
    request_id: str | None = None,
) -> ActivityLog | None:
    """
    Append an activity log row inside a savepoint.
    A failed write is logged and dropped so the caller's change still commits.
    """
    rid = request_id or (getattr(g, "request_id", None) if has_request_context() else None)
    target_user_id = target_user.id if isinstance(target_user, User) else target_user
    entry = ActivityLog(
        request_id=rid,
        performed_by_id=performed_by.id if performed_by else None,
        action_type=action_type,
        target_user_id=target_user_id,
        target_family_member_id=target_family_member_id,
        details_json=json.dumps(details, sort_keys=True, default=str) if details else None,
        description=description,
        ip_address=client_ip(),
    )
    # Only the log row belongs inside the savepoint.
    s.flush()
    try:
        with s.begin_nested():
            s.add(entry)
    except SQLAlchemyError:
        logger.exception("Activity log write failed (action=%s request_id=%s)", action_type, rid)
        return None
    return entry
