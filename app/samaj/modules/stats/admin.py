from __future__ import annotations

from datetime import datetime, timedelta

from flask import Blueprint, jsonify
from sqlalchemy import func

from app.samaj.db import db_session
from app.samaj.models import User
from app.samaj.modules.family_members.models import FamilyMember
from app.samaj.rbac import require_permission

bp = Blueprint("stats", __name__)


def collect_stats(s, now: datetime | None = None) -> dict[str, int]:
    now = now or datetime.utcnow()
    live = s.query(User).filter(User.deleted_at.is_(None))

    def count(*criteria) -> int:
        return live.filter(*criteria).count()

    live_members = s.query(FamilyMember).filter(FamilyMember.deleted_at.is_(None))
    total_families = (
        s.query(func.count(func.distinct(User.sub_family_number)))
        .filter(User.deleted_at.is_(None), User.sub_family_number.isnot(None))
        .scalar()
    )
    return {
        "pending": count(User.status == "pending"),
        "approved": count(User.status == "approved"),
        "rejected": count(User.status == "rejected"),
        "total": live.count(),
        "users": count(User.role == "user"),
        "committee": count(User.role == "committee", User.status == "approved", User.is_active.is_(True)),
        "moderators": count(User.role == "moderator"),
        "admins": count(User.role == "admin"),
        "totalFamilyMembers": live_members.filter(
            FamilyMember.approval_status == "approved", FamilyMember.is_active.is_(True)
        ).count(),
        "pendingFamilyMembers": live_members.filter(FamilyMember.approval_status == "pending").count(),
        "totalFamilies": int(total_families or 0),
        "activeUsers": count(User.is_active.is_(True)),
        "inactiveUsers": count(User.is_active.is_(False)),
        "recentRegistrations": count(User.created_at >= now - timedelta(days=7)),
    }


@bp.get("/")
@require_permission("canViewStats")
def stats_get():
    s = db_session()
    return jsonify({"success": True, "stats": collect_stats(s)})
