from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_

from app.samaj.errors import ApiError
from app.samaj.models import User
from app.samaj.modules.family_members.models import FamilyMember
from app.samaj.utils import as_bool, as_int, clean_str, day_end_exclusive, day_start, page_count, paginate, parse_date

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def _user_search_clause(term: str, *, include_sub_family: bool = False):
    like = f"%{term}%"
    clauses = [
        User.first_name.ilike(like),
        User.middle_name.ilike(like),
        User.last_name.ilike(like),
        User.email.ilike(like),
        User.mobile_number.ilike(like),
    ]
    if include_sub_family:
        clauses.append(User.sub_family_number.ilike(like))
    return or_(*clauses)


def list_users(s: "Session", args: Any, page: int, limit: int) -> tuple[list[User], int, int]:
    q = s.query(User).filter(User.deleted_at.is_(None))
    role = clean_str(args.get("role"))
    if role:
        q = q.filter(User.role == role)
    status = clean_str(args.get("status"))
    if status:
        q = q.filter(User.status == status)
    search = clean_str(args.get("search"))
    if search:
        q = q.filter(_user_search_clause(search))
    return paginate(q.order_by(User.created_at.desc(), User.id.desc()), page, limit)


def _parse_filter_date(raw: Any, label: str) -> date | None:
    try:
        return parse_date(raw)
    except ValueError as e:
        raise ApiError(f"Invalid {label}", 400) from e


def search_users(s: "Session", args: Any, page: int, limit: int) -> tuple[list[User], int, int]:
    q = s.query(User)
    if not as_bool(args.get("includeDeleted")):
        q = q.filter(User.deleted_at.is_(None))

    term = clean_str(args.get("q"))
    if term:
        q = q.filter(_user_search_clause(term, include_sub_family=True))
    for arg, column in (("role", User.role), ("status", User.status), ("samaj", User.samaj), ("country", User.country)):
        value = clean_str(args.get(arg))
        if value:
            q = q.filter(column == value)

    start = _parse_filter_date(args.get("startDate"), "startDate")
    if start:
        q = q.filter(User.created_at >= day_start(start))
    end = _parse_filter_date(args.get("endDate"), "endDate")
    if end:
        # end date is inclusive
        q = q.filter(User.created_at < day_end_exclusive(end))

    min_age = as_int(args.get("minAge"))
    if min_age is not None:
        q = q.filter(User.age >= min_age)
    max_age = as_int(args.get("maxAge"))
    if max_age is not None:
        q = q.filter(User.age <= max_age)
    min_family = as_int(args.get("minFamilySize"))
    if min_family is not None:
        q = q.filter(User.family_members_count >= min_family)
    max_family = as_int(args.get("maxFamilySize"))
    if max_family is not None:
        q = q.filter(User.family_members_count <= max_family)

    return paginate(q.order_by(User.created_at.desc(), User.id.desc()), page, limit)


def search_families(s: "Session", term: str | None, limit: int = 20) -> list[dict[str, Any]]:
    q = s.query(User).filter(
        User.is_primary_account.is_(True),
        User.deleted_at.is_(None),
        User.sub_family_number.isnot(None),
    )
    term = clean_str(term)
    if term:
        like = f"%{term}%"
        q = q.filter(
            or_(
                User.first_name.ilike(like),
                User.last_name.ilike(like),
                User.sub_family_number.ilike(like),
            )
        )
    primaries = q.order_by(User.first_name.asc()).limit(limit).all()
    if not primaries:
        return []

    sfns = [p.sub_family_number for p in primaries]
    member_counts = dict(
        s.query(FamilyMember.sub_family_number, func.count(FamilyMember.id))
        .filter(
            FamilyMember.sub_family_number.in_(sfns),
            FamilyMember.approval_status == "approved",
            FamilyMember.is_active.is_(True),
        )
        .group_by(FamilyMember.sub_family_number)
        .all()
    )
    account_counts = dict(
        s.query(User.sub_family_number, func.count(User.id))
        .filter(User.sub_family_number.in_(sfns), User.deleted_at.is_(None), User.status == "approved")
        .group_by(User.sub_family_number)
        .all()
    )
    return [
        {
            "primaryUser": p.summary() | {"mobileNumber": p.mobile_number},
            "subFamilyNumber": p.sub_family_number,
            "samaj": p.samaj,
            "memberCount": int(member_counts.get(p.sub_family_number, 0)) + int(account_counts.get(p.sub_family_number, 0)),
        }
        for p in primaries
    ]


def committee_members(s: "Session") -> list[User]:
    return (
        s.query(User)
        .filter(
            User.role == "committee",
            User.status == "approved",
            User.is_active.is_(True),
            User.deleted_at.is_(None),
        )
        .order_by(User.committee_display_order.asc(), User.created_at.asc())
        .all()
    )


def family_users(s: "Session", sfn: str) -> list[User]:
    return (
        s.query(User)
        .filter(
            User.sub_family_number == sfn,
            User.status == "approved",
            User.is_active.is_(True),
            User.deleted_at.is_(None),
        )
        .order_by(User.is_primary_account.desc(), User.first_name.asc())
        .all()
    )


def approved_family_members(s: "Session", sfn: str) -> list[FamilyMember]:
    return (
        s.query(FamilyMember)
        .filter(
            FamilyMember.sub_family_number == sfn,
            FamilyMember.approval_status == "approved",
            FamilyMember.is_active.is_(True),
            FamilyMember.deleted_at.is_(None),
        )
        .all()
    )


def _matches(entry: dict[str, Any], term: str) -> bool:
    term = term.lower()
    for key in ("firstName", "middleName", "lastName", "email", "mobileNumber"):
        if term in str(entry.get(key) or "").lower():
            return True
    return False


def _slice(entries: list[dict[str, Any]], page: int, limit: int) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    total = len(entries)
    pages = page_count(total, limit)
    start = (page - 1) * limit
    return entries[start : start + limit], {
        "currentPage": page,
        "totalPages": pages,
        "total": total,
        "limit": limit,
        "hasNextPage": page < pages,
        "hasPrevPage": page > 1,
    }


def family_complete(s: "Session", sfn: str, args: Any, page: int, limit: int) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    """Users and approved family-member records of one sub-family, as one list."""
    kind = (clean_str(args.get("type")) or "all").lower()
    entries: list[dict[str, Any]] = []
    if kind in ("all", "users"):
        for u in family_users(s, sfn):
            entries.append(u.to_dict(include_role=False) | {"memberType": "user"})
    if kind in ("all", "familymembers", "family_members"):
        for m in approved_family_members(s, sfn):
            entries.append(m.to_dict() | {"memberType": "familyMember"})
    search = clean_str(args.get("search"))
    if search:
        entries = [e for e in entries if _matches(e, search)]
    entries.sort(key=lambda e: (e.get("firstName") or "").lower())
    return _slice(entries, page, limit)


def all_people(s: "Session", args: Any, page: int, limit: int) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    """Admin view merging user accounts and family-member records, newest first."""
    kind = clean_str(args.get("type"))
    search = clean_str(args.get("search"))
    entries: list[dict[str, Any]] = []
    if kind in (None, "user"):
        q = s.query(User).filter(User.deleted_at.is_(None))
        if search:
            q = q.filter(_user_search_clause(search))
        entries.extend(u.to_dict(include_role=False) | {"type": "user"} for u in q.all())
    if kind in (None, "family_member"):
        q = s.query(FamilyMember).filter(FamilyMember.deleted_at.is_(None))
        if search:
            like = f"%{search}%"
            q = q.filter(
                or_(
                    FamilyMember.first_name.ilike(like),
                    FamilyMember.last_name.ilike(like),
                    FamilyMember.email.ilike(like),
                    FamilyMember.mobile_number.ilike(like),
                )
            )
        entries.extend(m.to_dict() | {"type": "family_member"} for m in q.all())
    entries.sort(key=lambda e: e.get("createdAt") or "", reverse=True)
    return _slice(entries, page, limit)


def family_for_transfer(s: "Session", primary: User) -> dict[str, Any]:
    eligible = (
        s.query(User)
        .filter(
            User.sub_family_number == primary.sub_family_number,
            User.id != primary.id,
            User.is_primary_account.is_(False),
            User.status == "approved",
            User.is_active.is_(True),
            User.deleted_at.is_(None),
        )
        .order_by(User.first_name.asc())
        .all()
    )
    records = (
        s.query(FamilyMember)
        .filter(FamilyMember.user_id == primary.id, FamilyMember.deleted_at.is_(None))
        .order_by(FamilyMember.created_at.asc())
        .all()
    )
    return {
        "primaryUser": primary.to_dict(include_role=False),
        "eligibleForPrimary": [u.to_dict(include_role=False) for u in eligible],
        "familyMemberRecords": [m.to_dict() for m in records],
    }


def owned_family_members(s: "Session", user_id: int) -> list[FamilyMember]:
    return (
        s.query(FamilyMember)
        .filter(FamilyMember.user_id == user_id, FamilyMember.is_active.is_(True), FamilyMember.deleted_at.is_(None))
        .order_by(FamilyMember.created_at.asc())
        .all()
    )


def deleted_users(s: "Session", page: int, limit: int) -> tuple[list[User], int, int]:
    q = s.query(User).filter(User.deleted_at.isnot(None), User.delete_type == "soft")
    return paginate(q.order_by(User.deleted_at.desc()), page, limit)