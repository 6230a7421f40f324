from __future__ import annotations

import csv
import io
from datetime import date
from typing import Any, Iterable

from flask import Blueprint, send_file

from app.samaj.audit import log_activity
from app.samaj.db import db_session
from app.samaj.errors import ApiError
from app.samaj.models import User
from app.samaj.modules.users.queries import approved_family_members, committee_members
from app.samaj.rbac import current_user, require_permission
from app.samaj.utils import bare_mobile, iso

bp = Blueprint("exports", __name__)

USER_COLUMNS = [
    "First Name", "Middle Name", "Last Name", "Email", "Mobile", "Date of Birth", "Age",
    "Address Line 1", "Address Line 2", "City", "State", "Country", "Pincode", "Samaj",
    "Occupation Type", "Occupation Title", "Company/Business", "Qualification", "Marital Status",
    "Role", "Status", "Committee Position", "Sub-Family Number", "Family Members Count",
    "Active", "Created At", "Updated At",
]


def _user_row(u: User) -> list[Any]:
    return [
        u.first_name, u.middle_name or "", u.last_name, u.email, bare_mobile(u.mobile_number) or "",
        iso(u.date_of_birth) or "", u.age if u.age is not None else "",
        u.address_line1 or "", u.address_line2 or "", u.city or "", u.state or "", u.country or "",
        u.pincode or "", u.samaj or "",
        u.occupation_type or "", u.occupation_title or "", u.company_or_business_name or "",
        u.qualification or "", u.marital_status or "",
        u.role, u.status, u.committee_position or "", u.sub_family_number or "", u.family_members_count,
        "Yes" if u.is_active else "No", iso(u.created_at) or "", iso(u.updated_at) or "",
    ]


def _csv_attachment(kind: str, header: list[str], rows: Iterable[list[Any]], *, details: dict[str, Any] | None = None):
    rows = list(rows)
    if not rows:
        raise ApiError("No data found to export", 404)
    out = io.StringIO()
    w = csv.writer(out)
    w.writerow(header)
    w.writerows(rows)

    s = db_session()
    log_activity(
        s,
        performed_by=current_user(),
        action_type="data_exported",
        details={"export": kind, "rowCount": len(rows), **(details or {})},
    )
    s.commit()

    return send_file(
        io.BytesIO(out.getvalue().encode("utf-8")),
        mimetype="text/csv",
        as_attachment=True,
        download_name=f"{kind}-{date.today().isoformat()}.csv",
        max_age=0,
    )


@bp.get("/users")
@require_permission("canExportData")
def export_users():
    s = db_session()
    users = s.query(User).order_by(User.created_at.desc()).all()
    return _csv_attachment("users", USER_COLUMNS, (_user_row(u) for u in users))


@bp.get("/pending-users")
@require_permission("canExportData")
def export_pending_users():
    s = db_session()
    users = (
        s.query(User)
        .filter(User.status == "pending", User.deleted_at.is_(None))
        .order_by(User.created_at.asc())
        .all()
    )
    header = ["First Name", "Middle Name", "Last Name", "Email", "Mobile", "Samaj", "Sub-Family Number", "Created At"]
    rows = (
        [
            u.first_name, u.middle_name or "", u.last_name, u.email, bare_mobile(u.mobile_number) or "",
            u.samaj or "", u.sub_family_number or "", iso(u.created_at) or "",
        ]
        for u in users
    )
    return _csv_attachment("pending-users", header, rows)


@bp.get("/family-tree/<sfn>")
@require_permission("canExportData")
def export_family_tree(sfn: str):
    s = db_session()
    primary = (
        s.query(User)
        .filter(User.sub_family_number == sfn, User.is_primary_account.is_(True), User.deleted_at.is_(None))
        .first()
    )
    header = ["Type", "First Name", "Middle Name", "Last Name", "Relationship", "Gender", "Date of Birth", "Age", "Mobile", "Email"]
    rows: list[list[Any]] = []
    if primary is not None:
        rows.append(
            [
                "Main User", primary.first_name, primary.middle_name or "", primary.last_name, "Self",
                primary.gender or "", iso(primary.date_of_birth) or "", primary.age if primary.age is not None else "",
                bare_mobile(primary.mobile_number) or "", primary.email,
            ]
        )
    for m in approved_family_members(s, sfn):
        rows.append(
            [
                "Family Member", m.first_name, m.middle_name or "", m.last_name, m.relationship_to_user,
                m.gender or "", iso(m.date_of_birth) or "", m.age if m.age is not None else "",
                bare_mobile(m.mobile_number) or "", m.email or "",
            ]
        )
    return _csv_attachment(f"family-tree-{sfn}", header, rows, details={"subFamilyNumber": sfn})


@bp.get("/committee-members")
@require_permission("canExportData")
def export_committee_members():
    s = db_session()
    header = ["First Name", "Last Name", "Email", "Mobile", "Position", "Display Order", "Bio", "Sub-Family Number"]
    rows = (
        [
            u.first_name, u.last_name, u.email, bare_mobile(u.mobile_number) or "",
            u.committee_position or "", u.committee_display_order, u.committee_bio or "", u.sub_family_number or "",
        ]
        for u in committee_members(s)
    )
    return _csv_attachment("committee-members", header, rows)
