"""
Primary-account transfer.

Each sub-family has exactly one primary account. Transferring it moves the
primary flag (and optionally the owned family-member records) to another
approved account of the same sub-family and appends a PrimaryAccountTransfer
record to the history chain.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.samaj.audit import log_activity
from app.samaj.constants import DECEASED_REASON_MARKERS, STATUS_DECEASED
from app.samaj.errors import ApiError
from app.samaj.models import PrimaryAccountTransfer, User
from app.samaj.modules.family_members.models import FamilyMember
from app.samaj.utils import as_int, clean_str, full_name

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

DEFAULT_TRANSFER_REASON = "Primary account transfer"


def reason_reports_death(reason: str | None) -> bool:
    text = (reason or "").lower()
    return any(marker in text for marker in DECEASED_REASON_MARKERS)


def transfer_history(s: "Session", user: User) -> list[PrimaryAccountTransfer]:
    """Walk the chain ending at user.last_transfer_id; oldest first."""
    out: list[PrimaryAccountTransfer] = []
    seen: set[int] = set()
    next_id = user.last_transfer_id
    while next_id is not None and next_id not in seen:
        seen.add(next_id)
        record = s.get(PrimaryAccountTransfer, next_id)
        if record is None:
            break
        out.append(record)
        next_id = record.previous_transfer_id
    out.reverse()
    return out


def transfer_primary(s: "Session", current_primary_id: int, payload: dict, actor: User) -> dict[str, Any]:
    new_primary_id = as_int(payload.get("newPrimaryUserId"))
    if not new_primary_id:
        raise ApiError("newPrimaryUserId is required", 400)

    current = s.get(User, current_primary_id)
    new_primary = s.get(User, new_primary_id)
    if current is None or new_primary is None:
        raise ApiError("User not found", 404)
    if not current.is_primary_account:
        raise ApiError("Current user is not a primary account", 400)
    if not current.sub_family_number or current.sub_family_number != new_primary.sub_family_number:
        raise ApiError("Both users must belong to the same sub-family", 400)
    if new_primary.is_primary_account:
        raise ApiError("Selected user is already a primary account", 400)

    sfn = current.sub_family_number
    reason = clean_str(payload.get("reason")) or DEFAULT_TRANSFER_REASON
    now = datetime.utcnow()

    # An explicit list (even []) limits what moves. No list moves everything.
    selected = payload.get("familyMemberIds")
    selected_ids: list[int] | None = None
    if selected is not None:
        if not isinstance(selected, list):
            raise ApiError("familyMemberIds must be a list", 400)
        try:
            selected_ids = [int(i) for i in selected]
        except (TypeError, ValueError) as e:
            raise ApiError("Invalid family member selected", 400) from e

    # 1. exactly one primary per sub-family
    s.query(User).filter(
        User.sub_family_number == sfn,
        User.is_primary_account.is_(True),
        User.id.notin_((current.id, new_primary.id)),
    ).update({User.is_primary_account: False}, synchronize_session=False)

    # 2. family-member records
    q = s.query(FamilyMember).filter(FamilyMember.user_id == current.id, FamilyMember.deleted_at.is_(None))
    if selected_ids is not None:
        q = q.filter(FamilyMember.id.in_(selected_ids))
    members = q.all()
    for m in members:
        m.user_id = new_primary.id
        m.updated_at = now
    migrated = len(members)

    # 3. history record
    record = PrimaryAccountTransfer(
        previous_transfer_id=current.last_transfer_id,
        sub_family_number=sfn,
        from_user_id=current.id,
        from_user_name=full_name(current),
        to_user_id=new_primary.id,
        to_user_name=full_name(new_primary),
        transferred_by_id=actor.id,
        transferred_at=now,
        reason=reason,
        family_members_migrated=migrated,
    )
    s.add(record)
    s.flush()
    current.last_transfer_id = record.id
    new_primary.last_transfer_id = record.id

    # 4. old primary
    current.is_primary_account = False
    current.family_members_count = max(current.family_members_count - migrated, 0)
    if reason_reports_death(reason):
        current.status = STATUS_DECEASED
        current.is_active = False
    current.updated_at = now

    # 5. new primary
    new_primary.is_primary_account = True
    new_primary.family_members_count = new_primary.family_members_count + migrated
    new_primary.transferred_from_id = current.id
    new_primary.transferred_at = now
    new_primary.transferred_by_id = actor.id
    new_primary.transfer_reason = reason
    new_primary.updated_at = now
    s.flush()

    logger.info(
        "Primary transferred sub_family=%s from=%s to=%s migrated=%s",
        sfn,
        current.id,
        new_primary.id,
        migrated,
    )
    log_activity(
        s,
        performed_by=actor,
        action_type="primary_account_transferred",
        target_user=new_primary,
        details={
            "fromUserId": current.id,
            "toUserId": new_primary.id,
            "subFamilyNumber": sfn,
            "reason": reason,
            "familyMembersMigrated": migrated,
            "previousPrimaryStatus": current.status,
        },
        description=f"Primary account moved from {full_name(current)} to {full_name(new_primary)}",
    )
    return {
        "previousPrimary": current.to_dict(include_role=False),
        "newPrimary": new_primary.to_dict(include_role=False),
        "transfer": record.to_dict(),
        "familyMembersMigrated": migrated,
        "transferHistory": [r.to_dict() for r in transfer_history(s, new_primary)],
    }
