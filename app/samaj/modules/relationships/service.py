from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, or_

from app.samaj.audit import log_activity
from app.samaj.constants import RELATIONSHIP_DIRECTIONS, RELATIONSHIP_STATUS
from app.samaj.errors import ApiError
from app.samaj.models import User
from app.samaj.modules.enums.service import get_enum_values
from app.samaj.modules.relationships.models import UserRelationship
from app.samaj.rbac import user_has_permission
from app.samaj.utils import as_int, clean_str

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def _pair_clause(a: int, b: int):
    return or_(
        and_(UserRelationship.user1_id == a, UserRelationship.user2_id == b),
        and_(UserRelationship.user1_id == b, UserRelationship.user2_id == a),
    )


def find_pair(s: "Session", a: int, b: int) -> UserRelationship | None:
    return s.query(UserRelationship).filter(_pair_clause(a, b)).first()


def get_relationship_or_404(s: "Session", rel_id: int) -> UserRelationship:
    rel = s.get(UserRelationship, rel_id)
    if rel is None:
        raise ApiError("Relationship not found", 404)
    return rel


def request_relationship(s: "Session", payload: dict, user: User) -> UserRelationship:
    target_id = as_int(payload.get("user2Id"))
    if target_id is None:
        raise ApiError("user2Id is required", 400)
    if target_id == user.id:
        raise ApiError("You cannot create a relationship with yourself", 400)

    rel_type = payload.get("relationshipType")
    if rel_type not in get_enum_values(s, "RELATIONSHIP_TYPES"):
        raise ApiError("Invalid relationship type", 400)
    direction = payload.get("relationshipFrom") or "user1_to_user2"
    if direction not in RELATIONSHIP_DIRECTIONS:
        raise ApiError(f"Invalid relationship direction. Must be one of: {', '.join(RELATIONSHIP_DIRECTIONS)}", 400)

    target = s.get(User, target_id)
    if target is None or target.is_deleted or not target.is_active:
        raise ApiError("User not found", 404)

    now = datetime.utcnow()
    rel = find_pair(s, user.id, target.id)
    if rel is not None:
        if rel.status in ("accepted", "pending"):
            raise ApiError("A relationship between these users already exists", 400)
        # Reopen a rejected pair as a fresh request from the caller.
        rel.user1 = user
        rel.user2 = target
        rel.approved_by_id = None
    else:
        rel = UserRelationship(user1=user, user2=target, created_at=now)
        s.add(rel)
    rel.relationship_type = rel_type
    rel.relationship_from = direction
    rel.status = "pending"
    rel.requested_by_id = user.id
    rel.note = clean_str(payload.get("note"))
    rel.updated_at = now
    s.flush()
    log_activity(
        s,
        performed_by=user,
        action_type="relationship_request_sent",
        target_user=target,
        details={"relationshipId": rel.id, "relationshipType": rel_type},
    )
    return rel


def my_relationships(s: "Session", user: User, args: Any) -> list[UserRelationship]:
    q = s.query(UserRelationship)
    kind = args.get("type")
    if kind == "sent":
        q = q.filter(UserRelationship.requested_by_id == user.id)
    elif kind == "received":
        q = q.filter(
            or_(UserRelationship.user1_id == user.id, UserRelationship.user2_id == user.id),
            UserRelationship.requested_by_id != user.id,
        )
    else:
        q = q.filter(or_(UserRelationship.user1_id == user.id, UserRelationship.user2_id == user.id))
    status = args.get("status")
    if status:
        if status not in RELATIONSHIP_STATUS:
            raise ApiError(f"Invalid status. Must be one of: {', '.join(RELATIONSHIP_STATUS)}", 400)
        q = q.filter(UserRelationship.status == status)
    return q.order_by(UserRelationship.created_at.desc()).all()


def respond(s: "Session", rel: UserRelationship, user: User, accept: bool) -> UserRelationship:
    if user.id not in (rel.user1_id, rel.user2_id):
        raise ApiError("You are not part of this relationship", 403)
    if rel.requested_by_id == user.id:
        raise ApiError("You cannot respond to your own request", 400)
    if rel.status != "pending":
        raise ApiError(f"Relationship already {rel.status}", 400)
    rel.status = "accepted" if accept else "rejected"
    rel.approved_by_id = user.id if accept else None
    rel.updated_at = datetime.utcnow()
    s.flush()
    log_activity(
        s,
        performed_by=user,
        action_type="relationship_accepted" if accept else "relationship_rejected",
        target_user=rel.requested_by_id,
        details={"relationshipId": rel.id},
    )
    return rel


def delete_relationship(s: "Session", rel: UserRelationship, user: User) -> None:
    if user.id not in (rel.user1_id, rel.user2_id):
        raise ApiError("You are not part of this relationship", 403)
    other = rel.other_party_id(user.id)
    rel_id = rel.id
    s.delete(rel)
    s.flush()
    log_activity(
        s,
        performed_by=user,
        action_type="relationship_deleted",
        target_user=other,
        details={"relationshipId": rel_id},
    )


def family_tree(s: "Session", user_id: int, viewer: User) -> dict[str, Any]:
    if viewer.id != user_id and not user_has_permission(viewer, "canViewUsers"):
        raise ApiError("You don't have permission to view this family tree", 403)
    root = s.get(User, user_id)
    if root is None or root.is_deleted:
        raise ApiError("User not found", 404)

    rels = (
        s.query(UserRelationship)
        .filter(
            or_(UserRelationship.user1_id == user_id, UserRelationship.user2_id == user_id),
            UserRelationship.status == "accepted",
        )
        .all()
    )
    nodes: dict[int, dict[str, Any]] = {root.id: {**root.summary(), "isRoot": True}}
    edges = []
    for rel in rels:
        for u in (rel.user1, rel.user2):
            if u is not None and u.id not in nodes:
                nodes[u.id] = {**u.summary(), "isRoot": False}
        edges.append(
            {
                "id": rel.id,
                "from": rel.user1_id,
                "to": rel.user2_id,
                "relationshipType": rel.relationship_type,
                "relationshipFrom": rel.relationship_from,
            }
        )
    return {
        "user": root.summary(),
        "relationships": [r.to_dict() for r in rels],
        "nodes": list(nodes.values()),
        "edges": edges,
    }
