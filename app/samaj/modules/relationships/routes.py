from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.samaj.db import db_session
from app.samaj.modules.relationships.service import (
    delete_relationship,
    family_tree,
    get_relationship_or_404,
    my_relationships,
    request_relationship,
    respond,
)
from app.samaj.rbac import current_user, login_required

bp = Blueprint("relationships", __name__)


@bp.post("/")
@login_required
def relationship_create():
    s = db_session()
    rel = request_relationship(s, request.get_json(silent=True) or {}, current_user())
    s.commit()
    return jsonify({"success": True, "message": "Relationship request sent", "data": rel.to_dict()}), 201


@bp.get("/")
@login_required
def relationships_mine():
    s = db_session()
    rels = my_relationships(s, current_user(), request.args)
    return jsonify({"success": True, "count": len(rels), "data": [r.to_dict() for r in rels]})


@bp.patch("/<int:rel_id>/accept")
@login_required
def relationship_accept(rel_id: int):
    s = db_session()
    rel = respond(s, get_relationship_or_404(s, rel_id), current_user(), accept=True)
    s.commit()
    return jsonify({"success": True, "message": "Relationship accepted", "data": rel.to_dict()})


@bp.patch("/<int:rel_id>/reject")
@login_required
def relationship_reject(rel_id: int):
    s = db_session()
    rel = respond(s, get_relationship_or_404(s, rel_id), current_user(), accept=False)
    s.commit()
    return jsonify({"success": True, "message": "Relationship rejected", "data": rel.to_dict()})


@bp.delete("/<int:rel_id>")
@login_required
def relationship_delete(rel_id: int):
    s = db_session()
    delete_relationship(s, get_relationship_or_404(s, rel_id), current_user())
    s.commit()
    return jsonify({"success": True, "message": "Relationship removed"})


@bp.get("/family-tree/<int:user_id>")
@login_required
def relationship_tree(user_id: int):
    s = db_session()
    return jsonify({"success": True, "data": family_tree(s, user_id, current_user())})
