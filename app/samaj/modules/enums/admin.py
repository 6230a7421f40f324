from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.samaj.db import db_session
from app.samaj.errors import validation_error
from app.samaj.modules.enums.models import EnumList
from app.samaj.modules.enums.service import (
    add_enum_value,
    all_enum_values,
    get_active_enum,
    initialize_enums,
    remove_enum_value,
    upsert_enum,
    validate_enum_payload,
)
from app.samaj.rbac import current_user, require_permission

bp = Blueprint("enums", __name__)


@bp.get("/")
def enums_list():
    s = db_session()
    rows = s.query(EnumList).filter(EnumList.is_active.is_(True)).order_by(EnumList.enum_type.asc()).all()
    return jsonify({"success": True, "data": all_enum_values(s), "enums": [r.to_dict() for r in rows]})


@bp.get("/<enum_type>")
def enum_detail(enum_type: str):
    s = db_session()
    row = get_active_enum(s, enum_type)
    return jsonify({"success": True, "data": row.to_dict()})


@bp.post("/")
@require_permission("canManageEnums")
def enum_upsert():
    s = db_session()
    payload = request.get_json(silent=True) or {}
    errors = validate_enum_payload(payload)
    if errors:
        raise validation_error(errors)
    row, created = upsert_enum(s, payload, current_user())
    s.commit()
    return (
        jsonify({"success": True, "message": "Enum created" if created else "Enum updated", "data": row.to_dict()}),
        201 if created else 200,
    )


@bp.patch("/<enum_type>/add-value")
@require_permission("canManageEnums")
def enum_add_value(enum_type: str):
    s = db_session()
    payload = request.get_json(silent=True) or {}
    row = add_enum_value(s, enum_type, payload.get("value"), current_user())
    s.commit()
    return jsonify({"success": True, "message": "Value added", "data": row.to_dict()})


@bp.patch("/<enum_type>/remove-value")
@require_permission("canManageEnums")
def enum_remove_value(enum_type: str):
    s = db_session()
    payload = request.get_json(silent=True) or {}
    row = remove_enum_value(s, enum_type, payload.get("value"), current_user())
    s.commit()
    return jsonify({"success": True, "message": "Value removed", "data": row.to_dict()})


@bp.post("/initialize")
@require_permission("canManageEnums")
def enums_initialize():
    s = db_session()
    created = initialize_enums(s, current_user())
    s.commit()
    return jsonify(
        {
            "success": True,
            "message": f"Initialized {len(created)} enum types",
            "created": [r.enum_type for r in created],
        }
    )
