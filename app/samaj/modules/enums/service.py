from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.samaj.audit import log_activity
from app.samaj.constants import EDITABLE_ENUMS
from app.samaj.errors import ApiError
from app.samaj.modules.enums.models import EnumList
from app.samaj.utils import clean_str

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.samaj.models import User

logger = logging.getLogger(__name__)


def is_valid_enum_type(enum_type: str) -> bool:
    return enum_type in EDITABLE_ENUMS


def get_enum_values(s: "Session", enum_type: str) -> list[str]:
    """Active DB values for an enum type, falling back to the built-in defaults."""
    row = s.query(EnumList).filter(EnumList.enum_type == enum_type, EnumList.is_active.is_(True)).one_or_none()
    if row is not None and row.values:
        return list(row.values)
    return list(EDITABLE_ENUMS.get(enum_type, []))


def all_enum_values(s: "Session") -> dict[str, list[str]]:
    merged = {k: list(v) for k, v in EDITABLE_ENUMS.items()}
    for row in s.query(EnumList).filter(EnumList.is_active.is_(True)).all():
        if row.values:
            merged[row.enum_type] = list(row.values)
    return merged


def get_active_enum(s: "Session", enum_type: str) -> EnumList:
    row = s.query(EnumList).filter(EnumList.enum_type == enum_type, EnumList.is_active.is_(True)).one_or_none()
    if row is None:
        raise ApiError(f"Enum type {enum_type} not found", 404)
    return row


def _clean_values(values: Any) -> list[str]:
    if not isinstance(values, list):
        return []
    out: list[str] = []
    for v in values:
        if isinstance(v, str) and v.strip() and v.strip() not in out:
            out.append(v.strip())
    return out


def validate_enum_payload(payload: dict) -> list[str]:
    errors: list[str] = []
    enum_type = clean_str(payload.get("enumType")) or ""
    if not is_valid_enum_type(enum_type):
        errors.append(f"Invalid enum type. Must be one of: {', '.join(EDITABLE_ENUMS)}")
    if not _clean_values(payload.get("values")):
        errors.append("Values must be a non-empty array of strings")
    return errors


def upsert_enum(s: "Session", payload: dict, user: "User") -> tuple[EnumList, bool]:
    """Create or replace the values of an enum type. Returns (row, created)."""
    enum_type = clean_str(payload.get("enumType"))
    values = _clean_values(payload.get("values"))
    now = datetime.utcnow()
    row = s.query(EnumList).filter(EnumList.enum_type == enum_type).one_or_none()
    created = row is None
    if row is None:
        row = EnumList(enum_type=enum_type, created_at=now)
        s.add(row)
    row.values = values
    row.is_active = True
    if "description" in payload:
        row.description = clean_str(payload.get("description"))
    row.updated_at = now
    s.flush()
    log_activity(
        s,
        performed_by=user,
        action_type="enum_updated",
        details={"enumType": enum_type, "count": len(values), "created": created},
        description=f"Enum {enum_type} {'created' if created else 'updated'}",
    )
    return row, created


def add_enum_value(s: "Session", enum_type: str, value: Any, user: "User") -> EnumList:
    if not isinstance(value, str) or not value.strip():
        raise ApiError("Value must be a non-empty string", 400)
    value = value.strip()
    row = get_active_enum(s, enum_type)
    if value in (row.values or []):
        raise ApiError(f"Value '{value}' already exists in {enum_type}", 409)
    # Reassign so the JSON column is flagged dirty.
    row.values = list(row.values or []) + [value]
    row.updated_at = datetime.utcnow()
    s.flush()
    log_activity(s, performed_by=user, action_type="enum_value_added", details={"enumType": enum_type, "value": value})
    return row


def remove_enum_value(s: "Session", enum_type: str, value: Any, user: "User") -> EnumList:
    row = get_active_enum(s, enum_type)
    values = list(row.values or [])
    if value not in values:
        raise ApiError(f"Value '{value}' not found in {enum_type}", 404)
    if len(values) == 1:
        raise ApiError("Cannot remove the last value from an enum", 400)
    values.remove(value)
    row.values = values
    row.updated_at = datetime.utcnow()
    s.flush()
    log_activity(s, performed_by=user, action_type="enum_value_removed", details={"enumType": enum_type, "value": value})
    return row


def initialize_enums(s: "Session", user: "User | None" = None) -> list[EnumList]:
    """Seed every editable enum from the defaults; existing rows are left untouched."""
    now = datetime.utcnow()
    created: list[EnumList] = []
    for enum_type, defaults in EDITABLE_ENUMS.items():
        row = s.query(EnumList).filter(EnumList.enum_type == enum_type).one_or_none()
        if row is not None:
            continue
        row = EnumList(
            enum_type=enum_type,
            values=list(defaults),
            is_active=True,
            description=f"Default values for {enum_type}",
            created_at=now,
            updated_at=now,
        )
        s.add(row)
        created.append(row)
    s.flush()
    if created:
        logger.info("Seeded %s enum types", len(created))
        log_activity(
            s,
            performed_by=user,
            action_type="enums_initialized",
            details={"created": [r.enum_type for r in created]},
        )
    return created
