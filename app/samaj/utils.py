from __future__ import annotations

import math
import re
import secrets
import string
from datetime import date, datetime, time, timedelta
from typing import Any

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_INDIAN_MOBILE_RE = re.compile(r"^[6-9]\d{9}$")
_PINCODE_RE = re.compile(r"^\d{6}$")


# ---------- Phone ----------
def normalize_phone(raw: str | None) -> str | None:
    """Reduce any Indian mobile input to its 10 significant digits."""
    if not raw:
        return None
    digits = re.sub(r"\D", "", str(raw))
    if len(digits) == 11 and digits.startswith("0"):
        digits = digits[1:]
    elif len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]
    if len(digits) != 10:
        return None
    return digits


def format_phone_for_storage(raw: str | None) -> str | None:
    digits = normalize_phone(raw)
    return f"+91{digits}" if digits else None


def is_valid_indian_phone(raw: str | None) -> bool:
    digits = normalize_phone(raw)
    return bool(digits and _INDIAN_MOBILE_RE.match(digits))


def bare_mobile(stored: str | None) -> str | None:
    """+91XXXXXXXXXX -> XXXXXXXXXX"""
    return normalize_phone(stored)


# ---------- Validation ----------
def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))


def is_valid_pincode(pincode: str) -> bool:
    return bool(_PINCODE_RE.match((pincode or "").strip()))


def is_strong_password(password: str) -> bool:
    return (
        len(password or "") >= 8
        and re.search(r"[A-Za-z]", password) is not None
        and re.search(r"\d", password) is not None
    )


def clean_str(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def as_int(value: Any, default: int | None = None) -> int | None:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def as_int_list(value: Any) -> list[int] | None:
    """Coerce a JSON list of ids. None when it is not a list of integers."""
    if not isinstance(value, list):
        return None
    try:
        return [int(v) for v in value]
    except (TypeError, ValueError):
        return None


# ---------- Dates ----------
def parse_date(s: Any) -> date | None:
    """Parse YYYY-MM-DD (or a full ISO timestamp) into a date."""
    if not s:
        return None
    if isinstance(s, datetime):
        return s.date()
    if isinstance(s, date):
        return s
    s = str(s).strip()
    if not s:
        return None
    return date.fromisoformat(s[:10])


def parse_datetime(s: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp into a naive UTC datetime."""
    if not s:
        return None
    if isinstance(s, datetime):
        return s
    s = str(s).strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is not None:
        dt = (dt - dt.utcoffset()).replace(tzinfo=None)  # type: ignore[operator]
    return dt


def day_start(d: date) -> datetime:
    return datetime.combine(d, time.min)


def day_end_exclusive(d: date) -> datetime:
    return datetime.combine(d + timedelta(days=1), time.min)


def age_from_dob(dob: date | None, today: date | None = None) -> int | None:
    if not dob:
        return None
    today = today or date.today()
    age = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        age -= 1
    return age


def iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value else None


# ---------- Family ----------
def generate_sub_family_number(today: date | None = None) -> str:
    """FAM-YYYYMMDD-XXXX"""
    today = today or date.today()
    alphabet = string.ascii_uppercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(4))
    return f"FAM-{today.strftime('%Y%m%d')}-{suffix}"


def full_name(obj: Any) -> str:
    parts = [getattr(obj, "first_name", None), getattr(obj, "last_name", None)]
    return " ".join(p for p in parts if p)


def slugify(name: str) -> str:
    s = re.sub(r"[^a-z0-9]+", "_", (name or "").strip().lower())
    return s.strip("_")


# ---------- Pagination ----------
def page_args(args: Any, default_limit: int = 20, max_limit: int = 200) -> tuple[int, int]:
    page = max(as_int(args.get("page"), 1) or 1, 1)
    limit = as_int(args.get("limit"), default_limit) or default_limit
    limit = min(max(limit, 1), max_limit)
    return page, limit


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def paginate(query: Any, page: int, limit: int) -> tuple[list, int, int]:
    """Apply offset/limit to a SQLAlchemy query. Returns (items, total, pages)."""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, total, page_count(total, limit)
