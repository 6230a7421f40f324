from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone

import jwt
from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from app.samaj.audit import client_ip, log_activity
from app.samaj.db import db_session
from app.samaj.errors import ApiError, validation_error
from app.samaj.models import User
from app.samaj.modules.users.service import (
    authenticate,
    complete_profile,
    issue_reset_token,
    needs_password_change,
    register_user,
    reset_password,
    validate_profile_payload,
    validate_registration_payload,
)
from app.samaj.rbac import current_user, login_required
from app.samaj.utils import clean_str

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds
TOKEN_COOKIE = "token"


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


# ---------- Tokens ----------
def issue_token(user: User) -> str:
    days = int(current_app.config.get("JWT_EXPIRE_DAYS") or 5)
    payload = {"id": user.id, "exp": datetime.now(timezone.utc) + timedelta(days=days)}
    return jwt.encode(payload, current_app.config["JWT_SECRET"], algorithm="HS256")


def decode_token(token: str) -> int | None:
    try:
        payload = jwt.decode(token, current_app.config["JWT_SECRET"], algorithms=["HS256"])
    except jwt.PyJWTError:
        return None
    user_id = payload.get("id")
    return int(user_id) if user_id is not None else None


def _request_token() -> str | None:
    header = request.headers.get("Authorization") or ""
    if header.startswith("Bearer "):
        return header[7:].strip() or None
    return request.cookies.get(TOKEN_COOKIE)


def load_current_user() -> None:
    """
    Loads g.current_user from the bearer token or the token cookie.
    Also assigns a per-request request_id (for activity-log/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    g.auth_error = None

    token = _request_token()
    if not token:
        return
    user_id = decode_token(token)
    if user_id is None:
        g.auth_error = "invalid"
        return

    try:
        s = db_session()
        user = s.get(User, user_id)
    except SQLAlchemyError as e:
        current_app.logger.error("load_current_user DB error: %s (request_id=%s)", e, g.request_id)
        return
    if user is None:
        g.auth_error = "invalid"
        return
    if user.is_deleted:
        g.auth_error = "deleted"
        return
    if not user.is_active:
        g.auth_error = "inactive"
        return
    g.current_user = user


def _token_response(user: User, body: dict, status: int = 200):
    token = issue_token(user)
    resp = jsonify({**body, "token": token})
    resp.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=int(current_app.config.get("COOKIE_EXPIRE_DAYS") or 5) * 24 * 3600,
        httponly=True,
        secure=bool(current_app.config.get("TOKEN_COOKIE_SECURE")),
        samesite=current_app.config.get("TOKEN_COOKIE_SAMESITE") or "Lax",
    )
    return resp, status


# ---------- Routes ----------
@bp.post("/register")
def register():
    s = db_session()
    payload = request.get_json(silent=True) or {}
    errors = validate_registration_payload(s, payload)
    if errors:
        raise validation_error(errors)
    user = register_user(s, payload)
    log_activity(s, performed_by=user, action_type="user_registered", target_user=user)
    s.commit()
    return _token_response(
        user,
        {
            "success": True,
            "message": "User registered successfully. Waiting for admin approval.",
            "user": user.to_dict(),
        },
        201,
    )


@bp.post("/login")
def login():
    payload = request.get_json(silent=True) or {}
    email_or_mobile = clean_str(payload.get("emailOrMobile")) or ""
    password = payload.get("password")
    if not isinstance(password, str):
        password = ""
    ip = client_ip() or "unknown"

    if not email_or_mobile or not password:
        raise ApiError("Please provide email/mobile and password", 400)
    if _check_rate_limit(ip):
        raise ApiError("Too many login attempts. Please wait 5 minutes.", 429)
    _record_attempt(ip)

    s = db_session()
    try:
        user = authenticate(s, email_or_mobile, password)
    except ApiError as e:
        current_app.logger.info("Login failed (%s) ip=%s request_id=%s", e.status_code, ip, g.request_id)
        raise

    _login_attempts[ip].clear()
    log_activity(s, performed_by=user, action_type="user_login", target_user=user)
    s.commit()
    data = user.to_dict()
    data["needsPasswordChange"] = needs_password_change(user, password)
    return _token_response(user, {"success": True, "message": "Login successful", "user": data})


@bp.post("/logout")
def logout():
    resp = jsonify({"success": True, "message": "Logged out successfully"})
    resp.delete_cookie(TOKEN_COOKIE)
    return resp


@bp.post("/forgot-password")
def forgot_password():
    s = db_session()
    payload = request.get_json(silent=True) or {}
    email = clean_str(payload.get("email"))
    if not email:
        raise ApiError("Email is required", 400)
    token = issue_reset_token(s, email)
    s.commit()
    current_app.logger.info("Password reset token issued (request_id=%s)", g.request_id)
    return jsonify(
        {
            "success": True,
            "message": "Password reset token generated",
            "resetToken": token,
            "resetUrl": f"/api/auth/reset-password/{token}",
        }
    )


@bp.post("/reset-password/<token>")
def reset_password_route(token: str):
    s = db_session()
    payload = request.get_json(silent=True) or {}
    user = reset_password(s, token, payload.get("password") or "")
    s.commit()
    return _token_response(user, {"success": True, "message": "Password reset successful", "user": user.to_dict()})


@bp.post("/complete-profile")
@login_required
def complete_profile_route():
    s = db_session()
    payload = request.get_json(silent=True) or {}
    errors = validate_profile_payload(s, payload)
    if errors:
        raise validation_error(errors)
    user = complete_profile(s, current_user(), payload)
    s.commit()
    return jsonify({"success": True, "message": "Profile completed successfully", "user": user.to_dict()})
