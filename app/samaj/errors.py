"""
JSON error envelope shared by every blueprint.

All failures leave the API as:
    {"success": false, "message": "...", "errors": [{"message": "..."}]}
"""
from __future__ import annotations

from typing import Any

from flask import Flask, g, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    """Raised by services and routes; rendered by the handlers below."""

    def __init__(self, message: str, status_code: int = 400, errors: list[dict[str, Any]] | None = None, **extra: Any):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.errors = errors
        self.extra = extra


def validation_error(messages: list[str]) -> ApiError:
    """Wrap the list[str] produced by validate_*_payload helpers."""
    return ApiError("Validation failed", 400, errors=[{"message": m} for m in messages])


def error_response(message: str, status_code: int, errors: list[dict[str, Any]] | None = None, **extra: Any):
    body: dict[str, Any] = {
        "success": False,
        "message": message,
        "errors": errors if errors is not None else [{"message": message}],
    }
    body.update(extra)
    return jsonify(body), status_code


def _duplicate_field(exc: IntegrityError) -> str | None:
    text = str(getattr(exc, "orig", exc)).lower()
    for field in ("email", "mobile_number", "role_name", "enum_type"):
        if field in text:
            return field
    return None


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):  # type: ignore[no-redef]
        if e.status_code >= 500:
            app.logger.error("ApiError %s: %s (request_id=%s)", e.status_code, e.message, getattr(g, "request_id", None))
        return error_response(e.message, e.status_code, e.errors, **e.extra)

    @app.errorhandler(IntegrityError)
    def _integrity_error(e: IntegrityError):  # type: ignore[no-redef]
        s = getattr(g, "db_session", None)
        if s is not None:
            s.rollback()
        field = _duplicate_field(e)
        app.logger.warning("IntegrityError field=%s request_id=%s: %s", field, getattr(g, "request_id", None), e.orig)
        if field:
            return error_response(f"Duplicate {field} entered", 409)
        return error_response("Duplicate or conflicting record", 409)

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):  # type: ignore[no-redef]
        if e.code == 403:
            missing = getattr(g, "missing_permission", None)
            if missing:
                app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        if e.code == 413:
            return error_response("File too large. Maximum size is 50MB.", 413)
        return error_response(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def _unhandled(e: Exception):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return error_response("Internal Server Error", 500)
