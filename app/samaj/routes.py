import mimetypes

from flask import Blueprint, current_app, send_file

from app.samaj.errors import ApiError
from app.samaj.storage import storage_from_config

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """Liveness check. No DB access."""
    return "ok", 200


@bp.get("/uploads/<path:key>")
def uploaded_file(key: str):
    """Serve event media and profile images from the configured storage backend."""
    if ".." in key.split("/"):
        raise ApiError("File not found", 404)
    storage = storage_from_config(current_app.config)
    if not storage.exists(key):
        raise ApiError("File not found", 404)
    mimetype = mimetypes.guess_type(key)[0] or "application/octet-stream"
    return send_file(storage.open(key), mimetype=mimetype, max_age=3600)
