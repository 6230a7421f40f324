import logging

from dotenv import load_dotenv
from flask import Flask, g, request
from flask_cors import CORS

from app.samaj.auth import bp as auth_bp, load_current_user
from app.samaj.config import load_config
from app.samaj.db import init_db, teardown_db_session
from app.samaj.errors import register_error_handlers
from app.samaj.routes import bp as routes_bp
from app.samaj.modules.users.routes import bp as users_bp
from app.samaj.modules.family_members.routes import bp as family_members_bp
from app.samaj.modules.family_member_requests.routes import bp as family_member_requests_bp
from app.samaj.modules.events.routes import bp as events_bp
from app.samaj.modules.polls.routes import bp as polls_bp
from app.samaj.modules.comments.routes import bp as comments_bp
from app.samaj.modules.relationships.routes import bp as relationships_bp
from app.samaj.modules.roles.admin import bp as roles_bp
from app.samaj.modules.enums.admin import bp as enums_bp
from app.samaj.modules.activity_logs.admin import bp as activity_logs_bp
from app.samaj.modules.stats.admin import bp as stats_bp
from app.samaj.modules.exports.admin import bp as exports_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.url_map.strict_slashes = False

    logging.basicConfig(level=app.config["LOG_LEVEL"])
    app.logger.setLevel(app.config["LOG_LEVEL"])

    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}}, supports_credentials=True)

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if str(app.config.get("JWT_SECRET") or "") in ("", "change-me"):
            raise RuntimeError("JWT_SECRET must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os

        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [k for k in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY") if not app.config.get(k)]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(users_bp, url_prefix="/api/users")
    app.register_blueprint(family_members_bp, url_prefix="/api/family-members")
    app.register_blueprint(family_member_requests_bp, url_prefix="/api/family-member-requests")
    app.register_blueprint(events_bp, url_prefix="/api/events")
    app.register_blueprint(polls_bp, url_prefix="/api/polls")
    app.register_blueprint(comments_bp, url_prefix="/api/comments")
    app.register_blueprint(relationships_bp, url_prefix="/api/user-relationships")
    app.register_blueprint(roles_bp, url_prefix="/api/admin/roles")
    app.register_blueprint(enums_bp, url_prefix="/api/admin/enums")
    app.register_blueprint(activity_logs_bp, url_prefix="/api/admin/activity-logs")
    app.register_blueprint(stats_bp, url_prefix="/api/admin/stats")
    app.register_blueprint(exports_bp, url_prefix="/api/admin/export")

    def _load_user_wrapper():
        if request.path.startswith(("/health", "/healthz", "/uploads/")):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)
    register_error_handlers(app)

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
