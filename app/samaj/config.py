import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    jwt_secret: str
    jwt_expire_days: int
    cookie_expire_days: int
    cors_origins: str

    storage_backend: str
    upload_folder: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    secret_key = _getenv("SECRET_KEY", "change-me")
    return Settings(
        secret_key=secret_key,
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///samaj.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        jwt_secret=_getenv("JWT_SECRET", secret_key),
        jwt_expire_days=_getenv_int("JWT_EXPIRE_DAYS", 5),
        cookie_expire_days=_getenv_int("COOKIE_EXPIRE_DAYS", 5),
        cors_origins=_getenv("CORS_ORIGINS", "*"),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        upload_folder=_getenv("UPLOAD_FOLDER", "uploads"),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "nyc3"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "JWT_SECRET": s.jwt_secret,
        "JWT_EXPIRE_DAYS": s.jwt_expire_days,
        "COOKIE_EXPIRE_DAYS": s.cookie_expire_days,
        "CORS_ORIGINS": [o.strip() for o in s.cors_origins.split(",") if o.strip()] or ["*"],
        "STORAGE_BACKEND": s.storage_backend,
        "UPLOAD_FOLDER": s.upload_folder,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        # token cookie defaults
        "TOKEN_COOKIE_SECURE": is_production,
        "TOKEN_COOKIE_SAMESITE": "Lax",
        # event media and profile images (50MB)
        "MAX_CONTENT_LENGTH": 50 * 1024 * 1024,
    }
