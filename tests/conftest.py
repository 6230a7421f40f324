import pytest
from werkzeug.security import generate_password_hash

import app.samaj.auth as samaj_auth
from app.samaj import create_app
from app.samaj.db import session_scope
from app.samaj.models import Base, User
from app.samaj.modules.enums.service import initialize_enums
from app.samaj.modules.roles.service import assign_role, create_role, get_role_by_key, initialize_system_roles
from app.samaj.permissions import SYSTEM_ROLES

ADMIN_EMAIL = "admin@samaj.test"
ADMIN_PASSWORD = "admin-pass"
MEMBER_EMAIL = "member@samaj.test"
MEMBER_MOBILE = "9123456780"
MEMBER_PASSWORD = "member-pass"
MEMBER_SFN = "SF-1001"


def _user(**kw) -> User:
    base = dict(
        status="approved",
        is_active=True,
        is_primary_account=True,
        samaj="Kadva Patidar",
        city="Ahmedabad",
        state="Gujarat",
        pincode="380001",
    )
    base.update(kw)
    return User(**base)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("JWT_SECRET", "test-jwt-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("UPLOAD_FOLDER", str(tmp_path / "uploads"))
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(k, raising=False)
    samaj_auth._login_attempts.clear()

    app = create_app()

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        roles = initialize_system_roles(s)
        initialize_enums(s)
        s.add_all(
            [
                _user(
                    first_name="Asha",
                    last_name="Admin",
                    email=ADMIN_EMAIL,
                    mobile_number="+919876543210",
                    password_hash=generate_password_hash(ADMIN_PASSWORD),
                    role="admin",
                    role_id=roles["admin"].id,
                    sub_family_number="SF-0001",
                ),
                _user(
                    first_name="Mehul",
                    last_name="Patel",
                    email=MEMBER_EMAIL,
                    mobile_number=f"+91{MEMBER_MOBILE}",
                    password_hash=generate_password_hash(MEMBER_PASSWORD),
                    role="user",
                    role_id=roles["user"].id,
                    sub_family_number=MEMBER_SFN,
                ),
            ]
        )

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def login(client):
    def _login(email_or_mobile: str, password: str) -> dict:
        r = client.post("/api/auth/login", json={"emailOrMobile": email_or_mobile, "password": password})
        assert r.status_code == 200, r.json
        return {"Authorization": f"Bearer {r.json['token']}"}

    return _login


@pytest.fixture()
def admin_headers(login):
    return login(ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture()
def member_headers(login):
    return login(MEMBER_EMAIL, MEMBER_PASSWORD)


@pytest.fixture()
def ids(app):
    """Seeded user ids by short name."""
    with session_scope(app) as s:
        rows = s.query(User).filter(User.email.in_((ADMIN_EMAIL, MEMBER_EMAIL))).all()
        return {"admin" if u.email == ADMIN_EMAIL else "member": u.id for u in rows}


@pytest.fixture()
def make_user(app):
    """Insert an extra approved user directly; returns its id."""

    def _make(email: str, mobile: str, *, password: str = "secret-pass", **kw) -> int:
        with session_scope(app) as s:
            role = get_role_by_key(s, kw.pop("role_key", "user"))
            u = _user(
                first_name=kw.pop("first_name", "Extra"),
                last_name=kw.pop("last_name", "User"),
                email=email,
                mobile_number=f"+91{mobile}",
                password_hash=generate_password_hash(password),
                role=role.key if role else "user",
                role_id=role.id if role else None,
                **kw,
            )
            s.add(u)
            s.flush()
            return u.id

    return _make


@pytest.fixture()
def grant(app):
    """Give a user a custom role: the default user permissions plus `extra`."""

    def _grant(user_id: int, *extra: str) -> None:
        defaults = next(r["permissions"] for r in SYSTEM_ROLES if r["key"] == "user")
        with session_scope(app) as s:
            admin = s.query(User).filter(User.email == ADMIN_EMAIL).one()
            role = create_role(s, {"roleName": f"Custom {user_id}", "permissions": [*defaults, *extra]}, admin)
            assign_role(s, s.get(User, user_id), role, admin)

    return _grant
