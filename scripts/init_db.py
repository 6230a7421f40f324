import os
import sys
from datetime import datetime
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.samaj.models import User
from app.samaj.modules.enums.service import initialize_enums
from app.samaj.modules.roles.service import initialize_system_roles
from app.samaj.utils import format_phone_for_storage, generate_sub_family_number
from scripts._db_utils import script_session


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions, system roles, enums and the first admin in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@samaj.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    admin_mobile = format_phone_for_storage(os.environ.get("ADMIN_MOBILE") or "9999999999")

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///samaj.db").strip()

    with script_session(db_url) as s:
        roles = initialize_system_roles(s)
        initialize_enums(s)

        admin_role = roles["admin"]
        user = s.query(User).filter(User.email == admin_email, User.deleted_at.is_(None)).one_or_none()
        if not user:
            now = datetime.utcnow()
            user = User(
                first_name="Samaj",
                last_name="Admin",
                email=admin_email,
                mobile_number=admin_mobile,
                password_hash=generate_password_hash(admin_password),
                sub_family_number=generate_sub_family_number(),
                is_primary_account=True,
                profile_completed=True,
                status="approved",
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            s.add(user)
        user.role = "admin"
        user.role_id = admin_role.id

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
