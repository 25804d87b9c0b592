import sys
from pathlib import Path
import os

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.quietmap.models import ADMIN_ROLE_KEY, Permission, Role, User
from scripts._db_utils import database_url_from_env, script_session


# (key, label). The admin role gets every one of these.
PERMISSIONS: tuple[tuple[str, str], ...] = (
    ("admin.view", "Admin: view dashboard"),
    ("submissions.moderate", "Submissions: approve, reject, edit"),
    ("venues.edit", "Venues: edit, archive, verify, backfill geo"),
    ("reviews.moderate", "Reviews: hide, unhide, delete"),
    ("reports.moderate", "Review reports: resolve, dismiss"),
    ("accounts.edit", "Accounts: change roles"),
)


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@quietmap.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = database_url_from_env(database_url)

    # Direct engine/session so this can run in release without importing app.wsgi.
    with script_session(db_url) as s:
        def ensure_perm(key: str, name: str) -> Permission:
            p = s.query(Permission).filter(Permission.key == key).one_or_none()
            if not p:
                p = Permission(key=key, name=name)
                s.add(p)
            return p

        perms = [ensure_perm(key, name) for key, name in PERMISSIONS]

        role_admin = s.query(Role).filter(Role.key == ADMIN_ROLE_KEY).one_or_none()
        if not role_admin:
            role_admin = Role(key=ADMIN_ROLE_KEY, name="Administrator")
            s.add(role_admin)
        for p in perms:
            if p not in role_admin.permissions:
                role_admin.permissions.append(p)

        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(email=admin_email, password_hash=generate_password_hash(admin_password), is_active=True)
            s.add(user)
        if role_admin not in user.roles:
            user.roles.append(role_admin)

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
