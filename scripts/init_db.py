import os
import sys
from datetime import date
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.schoolpanel.catalogue import permission_catalogue
from app.schoolpanel.models import Permission, Role, User
from scripts._db_utils import database_url, script_session

ROLES = (
    ("Admin", "Administrator"),
    ("Student", "Student"),
    ("Parent", "Parent"),
    ("Teacher", "Teacher"),
)

# Area permission per non-admin role; Admin gets the whole catalogue.
ROLE_AREA_PERMISSIONS = {
    "Student": ("student_access",),
    "Parent": ("parent_access",),
    "Teacher": ("teacher_access",),
}


def seed_only(*, database_url_override: str | None = None) -> None:
    """
    Seed permissions/roles/admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@school.test").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    with script_session(database_url(database_url_override)) as s:
        def ensure_perm(key: str, name: str) -> Permission:
            p = s.query(Permission).filter(Permission.key == key).one_or_none()
            if not p:
                p = Permission(key=key, name=name)
                s.add(p)
            return p

        def ensure_role(key: str, name: str) -> Role:
            r = s.query(Role).filter(Role.key == key).one_or_none()
            if not r:
                r = Role(key=key, name=name)
                s.add(r)
            return r

        perms = {key: ensure_perm(key, name) for key, name in permission_catalogue()}
        roles = {key: ensure_role(key, name) for key, name in ROLES}

        for p in perms.values():
            if p not in roles["Admin"].permissions:
                roles["Admin"].permissions.append(p)
        for role_key, perm_keys in ROLE_AREA_PERMISSIONS.items():
            for key in perm_keys:
                if perms[key] not in roles[role_key].permissions:
                    roles[role_key].permissions.append(perms[key])

        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(
                fname="Admin",
                lname="User",
                birthdate=date(1970, 1, 1),
                address="-",
                email=admin_email,
                gender="-",
                phonenum="-",
                password_hash=generate_password_hash(admin_password),
                is_active=True,
            )
            s.add(user)
        if roles["Admin"] not in user.roles:
            user.roles.append(roles["Admin"])

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only()


if __name__ == "__main__":
    main()
