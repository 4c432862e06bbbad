#!/usr/bin/env python3
"""Attach a role to a user (idempotent).

Usage:
  python scripts/assign_role.py --email ann@school.test --role Teacher
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.schoolpanel.models import Role, User
from scripts._db_utils import database_url, script_session


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Attach a role to a user.")
    parser.add_argument("--email", required=True, help="User email")
    parser.add_argument("--role", default="Admin", help="Role key (default: Admin)")
    args = parser.parse_args(argv)

    with script_session(database_url()) as s:
        user = s.query(User).filter(User.email.ilike(args.email)).one_or_none()
        if not user:
            print(f"User not found: {args.email}")
            return
        role = s.query(Role).filter(Role.key == args.role).one_or_none()
        if not role:
            print(f"Role not found: {args.role}. Run python scripts/init_db.py first.")
            return
        if role in (user.roles or []):
            print(f"User already has role {args.role}: {args.email}")
            return
        user.roles.append(role)
        print(f"Role {args.role} attached to {args.email}")


if __name__ == "__main__":
    main()
