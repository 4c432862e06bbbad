"""
Release phase: bring the schema to the target revision, then seed.

Seeding creates the school roles (Admin, Student, Parent, Teacher), every
permission the panel checks and the bootstrap admin account. It is
idempotent and never resets an existing password.

Usage:
  python scripts/release.py                 # upgrade to head + seed
  python scripts/release.py --no-seed       # migrations only
  python scripts/release.py --revision 3f1a9c2b7d10
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _release_database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("Missing required environment variable DATABASE_URL.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to release against a sqlite DATABASE_URL in production.")
    return db_url


def alembic_config(db_url: str):
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


def run_release(*, revision: str = "head", seed: bool = True) -> None:
    from alembic import command

    db_url = _release_database_url()
    print(f"=== schoolpanel release (target {revision}) ===", flush=True)
    command.upgrade(alembic_config(db_url), revision)
    print("Migrations complete.", flush=True)

    if seed:
        from scripts import init_db

        init_db.seed_only(database_url_override=db_url)
        print("Seed complete.", flush=True)
    else:
        print("Seed skipped.", flush=True)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run migrations and seed roles/permissions.")
    parser.add_argument("--revision", default="head", help="Alembic target revision (default: head)")
    parser.add_argument("--no-seed", action="store_true", help="Only run migrations")
    args = parser.parse_args(argv)
    run_release(revision=args.revision, seed=not args.no_seed)


if __name__ == "__main__":
    main()
