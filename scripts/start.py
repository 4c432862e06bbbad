#!/usr/bin/env python3
"""
Container entrypoint: release, then hand the process over to gunicorn.

Environment:
  PORT               listen port (default 8080)
  WEB_CONCURRENCY    gunicorn workers (default 2)
  SKIP_RELEASE=1     start serving without migrating/seeding

Usage:
    python scripts/start.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _positive_int(name: str, default: int, upper: int | None = None) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise SystemExit(f"ERROR: {name} must be an integer (got {raw!r}).")
    if value < 1 or (upper is not None and value > upper):
        raise SystemExit(f"ERROR: {name} out of range (got {value}).")
    return value


def gunicorn_argv() -> list[str]:
    port = _positive_int("PORT", 8080, upper=65535)
    workers = _positive_int("WEB_CONCURRENCY", 2)
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--timeout", "120",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    argv = gunicorn_argv()

    if (os.environ.get("SKIP_RELEASE") or "").strip() in ("1", "true", "yes"):
        print("Release skipped (SKIP_RELEASE).", flush=True)
    else:
        from scripts.release import run_release

        try:
            run_release()
        except Exception as e:
            print(f"Release failed: {e}", flush=True)
            sys.exit(1)

    print(f"Starting: {' '.join(argv)}", flush=True)
    # exec keeps gunicorn as PID 1 so it receives signals directly
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
