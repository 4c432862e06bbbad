"""
CSRF protection for the session-authenticated panel.

Every session carries a random token. State-changing requests must echo it
back in the `X-CSRF-Token` header, a `csrf_token` form field, or a
`csrf_token` key of a JSON body.
"""
from __future__ import annotations

import logging
import secrets

from flask import Request, current_app, request, session

from app.schoolpanel.views import render_view

logger = logging.getLogger(__name__)

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
EXEMPT_PREFIXES = ("/health", "/healthz")


def ensure_csrf_token() -> str:
    """Ensure a CSRF token exists in the session and return it."""
    token = session.get("csrf_token")
    if not token:
        token = secrets.token_urlsafe(32)
        session["csrf_token"] = token
    return token


def submitted_csrf_token(req: Request) -> str | None:
    token = req.headers.get("X-CSRF-Token") or req.form.get("csrf_token")
    if not token and req.is_json:
        body = req.get_json(silent=True)
        if isinstance(body, dict):
            token = body.get("csrf_token")
    return str(token) if token else None


def validate_csrf(req: Request) -> bool:
    token = submitted_csrf_token(req)
    expected = session.get("csrf_token") or ""
    return bool(token and expected and secrets.compare_digest(token, expected))


def csrf_protect():
    """before_request hook: issue the token, reject unsigned mutations with the 400 view."""
    if request.path.startswith(EXEMPT_PREFIXES):
        return None
    ensure_csrf_token()
    session.permanent = True
    if not current_app.config.get("CSRF_ENABLED", True) or request.method not in MUTATING_METHODS:
        return None
    if validate_csrf(request):
        return None
    logger.warning("CSRF check failed method=%s path=%s", request.method, request.path)
    return render_view("errors.400", status=400, message="CSRF token missing or invalid.")
