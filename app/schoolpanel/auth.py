"""
Actor loading. Login and logout belong to the upstream authentication
service, which stores the signed-in user's id in `session["user_id"]`.
"""
from __future__ import annotations

import logging
import uuid

from flask import g, request, session
from sqlalchemy.exc import SQLAlchemyError

from app.schoolpanel.db import db_session
from app.schoolpanel.models import User

logger = logging.getLogger(__name__)

_ANONYMOUS_PREFIXES = ("/health", "/healthz")


def _session_actor() -> User | None:
    raw = session.get("user_id")
    if not raw:
        return None
    try:
        user = db_session().get(User, int(raw))
    except (SQLAlchemyError, TypeError, ValueError) as e:
        logger.error("Could not load actor %r, clearing session: %s", raw, e)
        session.pop("user_id", None)
        return None
    if user is None or not user.is_active:
        logger.info("Dropping session of %s user id=%s", "inactive" if user else "unknown", raw)
        session.pop("user_id", None)
        return None
    return user


def load_current_user() -> None:
    """before_request hook: set `g.request_id` and `g.current_user` (None when anonymous)."""
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None if request.path.startswith(_ANONYMOUS_PREFIXES) else _session_actor()
