"""
Append-only audit trail. Events join the caller's transaction, so a rolled
back write leaves no event behind.
"""
from __future__ import annotations

import json
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from app.schoolpanel.models import AuditEvent, User


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditEvent:
    in_request = has_request_context()
    ev = AuditEvent(
        request_id=getattr(g, "request_id", None) if in_request else None,
        client_ip=request.remote_addr if in_request else None,
        actor_user_id=actor.id if actor else None,
        actor_user_email=actor.email if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
    )
    s.add(ev)
    return ev


def record_entity_event(s: Session, action: str, entity: Any, **metadata: Any) -> AuditEvent:
    """Audit a write on a persistent model instance, attributed to the request's actor."""
    identity = sa_inspect(entity).identity or ()
    return record_event(
        s,
        actor=getattr(g, "current_user", None) if has_request_context() else None,
        action=action,
        entity_type=type(entity).__name__,
        entity_id=",".join(str(v) for v in identity) or None,
        metadata=metadata or None,
    )
