"""
Profile pages.

    GET          /profile                      own profile
    GET          /profile/edit                 own edit form
    PATCH        /profile/update               update own details (PUT/POST too)
    GET          /profiles/<id>                someone's profile    users_show
    GET          /profiles/<id>/edit           their edit form      users_edit
    PATCH        /profiles/<id>/update         update their details users_update

Any signed-in user may read and edit their own profile; the `/profiles/<id>`
routes need the users permission unless `<id>` is the actor's own.
"""
from __future__ import annotations

import logging

from flask import Blueprint, flash, g, redirect, url_for

from app.schoolpanel.audit import record_entity_event
from app.schoolpanel.db import atomic, db_session
from app.schoolpanel.errors import NotFound, ValidationFailed
from app.schoolpanel.models import User
from app.schoolpanel.modules.users.admin import resource
from app.schoolpanel.rbac import require_permission
from app.schoolpanel.resources import ResourceController, request_payload
from app.schoolpanel.store import EntityStore
from app.schoolpanel.views import render_view

logger = logging.getLogger(__name__)

bp = Blueprint("profile", __name__)

_controller = ResourceController(resource)


def _own(user_id: int | None) -> bool:
    return user_id is None or user_id == g.current_user.id


def _gate(operation: str):
    return require_permission(lambda user_id=None: None if _own(user_id) else resource.permission(operation))


def _profile_owner(user_id: int | None) -> User | None:
    if _own(user_id):
        return g.current_user
    return EntityStore(db_session(), User).find(user_id)


def _not_found(user_id: int):
    logger.info("Profile id=%s not found (request_id=%s)", user_id, getattr(g, "request_id", None))
    flash("Profile not found", "error")
    return redirect(url_for(".show"))


@bp.get("/profile", endpoint="show")
@bp.get("/profiles/<int:user_id>", endpoint="show_other")
@_gate("show")
def show(user_id: int | None = None):
    user = _profile_owner(user_id)
    if user is None:
        return _not_found(user_id)
    return render_view("profile.show", user=user, own=_own(user_id))


@bp.get("/profile/edit", endpoint="edit")
@bp.get("/profiles/<int:user_id>/edit", endpoint="edit_other")
@_gate("edit")
def edit(user_id: int | None = None):
    user = _profile_owner(user_id)
    if user is None:
        return _not_found(user_id)
    return render_view("profile.edit", errors={}, input={}, user=user)


@bp.route("/profile/update", endpoint="update", methods=["PATCH", "PUT", "POST"])
@bp.route("/profiles/<int:user_id>/update", endpoint="update_other", methods=["PATCH", "PUT", "POST"])
@_gate("update")
def update(user_id: int | None = None):
    user = _profile_owner(user_id)
    if user is None:
        return _not_found(user_id)

    s = db_session()
    store = EntityStore(s, User)
    payload = request_payload()
    try:
        fields = _controller.validate(store, payload, entity_id=user.id)
    except ValidationFailed as e:
        return render_view(
            "profile.edit",
            status=422,
            errors=e.errors,
            input=resource.form.echo(payload),
            user=user,
        )

    try:
        with atomic(s):
            user = store.update(fields, user.id)
            record_entity_event(s, "profile.update", user, fields=sorted(fields))
    except NotFound:
        return _not_found(user.id)

    if _own(user_id):
        flash("Your profile was updated successfully.", "success")
        return redirect(url_for(".show"))
    flash(f"{user.full_name}'s profile was updated successfully.", "success")
    return redirect(url_for(".show_other", user_id=user.id))
