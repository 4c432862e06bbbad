"""
Resourceful CRUD controller shared by every entity module.

A module describes itself with a `Resource` and gets a blueprint with the
conventional routes:

    GET    /<name>                 index    <name>_access
    GET    /<name>/create          create   <name>_create
    POST   /<name>                 store    <name>_store
    GET    /<name>/<id>            show     <name>_show
    GET    /<name>/<id>/edit       edit     <name>_edit
    PATCH  /<name>/<id>            update   <name>_update   (PUT too)
    DELETE /<name>/<id>            destroy  <name>_destroy

HTML forms may POST to /<name>/<id> with `_method=PATCH|PUT|DELETE`.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from flask import Blueprint, abort, current_app, flash, g, redirect, request, url_for

from app.schoolpanel.audit import record_entity_event
from app.schoolpanel.db import atomic, db_session
from app.schoolpanel.errors import NotFound, ValidationFailed
from app.schoolpanel.forms import FieldSet
from app.schoolpanel.models import Base
from app.schoolpanel.rbac import require_permission
from app.schoolpanel.store import EntityStore
from app.schoolpanel.views import render_view

logger = logging.getLogger(__name__)

OPERATIONS = ("access", "create", "store", "show", "edit", "update", "destroy")


@dataclass(frozen=True)
class Resource:
    name: str  # URL segment, permission prefix and view prefix, e.g. "users"
    singular: str  # context key for one entity, e.g. "user"
    model: type[Base]
    form: type[FieldSet]
    label: Callable[[Any], str]
    unique: tuple[str, ...] = field(default=())

    @property
    def title(self) -> str:
        return self.singular.capitalize()

    def permission(self, operation: str) -> str:
        return f"{self.name}_{operation}"


def request_payload() -> dict[str, Any]:
    if request.is_json:
        data = request.get_json(silent=True)
        return dict(data) if isinstance(data, dict) else {}
    return request.form.to_dict()


class ResourceController:
    def __init__(self, resource: Resource) -> None:
        self.resource = resource

    def blueprint(self, import_name: str) -> Blueprint:
        bp = Blueprint(self.resource.name, import_name)
        self.register(bp)
        return bp

    def register(self, bp: Blueprint) -> None:
        r = self.resource
        base = f"/{r.name}"
        item = f"/{r.name}/<int:entity_id>"

        def guarded(operation: str, fn: Callable[..., Any]) -> Callable[..., Any]:
            return require_permission(r.permission(operation))(fn)

        bp.add_url_rule(base, "index", guarded("access", self.index), methods=["GET"])
        bp.add_url_rule(f"{base}/create", "create", guarded("create", self.create), methods=["GET"])
        bp.add_url_rule(base, "store", guarded("store", self.store), methods=["POST"])
        bp.add_url_rule(item, "show", guarded("show", self.show), methods=["GET"])
        bp.add_url_rule(f"{item}/edit", "edit", guarded("edit", self.edit), methods=["GET"])
        bp.add_url_rule(item, "update", guarded("update", self.update), methods=["PATCH", "PUT"])
        bp.add_url_rule(item, "destroy", guarded("destroy", self.destroy), methods=["DELETE"])
        bp.add_url_rule(item, "method_override", self._method_override, methods=["POST"])

    # ---------- operations ----------

    def index(self):
        r = self.resource
        page = request.args.get("page", 1, type=int) or 1
        store = EntityStore(db_session(), r.model)
        items = store.paginate(current_app.config.get("PER_PAGE", 10), page)
        return render_view(f"{r.name}.index", **{r.name: items})

    def create(self):
        return render_view(f"{self.resource.name}.create", errors={}, input={})

    def store(self):
        r = self.resource
        s = db_session()
        store = EntityStore(s, r.model)
        payload = request_payload()
        try:
            fields = self.validate(store, payload)
        except ValidationFailed as e:
            return self._invalid("create", e, payload)

        with atomic(s):
            obj = store.create(fields)
            label = r.label(obj)
            record_entity_event(s, f"{r.singular}.create", obj, label=label)
        flash(f"{label} was created successfully.", "success")
        return redirect(url_for(".index"))

    def show(self, entity_id: int):
        r = self.resource
        obj = EntityStore(db_session(), r.model).find(entity_id)
        if obj is None:
            return self._not_found(entity_id)
        return render_view(f"{r.name}.show", **{r.singular: obj})

    def edit(self, entity_id: int):
        r = self.resource
        obj = EntityStore(db_session(), r.model).find(entity_id)
        if obj is None:
            return self._not_found(entity_id)
        return render_view(f"{r.name}.edit", errors={}, input={}, **{r.singular: obj})

    def update(self, entity_id: int):
        r = self.resource
        s = db_session()
        store = EntityStore(s, r.model)
        obj = store.find(entity_id)
        if obj is None:
            return self._not_found(entity_id)

        payload = request_payload()
        try:
            fields = self.validate(store, payload, entity_id=entity_id)
        except ValidationFailed as e:
            return self._invalid("edit", e, payload, **{r.singular: obj})

        try:
            with atomic(s):
                obj = store.update(fields, entity_id)
                label = r.label(obj)
                record_entity_event(s, f"{r.singular}.update", obj, label=label, fields=sorted(fields))
        except NotFound:
            return self._not_found(entity_id)
        flash(f"{label} was updated successfully.", "success")
        return redirect(url_for(".index"))

    def destroy(self, entity_id: int):
        r = self.resource
        s = db_session()
        store = EntityStore(s, r.model)
        obj = store.find(entity_id)
        if obj is None:
            return self._not_found(entity_id)
        label = r.label(obj)

        try:
            with atomic(s):
                record_entity_event(s, f"{r.singular}.delete", obj, label=label)
                s.flush()
                store.delete(entity_id)
        except NotFound:
            return self._not_found(entity_id)
        flash(f"{label} was deleted successfully.", "success")
        return redirect(url_for(".index"))

    # ---------- helpers ----------

    def _method_override(self, entity_id: int):
        method = (request.form.get("_method") or "").strip().upper()
        if method in ("PATCH", "PUT"):
            return current_app.view_functions[f"{request.blueprint}.update"](entity_id=entity_id)
        if method == "DELETE":
            return current_app.view_functions[f"{request.blueprint}.destroy"](entity_id=entity_id)
        abort(405)

    def validate(self, store: EntityStore, payload: dict[str, Any], *, entity_id: int | None = None) -> dict[str, Any]:
        fields = self.resource.form.parse(payload, partial=entity_id is not None)
        taken = {
            column: f"{column.replace('_', ' ').capitalize()} has already been taken."
            for column in self.resource.unique
            if column in fields and store.exists(column, fields[column], exclude_id=entity_id)
        }
        if taken:
            raise ValidationFailed(taken)
        return fields

    def _invalid(self, view: str, e: ValidationFailed, payload: dict[str, Any], **context: Any):
        r = self.resource
        return render_view(
            f"{r.name}.{view}",
            status=422,
            errors=e.errors,
            input=r.form.echo(payload),
            **context,
        )

    def _not_found(self, entity_id: int):
        logger.info("%s id=%s not found (request_id=%s)", self.resource.title, entity_id, getattr(g, "request_id", None))
        flash(f"{self.resource.title} not found", "error")
        return redirect(url_for(".index"))
