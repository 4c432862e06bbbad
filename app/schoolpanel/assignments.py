"""
Many-to-many assignment from one anchor entity ("sync" semantics).

An update replaces the whole association set of the anchor: the service
computes which links to add and which to remove and applies both in one
transaction, so readers see either the old set or the new one.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from flask import Blueprint, flash, g, redirect, request, url_for
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.schoolpanel.audit import record_event
from app.schoolpanel.db import atomic, db_session
from app.schoolpanel.errors import IntegrityViolation, NotFound
from app.schoolpanel.models import Base, User
from app.schoolpanel.rbac import require_permission
from app.schoolpanel.resources import Resource
from app.schoolpanel.views import render_view

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Relation:
    name: str  # URL segment, e.g. "roles"
    anchor: type[Base]
    candidate: type[Base]
    permission: str
    attribute: str | None = None  # relationship on the anchor; defaults to `name`
    selector: str = "id"  # candidate column matched against submitted ids

    @property
    def collection(self) -> str:
        return self.attribute or self.name


@dataclass(frozen=True)
class Assignment:
    anchor: Any
    relation: Relation
    candidates: list[Any]
    selected: list[Any]


@dataclass(frozen=True)
class AssignmentChange:
    anchor: Any
    relation: Relation
    added: tuple[Any, ...]
    removed: tuple[Any, ...]

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


class AssignmentService:
    def __init__(self, session: Session, relations: Mapping[str, Relation]) -> None:
        self.session = session
        self.relations = relations

    def relation(self, name: str) -> Relation:
        rel = self.relations.get(name)
        if rel is None:
            raise NotFound("Relation", name)
        return rel

    def show_assignment(self, anchor_id: Any, relation_name: str) -> Assignment:
        rel = self.relation(relation_name)
        anchor = self._anchor(rel, anchor_id)
        pk = rel.candidate.__mapper__.primary_key[0]
        candidates = list(self.session.scalars(select(rel.candidate).order_by(pk.asc())).all())
        if rel.candidate is rel.anchor:
            candidates = [c for c in candidates if c is not anchor]
        selected = sorted(getattr(c, rel.selector) for c in getattr(anchor, rel.collection))
        return Assignment(anchor=anchor, relation=rel, candidates=candidates, selected=selected)

    def update_assignment(
        self,
        anchor_id: Any,
        relation_name: str,
        selected_ids: Iterable[Any],
        *,
        actor: User | None = None,
    ) -> AssignmentChange:
        rel = self.relation(relation_name)
        with atomic(self.session):
            anchor = self._anchor(rel, anchor_id)
            wanted = self._coerce(rel, selected_ids)
            column = getattr(rel.candidate, rel.selector)
            found = {
                getattr(c, rel.selector): c
                for c in self.session.scalars(select(rel.candidate).where(column.in_(wanted))).all()
            } if wanted else {}
            missing = wanted - found.keys()
            if missing:
                raise IntegrityViolation(
                    f"unknown {rel.candidate.__name__} {', '.join(repr(m) for m in sorted(missing))}"
                )
            if rel.candidate is rel.anchor and getattr(anchor, rel.selector) in wanted:
                raise IntegrityViolation(f"{rel.anchor.__name__} cannot be linked to itself")

            collection = getattr(anchor, rel.collection)
            current = {getattr(c, rel.selector): c for c in collection}
            removed = tuple(sorted(current.keys() - wanted))
            added = tuple(sorted(wanted - current.keys()))
            for key in removed:
                collection.remove(current[key])
            for key in added:
                collection.append(found[key])
            self.session.flush()

            record_event(
                self.session,
                actor=actor,
                action=f"{rel.anchor.__name__.lower()}.{rel.name}.sync",
                entity_type=rel.anchor.__name__,
                entity_id=str(anchor_id),
                metadata={"added": list(added), "removed": list(removed)},
            )
        logger.info(
            "%s id=%s %s synced: added=%s removed=%s", rel.anchor.__name__, anchor_id, rel.name, added, removed
        )
        return AssignmentChange(anchor=anchor, relation=rel, added=added, removed=removed)

    def _anchor(self, rel: Relation, anchor_id: Any) -> Any:
        anchor = self.session.get(rel.anchor, anchor_id)
        if anchor is None:
            raise NotFound(rel.anchor.__name__, anchor_id)
        return anchor

    @staticmethod
    def _coerce(rel: Relation, selected_ids: Iterable[Any]) -> set[Any]:
        python_type = getattr(rel.candidate, rel.selector).type.python_type
        wanted: set[Any] = set()
        for raw in selected_ids:
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                continue
            # JSON may carry true/1.9/[..] where an id is expected; int() would coerce them.
            if isinstance(raw, bool) or not isinstance(raw, (str, int, float)) or (
                isinstance(raw, float) and not raw.is_integer()
            ):
                raise IntegrityViolation(f"invalid {rel.candidate.__name__} reference {raw!r}")
            try:
                wanted.add(python_type(raw.strip() if isinstance(raw, str) else raw))
            except (TypeError, ValueError):
                raise IntegrityViolation(f"invalid {rel.candidate.__name__} reference {raw!r}")
        return wanted


def _selected_from_request() -> list[Any]:
    """
    Submitted selection. A form posts `ids` once per checked box (none means
    clear); a JSON body must be an object whose `ids` is a list.
    """
    if not request.is_json:
        return request.form.getlist("ids")
    data = request.get_json(silent=True)
    ids = data.get("ids") if isinstance(data, dict) else None
    if not isinstance(ids, list):
        raise IntegrityViolation("request body must be a JSON object with an \"ids\" list")
    return ids


def register_assignment_routes(bp: Blueprint, resource: Resource, relations: Mapping[str, Relation]) -> None:
    """GET/PATCH /<resource>/<id>/<relation> for every relation of `resource`."""
    path = f"/{resource.name}/<int:entity_id>/<relation>"

    def permission_for(entity_id: int, relation: str) -> str:
        rel = relations.get(relation)
        # Unknown relations fall through to the handler, which answers with a not-found redirect.
        return rel.permission if rel else resource.permission("access")

    def _unknown(e: NotFound):
        if e.entity_type == "Relation":
            flash(f"Unknown assignment: {e.entity_id}", "error")
        else:
            flash(f"{resource.title} not found", "error")
        return redirect(url_for(".index"))

    @require_permission(permission_for)
    def assignment_show(entity_id: int, relation: str):
        service = AssignmentService(db_session(), relations)
        try:
            assignment = service.show_assignment(entity_id, relation)
        except NotFound as e:
            return _unknown(e)
        return render_view(
            f"{resource.name}.{relation}",
            relation=relation,
            candidates=assignment.candidates,
            selected=assignment.selected,
            **{resource.singular: assignment.anchor},
        )

    @require_permission(permission_for)
    def assignment_update(entity_id: int, relation: str):
        service = AssignmentService(db_session(), relations)
        try:
            service.relation(relation)
            change = service.update_assignment(
                entity_id, relation, _selected_from_request(), actor=getattr(g, "current_user", None)
            )
        except NotFound as e:
            return _unknown(e)
        except IntegrityViolation as e:
            logger.warning("%s id=%s %s sync rejected: %s", resource.title, entity_id, relation, e)
            flash(f"Could not update {relation}: {e}", "error")
            return redirect(url_for(".assignment_show", entity_id=entity_id, relation=relation))
        flash(f"{resource.label(change.anchor)} {relation} updated successfully.", "success")
        return redirect(url_for(".index"))

    bp.add_url_rule(path, "assignment_show", assignment_show, methods=["GET"])
    bp.add_url_rule(path, "assignment_update", assignment_update, methods=["PATCH", "PUT", "POST"])
