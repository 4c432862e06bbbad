"""
View rendering collaborator.

Handlers call `render_view(name, **context)`. The renderer configured in
`VIEW_RENDERER` turns that into a response:

- ``json`` (default): ``{"view", "context", "messages"}`` where ``messages``
  drains the pending flash messages.
- ``template``: ``render_template("<name with dots as slashes>.html")``. The
  package bundles no templates: the deployment supplies them and points
  ``TEMPLATE_FOLDER`` at that directory (e.g. ``users/index.html``,
  ``errors/403.html``). Startup fails when ``TEMPLATE_FOLDER`` is unset.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Protocol

from flask import Flask, current_app, get_flashed_messages, jsonify, render_template
from sqlalchemy import inspect as sa_inspect

from app.schoolpanel.models import Base
from app.schoolpanel.store import Page

_HIDDEN_COLUMNS = frozenset({"password_hash"})


class ViewRenderer(Protocol):
    def render(self, view: str, context: dict[str, Any], status: int): ...


class JsonViewRenderer:
    def render(self, view: str, context: dict[str, Any], status: int):
        payload = {
            "view": view,
            "context": {k: serialize(v) for k, v in context.items()},
            "messages": [
                {"category": category, "text": text}
                for category, text in get_flashed_messages(with_categories=True)
            ],
        }
        return jsonify(payload), status


class TemplateViewRenderer:
    def render(self, view: str, context: dict[str, Any], status: int):
        return render_template(view.replace(".", "/") + ".html", **context), status


def init_views(app: Flask) -> None:
    kind = app.config.get("VIEW_RENDERER") or "json"
    if kind == "json":
        app.extensions["view_renderer"] = JsonViewRenderer()
    elif kind == "template":
        if not app.template_folder:
            raise RuntimeError("VIEW_RENDERER=template needs TEMPLATE_FOLDER (the deployment's templates directory).")
        app.extensions["view_renderer"] = TemplateViewRenderer()
    else:
        raise RuntimeError(f"Unknown VIEW_RENDERER {kind!r} (expected 'json' or 'template').")


def render_view(view: str, status: int = 200, **context: Any):
    renderer: ViewRenderer = current_app.extensions["view_renderer"]
    return renderer.render(view, context, status)


def serialize(value: Any) -> Any:
    if isinstance(value, Page):
        return {
            "items": [serialize(item) for item in value.items],
            "total": value.total,
            "page": value.page,
            "per_page": value.per_page,
            "pages": value.pages,
            "has_prev": value.has_prev,
            "has_next": value.has_next,
        }
    if isinstance(value, Base):
        mapper = sa_inspect(value).mapper
        return {
            attr.key: serialize(getattr(value, attr.key))
            for attr in mapper.column_attrs
            if attr.key not in _HIDDEN_COLUMNS
        }
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [serialize(v) for v in value]
    return value
