from flask import Blueprint, abort, g, redirect, url_for

from app.schoolpanel.catalogue import RESOURCES
from app.schoolpanel.rbac import current_guard
from app.schoolpanel.views import render_view

bp = Blueprint("routes", __name__)

ADMIN_ROLE = "Admin"


@bp.get("/")
def index():
    return redirect(url_for("routes.dashboard"))


@bp.get("/dashboard")
def dashboard():
    user = getattr(g, "current_user", None)
    if not user:
        abort(401)
    guard = current_guard()
    menu = [
        {"title": "Home", "url": url_for("routes.dashboard")},
    ]
    for resource in RESOURCES:
        if guard.check(user, resource.permission("access")):
            menu.append({"title": resource.name.capitalize(), "url": url_for(f"{resource.name}.index")})
    return render_view(
        "dashboard",
        user=user,
        menu=menu,
        is_admin=guard.has_role(user, ADMIN_ROLE),
        roles=sorted(r.key for r in user.roles),
    )


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for probes. No DB access, minimal overhead.
    """
    return "ok", 200
