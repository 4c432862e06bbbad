import logging
import os
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g

from app.schoolpanel.config import load_config
from app.schoolpanel.db import init_db, teardown_db_session
from app.schoolpanel.errors import Forbidden, NotFound
from app.schoolpanel.rbac import AuthorizationGuard
from app.schoolpanel.routes import bp as routes_bp
from app.schoolpanel.auth import load_current_user
from app.schoolpanel.catalogue import MODULES
from app.schoolpanel.modules.users.profile import bp as profile_bp
from app.schoolpanel.security import csrf_protect, ensure_csrf_token
from app.schoolpanel.views import init_views, render_view


def create_app() -> Flask:
    load_dotenv()
    config = load_config()
    # No bundled templates or assets; TEMPLATE_FOLDER points at the deployment's own.
    app = Flask(__name__, template_folder=config["TEMPLATE_FOLDER"] or None, static_folder=None)
    app.config.from_mapping(config)
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.logger.setLevel(app.config["LOG_LEVEL"])
    logging.getLogger("app.schoolpanel").setLevel(app.config["LOG_LEVEL"])

    app.extensions["authorization_guard"] = AuthorizationGuard(app.config.get("SUPERUSER_ROLE"))
    init_views(app)

    @app.context_processor
    def _inject_guard() -> dict:
        guard = app.extensions["authorization_guard"]

        def has_perm(key: str) -> bool:
            return guard.check(getattr(g, "current_user", None), key)

        def has_role(key: str) -> bool:
            return guard.has_role(getattr(g, "current_user", None), key)

        return {"has_perm": has_perm, "has_role": has_role, "csrf_token": ensure_csrf_token()}

    app.before_request(csrf_protect)

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    for module in MODULES:
        app.register_blueprint(module.bp)
    app.register_blueprint(profile_bp)

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        rid = getattr(g, "request_id", None)
        app.logger.exception("Unhandled 500 (request_id=%s)", rid)
        return render_view("errors.500", status=500, request_id=rid)

    @app.errorhandler(Forbidden)
    def _err_forbidden(e: Forbidden):  # type: ignore[no-redef]
        app.logger.warning("Forbidden: missing_permission=%s request_id=%s", e.permission, getattr(g, "request_id", None))
        return render_view("errors.403", status=403, missing_permission=e.permission)

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        return render_view("errors.403", status=403, missing_permission=missing)

    @app.errorhandler(401)
    def _err_401(e):  # type: ignore[no-redef]
        return render_view("errors.401", status=401, message="Authentication required.")

    @app.errorhandler(NotFound)
    def _err_not_found(e: NotFound):  # type: ignore[no-redef]
        return render_view("errors.404", status=404, message=str(e))

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return render_view("errors.404", status=404, message="Page not found.")

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
