import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    per_page: int
    view_renderer: str
    template_folder: str
    csrf_enabled: bool
    superuser_role: str
    log_level: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getint(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).")
    if value < 1:
        raise RuntimeError(f"{name} must be positive (got {value}).")
    return value


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///schoolpanel.db"),
        per_page=_getint("PER_PAGE", 10),
        view_renderer=_getenv("VIEW_RENDERER", "json").lower(),
        template_folder=_getenv("TEMPLATE_FOLDER"),
        csrf_enabled=_getenv("CSRF_ENABLED", "1") not in ("0", "false", "no", "off"),
        superuser_role=_getenv("SUPERUSER_ROLE", ""),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "PER_PAGE": s.per_page,
        "VIEW_RENDERER": s.view_renderer,
        "TEMPLATE_FOLDER": s.template_folder,
        "CSRF_ENABLED": s.csrf_enabled,
        "SUPERUSER_ROLE": s.superuser_role,
        "LOG_LEVEL": s.log_level,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
    }
