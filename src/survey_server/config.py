"""Server configuration — reads settings from environment variables.

All settings have sensible defaults for local development.  In production
the values are typically overridden via env vars or a ``.env`` file.
"""

import os
from dataclasses import dataclass, field


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ServerSettings:
    """Immutable server configuration read from environment at startup."""

    # Network
    host: str = "0.0.0.0"
    port: int = 8080

    # CORS — comma-separated origins, or "*" for wide-open dev mode
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    # Template directory (None → TemplateStore default, surveys/ at repo root)
    template_dir: str | None = None

    # Seed templates into the database during startup
    seed_on_startup: bool = False

    # Rebuild the survey graph whenever the template hash changes.
    # Without it, templates are only seeded into an empty database.
    seed_refresh: bool = False


def load_settings() -> ServerSettings:
    """Build settings from ``SERVER_*`` / ``SEED_*`` environment variables."""
    raw_origins = os.getenv("SERVER_CORS_ORIGINS", "*")
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]

    return ServerSettings(
        host=os.getenv("SERVER_HOST", "0.0.0.0"),
        port=int(os.getenv("SERVER_PORT", "8080")),
        cors_origins=origins,
        log_level=os.getenv("SERVER_LOG_LEVEL", "INFO").upper(),
        template_dir=os.getenv("SERVER_TEMPLATE_DIR") or None,
        seed_on_startup=_env_flag("SERVER_SEED_ON_STARTUP"),
        seed_refresh=_env_flag("SEED_REFRESH_ENABLED"),
    )
