"""repo-drive configuration settings.

DriveSettings is the single configuration object accepted by create_app().
It is a plain dataclass (not env-coupled) so tests can inject config
without touching os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "http://localhost:3000",
)


@dataclass(frozen=True, slots=True)
class DriveSettings:
    """Configuration for the repo-drive FastAPI application.

    All fields have sensible defaults for local development.
    Non-local environments must supply a real public_base_url.
    """

    # ── Environment ────────────────────────────────────────────────
    environment: str = "local"
    """One of: local, dev, staging, production."""

    public_base_url: str = ""
    """Externally visible origin used to build share URLs.

    Empty means: derive the origin from the incoming request.
    """

    # ── GitHub ─────────────────────────────────────────────────────
    github_api_url: str = "https://api.github.com"
    github_timeout_seconds: float = 30.0

    content_root: str = "uploads"
    """Repository folder holding user files; paths are relative to it."""

    default_branch: str = "main"

    # ── Share links ────────────────────────────────────────────────
    max_expiration_hours: float = 720.0
    """Upper bound on a single link's lifetime (30 days)."""

    sweep_interval_seconds: float = 0.0
    """Background eviction period for expired links. 0 disables the sweeper."""

    # ── CORS ───────────────────────────────────────────────────────
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS

    @property
    def is_local(self) -> bool:
        return self.environment == "local"

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if self.github_timeout_seconds <= 0:
            errors.append("github_timeout_seconds must be positive")
        if self.max_expiration_hours <= 0:
            errors.append("max_expiration_hours must be positive")
        if self.sweep_interval_seconds < 0:
            errors.append("sweep_interval_seconds must be >= 0")
        if not self.is_local:
            if not self.public_base_url:
                errors.append(f"{self.environment}: public_base_url is required")
            elif not self.public_base_url.startswith("https://"):
                errors.append(
                    f"{self.environment}: public_base_url must use https"
                )
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> DriveSettings:
        """Build settings from environment variables.

        This is a convenience factory for production use. Tests should
        construct DriveSettings directly.
        """
        if env is None:
            env = dict(os.environ)

        cors_raw = env.get("CORS_ORIGINS", "")
        cors = tuple(o.strip() for o in cors_raw.split(",") if o.strip()) if cors_raw else DEFAULT_CORS_ORIGINS

        return cls(
            environment=env.get("ENVIRONMENT", "local"),
            public_base_url=env.get("PUBLIC_BASE_URL", "").rstrip("/"),
            github_api_url=env.get("GITHUB_API_URL", "https://api.github.com"),
            github_timeout_seconds=float(env.get("GITHUB_TIMEOUT_SECONDS", "30")),
            content_root=env.get("CONTENT_ROOT", "uploads").strip("/"),
            default_branch=env.get("DEFAULT_BRANCH", "main"),
            max_expiration_hours=float(env.get("SHARE_MAX_EXPIRATION_HOURS", "720")),
            sweep_interval_seconds=float(env.get("SHARE_SWEEP_INTERVAL_SECONDS", "0")),
            cors_origins=cors,
        )
