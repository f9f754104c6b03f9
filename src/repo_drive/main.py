"""repo-drive FastAPI application factory.

The create_app() factory is the single entry point for building the ASGI
application. It wires middleware (request-ID, metrics, request logging,
CORS), the share-link routers and the authenticated GitHub routes, and
injects the registry, GitHub client and audit sink.

Usage:
    # Local development
    from repo_drive import create_app, DriveSettings
    app = create_app(DriveSettings())

    # Production
    app = create_app(DriveSettings.from_env())

    # Testing (full DI control)
    app = create_app(settings, github=GitHubClient(http_client=mock), clock=fake_clock)
"""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .github_routes import create_github_router
from .observability.logging import configure_logging, get_logger
from .observability.metrics import metrics_text
from .observability.middleware import (
    MetricsMiddleware,
    RequestIdMiddleware,
    RequestLoggingMiddleware,
    route_label,
)
from .providers.github_client import GitHubClient, close_shared_async_client
from .settings import DriveSettings
from .sharing.access import create_share_access_router
from .sharing.audit import LoggingShareAuditEmitter, ShareAuditEmitter
from .sharing.cleanup import ExpiredShareSweeper
from .sharing.model import utcnow
from .sharing.registry import InMemoryShareRegistry, ShareRegistry
from .sharing.routes import create_share_router
from .sharing.service import ShareIssuanceService

logger = get_logger(__name__)


@dataclass(frozen=True)
class AppDependencies:
    """Container for injected collaborators.

    Stored on ``app.state.deps`` so route handlers and tests can reach them.
    """

    registry: ShareRegistry
    github: GitHubClient
    audit: ShareAuditEmitter
    service: ShareIssuanceService


def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed bodies and params as 400 invalid_request."""
    fields = sorted({
        str(err['loc'][-1]) for err in exc.errors() if err.get('loc')
    })
    detail = 'Invalid field(s): ' + ', '.join(fields) if fields else 'Malformed request.'
    return JSONResponse(
        status_code=400,
        content={'error': 'invalid_request', 'detail': detail},
    )


def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Generic 500. Only the exception type is logged; no detail is returned."""
    logger.error(
        'unhandled_exception',
        path=route_label(request),
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        status_code=500,
        content={'error': 'internal_error', 'detail': 'Internal error.'},
    )


# ── Factory ─────────────────────────────────────────────────────────


def create_app(
    settings: DriveSettings | None = None,
    *,
    registry: ShareRegistry | None = None,
    github: GitHubClient | None = None,
    audit: ShareAuditEmitter | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Create a configured repo-drive FastAPI application.

    Args:
        settings: Application settings. Defaults to local-dev settings.
        registry: Share registry. Defaults to a fresh in-memory registry.
        github: GitHub client. Defaults to one built from settings.
        audit: Audit sink. Defaults to structured logging.
        clock: Current-time source shared by issuance, access and sweeps.

    Returns:
        Configured FastAPI application ready for uvicorn.run().

    Raises:
        ValueError: If settings validation fails.
    """
    if settings is None:
        settings = DriveSettings()

    errors = settings.validate()
    if errors:
        raise ValueError(
            "repo-drive settings validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    configure_logging()

    clock = clock or utcnow
    registry = registry if registry is not None else InMemoryShareRegistry()
    owns_github_client = github is None
    github = github or GitHubClient(
        base_url=settings.github_api_url,
        timeout_seconds=settings.github_timeout_seconds,
    )
    audit = audit or LoggingShareAuditEmitter()
    service = ShareIssuanceService(
        registry,
        github,
        clock=clock,
        max_expiration_hours=settings.max_expiration_hours,
        default_branch=settings.default_branch,
        audit=audit,
    )
    deps = AppDependencies(registry=registry, github=github, audit=audit, service=service)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("repo_drive_startup", environment=settings.environment)
        sweep_task: asyncio.Task | None = None
        if settings.sweep_interval_seconds > 0:
            sweeper = ExpiredShareSweeper(
                registry, settings.sweep_interval_seconds, clock=clock,
            )
            sweep_task = asyncio.create_task(sweeper.run_forever())
        try:
            yield
        finally:
            if sweep_task is not None:
                sweep_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweep_task
            if owns_github_client:
                await close_shared_async_client()
            logger.info("repo_drive_shutdown")

    app = FastAPI(
        title="repo-drive",
        description="GitHub-backed file manager with expiring share links",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.deps = deps
    app.state.settings = settings

    # ── Middleware stack (last added runs first) ────────────────
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    # ── Routes ──────────────────────────────────────────────────

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "environment": settings.environment,
            "active_share_links": registry.count(),
        }

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        body, content_type = metrics_text()
        return Response(content=body, media_type=content_type)

    app.include_router(create_share_router(service, settings))
    app.include_router(create_share_access_router(service, github, settings, audit=audit))
    app.include_router(create_github_router(github, settings))

    return app


# For uvicorn, use --factory flag:
#   uvicorn repo_drive.main:create_app --factory
# This avoids executing create_app() at import time.
