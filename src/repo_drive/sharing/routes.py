"""Share-link issuance endpoint.

  POST /share/create     → issue a share link
  POST /api/share        → same handler, path used by the browser client

Auth contract:
  - ``Authorization: Bearer <github token>`` identifies the issuer.
  - The token is captured into the link record and never returned.

Errors are JSON ``{error, detail}`` bodies:
  - 400 invalid_request: missing or malformed fields (listed in detail).
  - 401 unauthorized: GitHub rejected the credential.
  - 500 internal_error: GitHub unreachable.

This module provides:
  ``create_share_router``: FastAPI router factory with injected deps.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..settings import DriveSettings
from .model import RepoCoordinate, ShareError
from .service import ShareIssuanceService

BEARER_PREFIX = 'Bearer '


def extract_bearer_token(request: Request) -> str | None:
    """Extract a Bearer token from the Authorization header.

    Returns None if no Authorization header or non-Bearer scheme.
    """
    auth_header = request.headers.get('authorization', '')
    if auth_header[:len(BEARER_PREFIX)].lower() == BEARER_PREFIX.lower():
        return auth_header[len(BEARER_PREFIX):].strip() or None
    return None


def public_base_url(request: Request, settings: DriveSettings) -> str:
    """Configured external origin, or the origin the request came in on."""
    if settings.public_base_url:
        return settings.public_base_url.rstrip('/')
    return str(request.base_url).rstrip('/')


def share_error_response(exc: ShareError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ── Request schemas ──────────────────────────────────────────────────


class CreateShareRequest(BaseModel):
    """Request body for share link creation.

    Presence is checked by the issuance service so that every missing
    field is reported together.
    """

    model_config = {'populate_by_name': True}

    owner: str | None = None
    repo: str | None = None
    branch: str | None = None
    path: str | None = Field(default=None, description='Repository-relative file path')
    expiration_hours: float | None = Field(
        default=None,
        alias='expirationHours',
        description='Link lifetime in hours',
    )


# ── Route factory ────────────────────────────────────────────────────


def create_share_router(
    service: ShareIssuanceService,
    settings: DriveSettings,
) -> APIRouter:
    """Create the share issuance router.

    Args:
        service: Issuance service bound to the process registry.
        settings: Used for the external base URL.

    Returns:
        FastAPI router with the issuance route.
    """
    router = APIRouter(tags=['share-links'])

    @router.post('/share/create', status_code=201)
    @router.post('/api/share', status_code=201)
    async def create_share(request: Request, body: CreateShareRequest):
        """Issue a share link for one repository file.

        Returns 201 with the token, URL, expiry and resolved username.
        """
        coordinate = RepoCoordinate(
            owner=body.owner or '',
            repo=body.repo or '',
            branch=body.branch or '',
        )
        try:
            issued = await service.create(
                extract_bearer_token(request),
                coordinate,
                body.path,
                body.expiration_hours,
                base_url=public_base_url(request, settings),
            )
        except ShareError as exc:
            return share_error_response(exc)

        return JSONResponse(status_code=201, content=issued.to_response())

    return router
