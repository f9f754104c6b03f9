"""Anonymous share-link access endpoints.

  GET /share/{issuer}/{token}                → HTML landing page
  GET /share/{issuer}/{token}/download       → file bytes (proxy)
  GET /share/{issuer}/{token}/content        → alias of /download

Token resolution (both endpoints):
  - Unknown or already evicted → 404.
  - Expired → record evicted, 410. A second access then gets 404.

Proxy:
  - Bytes are fetched with the credential stored in the record, through
    the same ``GitHubClient.fetch_file`` call the authenticated viewer
    uses.
  - ``?download=true`` switches Content-Disposition to attachment; the
    bytes and content type are unchanged.
  - Any upstream failure is a generic 500 with no upstream detail.

Error bodies are plain text. No response carries the stored credential.

This module provides:
  ``create_share_access_router``: FastAPI router factory.
"""

from __future__ import annotations

import mimetypes
from urllib.parse import quote

from fastapi import APIRouter
from fastapi.responses import HTMLResponse, PlainTextResponse, Response

from ..observability.logging import get_logger
from ..observability.metrics import SHARE_ACCESS_TOTAL
from ..providers.github_client import GitHubClient, GitHubError, resolve_repo_path
from ..settings import DriveSettings
from .audit import (
    SHARE_ACCESSED,
    SHARE_DENIED,
    SHARE_EXPIRED,
    SHARE_FETCH_FAILED,
    LoggingShareAuditEmitter,
    ShareAuditEmitter,
    make_event,
    redact_token,
)
from .landing import render_landing_page
from .model import (
    ShareContentUnavailable,
    ShareError,
    ShareLinkExpired,
    ShareLinkNotFound,
    ShareLinkRecord,
)
from .service import ShareIssuanceService

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = 'application/octet-stream'

# Applied to every share response: links must not be cached by shared
# proxies, and the token must not leak through the Referer header.
_SHARE_HEADERS = {
    'Cache-Control': 'no-store',
    'Referrer-Policy': 'no-referrer',
    'X-Content-Type-Options': 'nosniff',
}


def guess_content_type(file_name: str) -> str:
    """Content type from the file extension."""
    content_type, _ = mimetypes.guess_type(file_name, strict=False)
    return content_type or DEFAULT_CONTENT_TYPE


def content_disposition(file_name: str, *, download: bool) -> str:
    """Build a Content-Disposition value for ``file_name``.

    Non-ASCII names get an RFC 5987 ``filename*`` alongside an ASCII
    fallback.
    """
    disposition = 'attachment' if download else 'inline'
    fallback = ''.join(
        c if 32 <= ord(c) < 127 and c not in '"\\' else '_'
        for c in file_name
    ) or 'download'
    value = f'{disposition}; filename="{fallback}"'
    if fallback != file_name:
        value += f"; filename*=UTF-8''{quote(file_name, safe='')}"
    return value


def parse_download_flag(value: str | None) -> bool:
    return (value or '').strip().lower() in ('1', 'true', 'yes')


def _text(status_code: int, body: str) -> PlainTextResponse:
    return PlainTextResponse(body, status_code=status_code, headers=_SHARE_HEADERS)


# ── Route factory ────────────────────────────────────────────────────


def create_share_access_router(
    service: ShareIssuanceService,
    github: GitHubClient,
    settings: DriveSettings,
    *,
    audit: ShareAuditEmitter | None = None,
) -> APIRouter:
    """Create the anonymous share access router.

    Args:
        service: Issuance service; its ``resolve`` applies expiry/eviction.
        github: Client used to fetch file bytes with the stored credential.
        settings: Supplies the repository content root.
        audit: Audit sink for access outcomes.

    Returns:
        FastAPI router with the landing and proxy routes.
    """
    router = APIRouter(tags=['share-access'])
    audit = audit or LoggingShareAuditEmitter()

    async def _resolve(
        issuer: str, token: str, endpoint: str,
    ) -> ShareLinkRecord | PlainTextResponse:
        try:
            return service.resolve(issuer, token)
        except ShareLinkExpired as exc:
            SHARE_ACCESS_TOTAL.labels(endpoint=endpoint, outcome='expired').inc()
            await audit.emit(make_event(
                SHARE_EXPIRED,
                issuer=issuer,
                token=token,
                endpoint=endpoint,
                detail=f'expired at {exc.expired_at.isoformat()}',
            ))
            return _text(exc.status_code, exc.detail)
        except ShareLinkNotFound as exc:
            SHARE_ACCESS_TOTAL.labels(endpoint=endpoint, outcome='not_found').inc()
            await audit.emit(make_event(
                SHARE_DENIED,
                issuer=issuer,
                token=token,
                endpoint=endpoint,
                detail='unknown token',
            ))
            return _text(exc.status_code, exc.detail)

    @router.get('/share/{issuer}/{token}', response_class=HTMLResponse)
    async def share_landing(issuer: str, token: str):
        """Landing page describing the shared file.

        Error responses:
          - 404: Token not found or already evicted.
          - 410: Token expired (evicted as a side effect).
        """
        resolved = await _resolve(issuer, token, 'landing')
        if isinstance(resolved, Response):
            return resolved

        SHARE_ACCESS_TOTAL.labels(endpoint='landing', outcome='served').inc()
        await audit.emit(make_event(
            SHARE_ACCESSED,
            issuer=issuer,
            token=token,
            path=resolved.file_path,
            endpoint='landing',
        ))
        page = render_landing_page(
            resolved,
            issuer_segment=quote(issuer, safe=''),
            token=token,
            content_type=guess_content_type(resolved.file_name),
        )
        return HTMLResponse(page, headers=_SHARE_HEADERS)

    @router.get('/share/{issuer}/{token}/download')
    @router.get('/share/{issuer}/{token}/content')
    async def share_content(issuer: str, token: str, download: str | None = None):
        """Stream the shared file's bytes.

        Error responses:
          - 404: Token not found or already evicted.
          - 410: Token expired (evicted as a side effect).
          - 500: Upstream fetch failed.
        """
        resolved = await _resolve(issuer, token, 'content')
        if isinstance(resolved, Response):
            return resolved
        record = resolved

        try:
            repo_path = resolve_repo_path(settings.content_root, record.file_path)
            data = await github.fetch_file(
                record.credential,
                record.owner,
                record.repo,
                record.branch,
                repo_path,
            )
        except (GitHubError, ValueError) as exc:
            SHARE_ACCESS_TOTAL.labels(endpoint='content', outcome='fetch_failed').inc()
            logger.warning(
                'share_content_fetch_failed',
                issuer=issuer,
                token_prefix=redact_token(token),
                error_type=type(exc).__name__,
            )
            await audit.emit(make_event(
                SHARE_FETCH_FAILED,
                issuer=issuer,
                token=token,
                path=record.file_path,
                endpoint='content',
                detail=type(exc).__name__,
            ))
            error: ShareError = ShareContentUnavailable('Failed to load shared file.')
            return _text(error.status_code, error.detail)

        SHARE_ACCESS_TOTAL.labels(endpoint='content', outcome='served').inc()
        as_attachment = parse_download_flag(download)
        await audit.emit(make_event(
            SHARE_ACCESSED,
            issuer=issuer,
            token=token,
            path=record.file_path,
            endpoint='content',
            detail='attachment' if as_attachment else 'inline',
        ))

        headers = dict(_SHARE_HEADERS)
        headers['Content-Disposition'] = content_disposition(
            record.file_name, download=as_attachment,
        )
        return Response(
            content=data,
            media_type=guess_content_type(record.file_name),
            headers=headers,
        )

    return router
