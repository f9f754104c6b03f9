"""Share-link issuance and resolution.

``ShareIssuanceService.create`` validates a request, resolves the
issuer's GitHub login from their credential, mints a token and stores a
record bound to that credential. ``ShareIssuanceService.resolve`` is the
lookup shared by the landing page and the content proxy: either endpoint
may be the first to observe expiry, and whichever does evicts the record.

Identity resolution is not retried; a caller with a rejected credential
must issue again with a valid one.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable
from urllib.parse import quote

from ..observability.logging import get_logger
from ..observability.metrics import SHARE_LINKS_CREATED_TOTAL, SHARE_LINKS_EVICTED_TOTAL
from ..providers.github_client import GitHubAuthError, GitHubClient, GitHubError
from .audit import (
    SHARE_CREATED,
    LoggingShareAuditEmitter,
    ShareAuditEmitter,
    make_event,
    redact_token,
)
from .model import (
    SECONDS_PER_HOUR,
    InvalidShareRequest,
    RepoCoordinate,
    ShareContentUnavailable,
    ShareLinkExpired,
    ShareLinkNotFound,
    ShareLinkRecord,
    ShareUnauthorized,
    generate_share_token,
    utcnow,
)
from .registry import ShareRegistry

logger = get_logger(__name__)

DEFAULT_MAX_EXPIRATION_HOURS = 720.0


@dataclass(frozen=True, slots=True)
class IssuedShare:
    """Result of a successful issuance, returned to the issuer once."""

    token: str
    url: str
    expires_at: datetime
    issuer: str

    def to_response(self) -> dict:
        return {
            'token': self.token,
            'url': self.url,
            'expiresAt': self.expires_at.isoformat(),
            'username': self.issuer,
        }


def build_share_url(base_url: str, issuer: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/share/{quote(issuer, safe='')}/{token}"


class ShareIssuanceService:
    """Issue share links and resolve them on access.

    Args:
        registry: Share registry (in-memory by default).
        github: Client used for identity resolution.
        clock: Returns the current UTC time; injected by tests.
        max_expiration_hours: Longest lifetime a single link may request.
        default_branch: Branch recorded when the request omits one.
        audit: Audit sink for ``share.created`` events.
    """

    def __init__(
        self,
        registry: ShareRegistry,
        github: GitHubClient,
        *,
        clock: Callable[[], datetime] = utcnow,
        max_expiration_hours: float = DEFAULT_MAX_EXPIRATION_HOURS,
        default_branch: str = 'main',
        audit: ShareAuditEmitter | None = None,
    ) -> None:
        self.registry = registry
        self.github = github
        self.clock = clock
        self.max_expiration_hours = max_expiration_hours
        self.default_branch = default_branch
        self.audit = audit or LoggingShareAuditEmitter()

    def _validate(
        self,
        credential: str | None,
        coordinate: RepoCoordinate,
        file_path: str | None,
        duration_hours: float | None,
    ) -> None:
        missing = [
            name
            for name, value in (
                ('authorization', credential),
                ('owner', coordinate.owner),
                ('repo', coordinate.repo),
                ('path', file_path),
                ('expirationHours', duration_hours),
            )
            if value is None or (isinstance(value, str) and not value.strip())
        ]
        if missing:
            raise InvalidShareRequest(
                f"Missing required field(s): {', '.join(missing)}",
                fields=missing,
            )

        if not math.isfinite(duration_hours):
            raise InvalidShareRequest(
                'expirationHours must be a finite number',
                fields=['expirationHours'],
            )
        if duration_hours <= 0:
            raise InvalidShareRequest(
                'expirationHours must be positive',
                fields=['expirationHours'],
            )
        if duration_hours > self.max_expiration_hours:
            raise InvalidShareRequest(
                f'expirationHours must not exceed {self.max_expiration_hours:g}',
                fields=['expirationHours'],
            )
        if '..' in file_path.split('/'):
            raise InvalidShareRequest(
                "path must not contain '..' segments",
                fields=['path'],
            )

    async def create(
        self,
        credential: str | None,
        coordinate: RepoCoordinate,
        file_path: str | None,
        duration_hours: float | None,
        *,
        base_url: str,
    ) -> IssuedShare:
        """Issue a new link for ``file_path``.

        Raises:
            InvalidShareRequest: Missing or malformed parameters.
            ShareUnauthorized: GitHub rejected the credential.
            ShareContentUnavailable: GitHub could not be reached.
        """
        self._validate(credential, coordinate, file_path, duration_hours)
        branch = (coordinate.branch or '').strip() or self.default_branch

        try:
            user = await self.github.get_authenticated_user(credential)
        except GitHubAuthError as exc:
            raise ShareUnauthorized() from exc
        except GitHubError as exc:
            logger.warning('share_identity_unavailable', error_type=type(exc).__name__)
            raise ShareContentUnavailable() from exc

        token = generate_share_token()
        now = self.clock()
        record = ShareLinkRecord(
            issuer=user.login,
            file_path=file_path.strip().lstrip('/'),
            owner=coordinate.owner.strip(),
            repo=coordinate.repo.strip(),
            branch=branch,
            created_at=now,
            expires_at=now + timedelta(seconds=duration_hours * SECONDS_PER_HOUR),
            credential=credential,
        )
        self.registry.put(user.login, token, record)
        SHARE_LINKS_CREATED_TOTAL.inc()

        await self.audit.emit(make_event(
            SHARE_CREATED,
            issuer=user.login,
            token=token,
            path=record.file_path,
            endpoint='create',
        ))
        logger.info(
            'share_link_created',
            issuer=user.login,
            token_prefix=redact_token(token),
            path=record.file_path,
            expires_at=record.expires_at.isoformat(),
        )

        return IssuedShare(
            token=token,
            url=build_share_url(base_url, user.login, token),
            expires_at=record.expires_at,
            issuer=user.login,
        )

    def resolve(self, issuer: str, token: str) -> ShareLinkRecord:
        """Return the active record for (issuer, token).

        Raises:
            ShareLinkNotFound: Never existed or already evicted.
            ShareLinkExpired: Past expiry; the record is evicted first.
        """
        record = self.registry.get(issuer, token)
        if record is None:
            raise ShareLinkNotFound()

        if record.is_expired(self.clock()):
            expired_at = record.expires_at
            if self.registry.evict(issuer, token):
                SHARE_LINKS_EVICTED_TOTAL.labels(reason='access').inc()
            raise ShareLinkExpired(expired_at)

        return record
