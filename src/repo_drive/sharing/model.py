"""Share-link domain model.

Each share link is an opaque random token bound to one file in one
GitHub repository, plus the issuer's credential so anonymous visitors
can be served without authenticating themselves.

Security invariant:
  The stored credential is used only server-side when proxying bytes.
  It is excluded from ``repr`` and from every serialized form, and it is
  cleared when the record is evicted.

This module provides:
  1. ``ShareLinkRecord``: one issued link.
  2. ``RepoCoordinate``: owner/repo/branch triple.
  3. ``generate_share_token``: token minting.
  4. Domain exceptions mapped to HTTP statuses by the routers.
"""

from __future__ import annotations

import posixpath
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone

# ── Constants ─────────────────────────────────────────────────────────

TOKEN_BYTES = 32  # 256-bit tokens, 64 hex characters.
SECONDS_PER_HOUR = 3600


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Token operations ──────────────────────────────────────────────────


def generate_share_token() -> str:
    """Generate a cryptographically random hex share token."""
    return secrets.token_hex(TOKEN_BYTES)


# ── Domain exceptions ─────────────────────────────────────────────────


class ShareError(Exception):
    """Base class for share-link failures surfaced to callers.

    ``detail`` is safe to return to the client; it never carries a
    credential or upstream error text.
    """

    status_code = 500
    error = 'internal_error'
    default_detail = 'Internal error.'

    def __init__(self, detail: str = '') -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {'error': self.error, 'detail': self.detail}


class InvalidShareRequest(ShareError):
    """Missing or malformed issuance parameters."""

    status_code = 400
    error = 'invalid_request'
    default_detail = 'Invalid share request.'

    def __init__(self, detail: str = '', *, fields: list[str] | None = None) -> None:
        self.fields = list(fields or [])
        super().__init__(detail)


class ShareUnauthorized(ShareError):
    """Credential rejected while resolving the issuer identity."""

    status_code = 401
    error = 'unauthorized'
    default_detail = 'Invalid or expired GitHub token.'


class ShareLinkNotFound(ShareError):
    """No share link matches the given issuer and token."""

    status_code = 404
    error = 'share_not_found'
    default_detail = 'Link not found or expired.'


class ShareLinkExpired(ShareError):
    """Share link existed but has passed its expiry time."""

    status_code = 410
    error = 'share_expired'
    default_detail = 'Link has expired.'

    def __init__(self, expired_at: datetime) -> None:
        self.expired_at = expired_at
        super().__init__()


class ShareContentUnavailable(ShareError):
    """Upstream failure while resolving identity or fetching content."""


# ── Domain model ──────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class RepoCoordinate:
    """Repository a link points into."""

    owner: str
    repo: str
    branch: str


@dataclass
class ShareLinkRecord:
    """One issued share link.

    Attributes:
        issuer: GitHub login resolved from the credential at issuance.
        file_path: Repository-relative path of the shared file.
        owner, repo, branch: Repository coordinates, fixed at issuance.
        created_at: Issuance timestamp.
        expires_at: ``created_at`` plus the requested duration.
        credential: Issuer's bearer credential. Never serialized.
    """

    issuer: str
    file_path: str
    owner: str
    repo: str
    branch: str
    expires_at: datetime
    credential: str = field(repr=False)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def coordinate(self) -> RepoCoordinate:
        return RepoCoordinate(self.owner, self.repo, self.branch)

    @property
    def file_name(self) -> str:
        return posixpath.basename(self.file_path.rstrip('/')) or self.file_path

    def is_expired(self, now: datetime | None = None) -> bool:
        """A link is still valid at exactly ``expires_at``."""
        return (now or utcnow()) > self.expires_at

    def clear_credential(self) -> None:
        self.credential = ''

    def to_public_dict(self) -> dict:
        """Serialize everything except the credential."""
        return {
            'issuer': self.issuer,
            'path': self.file_path,
            'owner': self.owner,
            'repo': self.repo,
            'branch': self.branch,
            'created_at': self.created_at.isoformat(),
            'expires_at': self.expires_at.isoformat(),
        }
