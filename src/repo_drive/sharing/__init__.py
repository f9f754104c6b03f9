"""Expiring anonymous share links for files in a user's GitHub repository."""

from .model import (
    InvalidShareRequest,
    RepoCoordinate,
    ShareContentUnavailable,
    ShareError,
    ShareLinkExpired,
    ShareLinkNotFound,
    ShareLinkRecord,
    ShareUnauthorized,
    TOKEN_BYTES,
    generate_share_token,
)
from .registry import InMemoryShareRegistry, ShareRegistry
from .service import IssuedShare, ShareIssuanceService, build_share_url
from .routes import CreateShareRequest, create_share_router, extract_bearer_token
from .access import (
    content_disposition,
    create_share_access_router,
    guess_content_type,
)
from .audit import (
    InMemoryShareAuditEmitter,
    LoggingShareAuditEmitter,
    ShareAuditEmitter,
    ShareAuditEvent,
    redact_token,
)
from .cleanup import ExpiredShareSweeper

__all__ = [
    'CreateShareRequest',
    'ExpiredShareSweeper',
    'InMemoryShareAuditEmitter',
    'InMemoryShareRegistry',
    'InvalidShareRequest',
    'IssuedShare',
    'LoggingShareAuditEmitter',
    'RepoCoordinate',
    'ShareAuditEmitter',
    'ShareAuditEvent',
    'ShareContentUnavailable',
    'ShareError',
    'ShareIssuanceService',
    'ShareLinkExpired',
    'ShareLinkNotFound',
    'ShareLinkRecord',
    'ShareRegistry',
    'ShareUnauthorized',
    'TOKEN_BYTES',
    'build_share_url',
    'content_disposition',
    'create_share_access_router',
    'create_share_router',
    'extract_bearer_token',
    'generate_share_token',
    'guess_content_type',
    'redact_token',
]
