"""Share-link audit events and token redaction.

Records who issued which link and every anonymous access outcome.

Security invariant:
  Credentials never appear in audit event data, and tokens appear only
  as an 8-character prefix for correlation.

This module provides:
  1. ``ShareAuditEvent``: structured audit record.
  2. ``ShareAuditEmitter``: protocol for event sinks.
  3. ``InMemoryShareAuditEmitter``: test implementation.
  4. ``LoggingShareAuditEmitter``: default sink, writes through structlog.
  5. ``redact_token``: safely truncate tokens for logging.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from ..observability.logging import get_logger

# ── Constants ─────────────────────────────────────────────────────────

TOKEN_PREFIX_LENGTH = 8  # Characters to keep for correlation.

SHARE_CREATED = 'share.created'
SHARE_ACCESSED = 'share.accessed'
SHARE_EXPIRED = 'share.expired'
SHARE_DENIED = 'share.denied'
SHARE_FETCH_FAILED = 'share.fetch_failed'


# ── Token redaction ──────────────────────────────────────────────────


def redact_token(token: str | None) -> str:
    """Safely truncate a token to a prefix for logging.

    Returns ``<prefix>...`` or ``<redacted>`` for missing/short tokens.
    """
    if not token or len(token) < TOKEN_PREFIX_LENGTH:
        return '<redacted>'
    return f'{token[:TOKEN_PREFIX_LENGTH]}...'


# ── Audit event model ───────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ShareAuditEvent:
    """Structured audit event for share operations.

    Attributes:
        event_type: One of the ``SHARE_*`` constants.
        issuer: GitHub login the link belongs to.
        token_prefix: First 8 chars of the token (for correlation only).
        path: The file path involved.
        endpoint: ``create``, ``landing`` or ``content``.
        detail: Additional context (e.g., denial reason).
        timestamp: When the event occurred.
    """

    event_type: str
    issuer: str
    token_prefix: str = '<redacted>'
    path: str = ''
    endpoint: str = ''
    detail: str = ''
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        """Serialize to a dict safe for JSON logging."""
        return {
            'event_type': self.event_type,
            'issuer': self.issuer,
            'token_prefix': self.token_prefix,
            'path': self.path,
            'endpoint': self.endpoint,
            'detail': self.detail,
            'timestamp': self.timestamp.isoformat(),
        }


def make_event(
    event_type: str,
    *,
    issuer: str,
    token: str | None,
    path: str = '',
    endpoint: str = '',
    detail: str = '',
) -> ShareAuditEvent:
    """Build an event, redacting the token."""
    return ShareAuditEvent(
        event_type=event_type,
        issuer=issuer,
        token_prefix=redact_token(token),
        path=path,
        endpoint=endpoint,
        detail=detail,
    )


# ── Emitter protocol ────────────────────────────────────────────────


class ShareAuditEmitter(Protocol):
    """Abstract audit event sink."""

    async def emit(self, event: ShareAuditEvent) -> None: ...


# ── Implementations ─────────────────────────────────────────────────


class InMemoryShareAuditEmitter:
    """Test audit emitter that stores events in memory."""

    def __init__(self) -> None:
        self.events: list[ShareAuditEvent] = []

    async def emit(self, event: ShareAuditEvent) -> None:
        self.events.append(event)

    def find(
        self,
        event_type: str | None = None,
        issuer: str | None = None,
    ) -> list[ShareAuditEvent]:
        """Filter events by type and/or issuer."""
        result = self.events
        if event_type:
            result = [e for e in result if e.event_type == event_type]
        if issuer:
            result = [e for e in result if e.issuer == issuer]
        return result


class LoggingShareAuditEmitter:
    """Write audit events as structured log lines."""

    def __init__(self, logger_name: str = 'repo_drive.audit') -> None:
        self._logger = get_logger(logger_name)

    async def emit(self, event: ShareAuditEvent) -> None:
        payload = event.to_dict()
        event_type = payload.pop('event_type')
        self._logger.info(event_type, **payload)
