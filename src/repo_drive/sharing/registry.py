"""Process-wide share-link registry.

Records are keyed by (issuer, token). Eviction is lazy: the access
gateway evicts an expired record on the first lookup after expiry, and
the optional sweeper evicts records nobody comes back for. Nothing is
persisted; a restart drops every link.

Registry operations never perform I/O and never suspend.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Protocol

from .model import ShareLinkRecord, utcnow


# ── Registry protocol ────────────────────────────────────────────────


class ShareRegistry(Protocol):
    """Abstract share-link storage.

    A durable backend (key-value store with native TTL) can stand in for
    the in-memory map as long as it keeps the same contract.
    """

    def put(self, issuer: str, token: str, record: ShareLinkRecord) -> None: ...

    def get(self, issuer: str, token: str) -> ShareLinkRecord | None: ...

    def evict(self, issuer: str, token: str) -> bool: ...

    def sweep_expired(self, now: datetime | None = None) -> int: ...

    def count(self) -> int: ...


# ── In-memory implementation ─────────────────────────────────────────


class InMemoryShareRegistry:
    """issuer -> token -> record map.

    Mutations run under a lock so callers on a threadpool and callers on
    the event loop can share one instance.
    """

    def __init__(self) -> None:
        self._links: dict[str, dict[str, ShareLinkRecord]] = {}
        self._lock = threading.Lock()

    def put(self, issuer: str, token: str, record: ShareLinkRecord) -> None:
        # Tokens are unique by construction; an overwrite is not checked.
        with self._lock:
            self._links.setdefault(issuer, {})[token] = record

    def get(self, issuer: str, token: str) -> ShareLinkRecord | None:
        issuer_links = self._links.get(issuer)
        if issuer_links is None:
            return None
        return issuer_links.get(token)

    def evict(self, issuer: str, token: str) -> bool:
        """Remove one record. Returns False if it was already gone."""
        with self._lock:
            return self._evict_locked(issuer, token)

    def _evict_locked(self, issuer: str, token: str) -> bool:
        issuer_links = self._links.get(issuer)
        if issuer_links is None:
            return False
        record = issuer_links.pop(token, None)
        if not issuer_links:
            del self._links[issuer]
        if record is None:
            return False
        record.clear_credential()
        return True

    def sweep_expired(self, now: datetime | None = None) -> int:
        """Evict every expired record. Returns the number removed."""
        now = now or utcnow()
        removed = 0
        with self._lock:
            expired = [
                (issuer, token)
                for issuer, issuer_links in self._links.items()
                for token, record in issuer_links.items()
                if record.is_expired(now)
            ]
            for issuer, token in expired:
                if self._evict_locked(issuer, token):
                    removed += 1
        return removed

    def count(self) -> int:
        with self._lock:
            return sum(len(links) for links in self._links.values())

    def issuers(self) -> list[str]:
        """Issuers that currently hold at least one record."""
        with self._lock:
            return list(self._links)
