"""Periodic eviction of expired share links.

Access-time eviction only removes links somebody comes back for. The
sweeper removes the rest, so their credentials are not held past
expiry. A swept link answers 404 rather than 410, the same as any
evicted link.

This module provides:
  ``ExpiredShareSweeper``: ``run_once`` for tests, ``run_forever`` for
  the app lifespan task.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable

from ..observability.logging import get_logger
from ..observability.metrics import SHARE_LINKS_EVICTED_TOTAL
from .model import utcnow
from .registry import ShareRegistry

logger = get_logger(__name__)


class ExpiredShareSweeper:
    """Evicts expired records from a registry on a fixed interval.

    Args:
        registry: Registry to sweep.
        interval_seconds: Delay between sweeps. Must be positive.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        registry: ShareRegistry,
        interval_seconds: float,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError('interval_seconds must be positive')
        self.registry = registry
        self.interval_seconds = interval_seconds
        self.clock = clock

    def run_once(self) -> int:
        """Sweep now. Returns the number of records evicted."""
        removed = self.registry.sweep_expired(self.clock())
        if removed:
            SHARE_LINKS_EVICTED_TOTAL.labels(reason='sweep').inc(removed)
            logger.info('share_links_swept', removed=removed, remaining=self.registry.count())
        return removed

    async def run_forever(self) -> None:
        """Sweep until cancelled."""
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.run_once()
            except Exception:
                logger.exception('share_sweep_failed')
