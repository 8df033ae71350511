"""
Process-wide outbound request budget.

Bounds total external load across every grading run in the process:

- a global concurrency cap shared by fetches and adapter calls
- a minimum interval between requests to the same destination host
- a bounded wait queue; requests beyond it are rejected, never dropped

The budget holds no results, so it never lets one run influence another's
scores.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional
from urllib.parse import urlparse

import structlog

from sitegrade.exceptions import BudgetExhaustedError

logger = structlog.get_logger(__name__)


class OutboundBudget:
    """Concurrency cap plus per-destination pacing for outbound requests."""

    def __init__(
        self,
        max_concurrency: int = 16,
        per_destination_interval: float = 0.0,
        max_pending: int = 256,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency
        self.per_destination_interval = per_destination_interval
        self.max_pending = max_pending

        self._semaphore: Optional[asyncio.Semaphore] = None
        self._last_loop_id: Optional[int] = None
        self._pending = 0
        self._in_flight = 0
        self._last_request: Dict[str, float] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._pacing: Dict[str, int] = {}

        logger.debug(
            "Outbound budget initialized",
            max_concurrency=max_concurrency,
            per_destination_interval=per_destination_interval,
            max_pending=max_pending,
        )

    @classmethod
    def from_config(cls, config) -> OutboundBudget:
        return cls(
            max_concurrency=config.max_concurrency,
            per_destination_interval=config.per_destination_interval_seconds,
            max_pending=config.max_pending,
        )

    def _get_semaphore(self) -> asyncio.Semaphore:
        """Get the global semaphore, recreating it for a new event loop."""
        current_loop_id = id(asyncio.get_running_loop())
        if self._semaphore is None or self._last_loop_id != current_loop_id:
            self._semaphore = asyncio.Semaphore(self.max_concurrency)
            self._locks.clear()
            self._pacing.clear()
            self._last_loop_id = current_loop_id
        return self._semaphore

    def _get_destination_lock(self, destination: str) -> asyncio.Lock:
        if destination not in self._locks:
            self._locks[destination] = asyncio.Lock()
        return self._locks[destination]

    def _prune(self, now: float) -> None:
        """Forget destinations whose interval has elapsed and that nobody is pacing."""
        stale = [
            destination
            for destination, last in self._last_request.items()
            if now - last >= self.per_destination_interval and destination not in self._pacing
        ]
        for destination in stale:
            del self._last_request[destination]
            self._locks.pop(destination, None)

    async def _pace(self, destination: str) -> None:
        """Wait until the destination's minimum interval has elapsed."""
        if self.per_destination_interval <= 0:
            return
        self._prune(time.monotonic())
        self._pacing[destination] = self._pacing.get(destination, 0) + 1
        try:
            async with self._get_destination_lock(destination):
                last = self._last_request.get(destination)
                now = time.monotonic()
                if last is not None:
                    delay = self.per_destination_interval - (now - last)
                    if delay > 0:
                        logger.debug("Pacing request", destination=destination, delay=round(delay, 3))
                        await asyncio.sleep(delay)
                self._last_request[destination] = time.monotonic()
        finally:
            self._pacing[destination] -= 1
            if not self._pacing[destination]:
                del self._pacing[destination]

    @asynccontextmanager
    async def slot(self, url: str) -> AsyncIterator[None]:
        """Hold one outbound request slot for ``url``'s destination."""
        destination = (urlparse(url).hostname or "unknown").lower()
        semaphore = self._get_semaphore()

        if self._pending >= self.max_pending:
            logger.warning("Outbound request rejected, queue full", destination=destination, pending=self._pending)
            raise BudgetExhaustedError(f"Outbound request queue is full ({self.max_pending} pending)")

        self._pending += 1
        try:
            await semaphore.acquire()
        finally:
            self._pending -= 1

        self._in_flight += 1
        try:
            await self._pace(destination)
            yield
        finally:
            self._in_flight -= 1
            semaphore.release()

    def get_stats(self) -> Dict[str, int]:
        return {
            "in_flight": self._in_flight,
            "pending": self._pending,
            "destinations": len(self._last_request),
        }
