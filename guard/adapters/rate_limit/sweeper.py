"""Background sweep of expired rate limit entries.

The limiter never deletes entries on its own; this task bounds memory by
calling ``sweep()`` on a fixed interval while the application is running.
"""

from __future__ import annotations

import asyncio
import logging

from guard.adapters.rate_limit.base import AbstractRateLimiter

logger = logging.getLogger(__name__)


class RateLimitSweeper:
    """Periodically removes expired entries from a rate limiter."""

    def __init__(self, limiter: AbstractRateLimiter, *, interval_seconds: float = 300.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        self._limiter = limiter
        self._interval = interval_seconds
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep task (no-op if already running)."""
        if self.running:
            logger.debug("sweep.already_running")
            return

        # Bound to the running loop; each lifespan gets its own
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(self._stop_event))
        logger.info("sweep.started", extra={"interval_s": self._interval})

    async def stop(self) -> None:
        """Stop the background sweep task."""
        if self._task is None:
            return

        if self._task.done():
            if not self._task.cancelled() and self._task.exception() is not None:
                logger.error("sweep.died", exc_info=self._task.exception())
            self._task = None
            return

        if self._stop_event is not None:
            self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("sweep.stop_timeout")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None
            logger.info("sweep.stopped")

    def sweep_once(self) -> int:
        removed = self._limiter.sweep()
        logger.debug("sweep.completed", extra={"removed": removed})
        return removed

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                # Interval elapsed
                try:
                    self.sweep_once()
                except Exception:
                    logger.exception("sweep.failed")
