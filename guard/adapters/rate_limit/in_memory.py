"""In-memory fixed-window rate limiter.

State lives in this process only, so N workers admit up to N times the limit.
One lock guards the entry table; ``check`` is atomic per call.

Windows are not aligned to the clock, so a client can get up to twice the
limit through in a short burst spanning a window boundary.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Mapping

from guard.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from guard.core.errors import ConfigurationAppError
from guard.core.policy import LIMIT_CLASSES, LimitClass


@dataclass
class RateLimitEntry:
    count: int
    window_reset_at: float


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Counts requests per ``"{client_id}:{limit_class}"`` key in fixed windows.

    A key's window opens at its first request and lasts the class's
    ``window_seconds``; the first request at or after the reset time opens a
    new one. Denied requests do not count and never move the reset time.
    """

    def __init__(
        self,
        *,
        limit_classes: Mapping[str, LimitClass] = LIMIT_CLASSES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Create an empty limiter.

        Args:
            limit_classes: Classes this limiter enforces, keyed by name.
            clock: Returns the current UNIX time in seconds.

        Raises:
            ValueError: If no limit classes are given.
        """
        if not limit_classes:
            raise ValueError("limit_classes must not be empty")

        self._limit_classes = dict(limit_classes)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, RateLimitEntry] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _resolve_class(self, name: str) -> LimitClass:
        limit_class = self._limit_classes.get(name)
        if limit_class is None:
            raise ConfigurationAppError(
                code="unknown_limit_class",
                message=f"Unknown limit class '{name}'",
                details={"limit_class": name},
            )
        return limit_class

    def check(self, client_id: str, limit_class: str) -> RateLimitResult:
        """Count one request and decide admission.

        Allowed requests increment the window count; denials leave it as is.

        Args:
            client_id: Client identity (e.g., origin IP address).
            limit_class: Name of a configured limit class.

        Returns:
            RateLimitResult; denials carry the class message and retry delay.

        Raises:
            ConfigurationAppError: If limit_class is not configured.
        """
        cfg = self._resolve_class(limit_class)
        key = f"{client_id}:{cfg.name}"

        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)

            if entry is None or now >= entry.window_reset_at:
                entry = RateLimitEntry(count=1, window_reset_at=now + cfg.window_seconds)
                self._entries[key] = entry
                return RateLimitResult(
                    allowed=True,
                    limit=cfg.max_requests,
                    remaining=cfg.max_requests - 1,
                    reset_at=entry.window_reset_at,
                )

            if entry.count >= cfg.max_requests:
                return RateLimitResult(
                    allowed=False,
                    limit=cfg.max_requests,
                    remaining=0,
                    reset_at=entry.window_reset_at,
                    message=cfg.message,
                    retry_after_seconds=max(0, int(math.ceil(entry.window_reset_at - now))),
                )

            entry.count += 1
            return RateLimitResult(
                allowed=True,
                limit=cfg.max_requests,
                remaining=cfg.max_requests - entry.count,
                reset_at=entry.window_reset_at,
            )

    def sweep(self) -> int:
        """Remove entries whose window has expired.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if now >= entry.window_reset_at]
            for key in expired:
                del self._entries[key]
            return len(expired)
