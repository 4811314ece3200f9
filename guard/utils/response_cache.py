"""In-memory TTL cache used to avoid redundant upstream fetches.

Freshness is decided by the reader: each ``get`` may pass its own TTL, so the
same entry can be fresh for one caller and stale for another. Expired entries
are dropped lazily on read; there is no background eviction.

Concurrent misses for the same key are not deduplicated: each caller may run
the producer and the last write wins.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass
class CacheEntry:
    """Container for cached values with insertion metadata."""

    value: Any
    stored_at: float


class ResponseCache:
    """Thread-safe, in-memory cache with read-time TTL.

    Attributes:
        default_ttl: Freshness applied when a read passes no TTL.
    """

    def __init__(
        self,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if default_ttl_seconds <= 0:
            raise ValueError("default_ttl_seconds must be > 0")

        self.default_ttl = default_ttl_seconds
        self._clock = clock
        self._store: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"ResponseCache(default_ttl={self.default_ttl}, size={len(self._store)}, "
            f"hits={self._hits}, misses={self._misses}, evictions={self._evictions})"
        )

    def get(self, key: str, ttl: float | None = None) -> Any | None:
        """Retrieve a cached value if it is fresh under the given TTL.

        Args:
            key: Cache key.
            ttl: Maximum age in seconds; defaults to ``default_ttl``.

        Returns:
            Cached value or None if not found/expired.
        """

        max_age = ttl if ttl is not None else self.default_ttl

        reason: str | None
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                reason = "not_found"
            elif self._clock() - entry.stored_at < max_age:
                self._hits += 1
                reason = None
            else:
                del self._store[key]
                self._misses += 1
                self._evictions += 1
                reason = "expired"

        if reason is None:
            logger.debug("cache.hit", extra={"cache_key": key})
            return entry.value

        logger.debug("cache.miss", extra={"cache_key": key, "reason": reason})
        return None

    def set(self, key: str, value: Any) -> None:
        """Store a value, overwriting any existing entry."""

        with self._lock:
            self._store[key] = CacheEntry(value=value, stored_at=self._clock())
            size = len(self._store)

        logger.debug("cache.set", extra={"cache_key": key, "size": size})

    def has(self, key: str) -> bool:
        """Return True if an entry exists, fresh or not."""

        with self._lock:
            return key in self._store

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def invalidate_all(self) -> None:
        """Remove all cached entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def stats(self) -> dict[str, int | float]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "default_ttl_seconds": self.default_ttl,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def fetch_with_cache(
        self,
        identifier: str,
        producer: Callable[[], T],
        cache_key: str | None = None,
        ttl: float | None = None,
    ) -> T:
        """Return the cached value for the key, or produce and cache it.

        Args:
            identifier: Upstream identifier (e.g., URL); the default key.
            producer: Zero-argument callable performing the upstream fetch.
            cache_key: Explicit key overriding ``identifier``.
            ttl: Freshness for the lookup; defaults to ``default_ttl``.

        Returns:
            The cached or freshly produced value.

        Raises:
            Exception: Whatever ``producer`` raises; nothing is cached then.
        """

        key = cache_key or identifier
        cached = self.get(key, ttl)
        if cached is not None:
            return cached

        value = producer()
        self.set(key, value)
        return value

    async def fetch_with_cache_async(
        self,
        identifier: str,
        producer: Callable[[], Awaitable[T]],
        cache_key: str | None = None,
        ttl: float | None = None,
    ) -> T:
        """Coroutine variant of ``fetch_with_cache`` for awaitable producers."""

        key = cache_key or identifier
        cached = self.get(key, ttl)
        if cached is not None:
            return cached

        value = await producer()
        self.set(key, value)
        return value
