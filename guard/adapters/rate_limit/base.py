"""Rate limiter interfaces.

The gate depends on this abstraction (not the concrete implementation)
so we can swap storage backends later (e.g., Redis) with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window for the limit class.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window expires.
        message: Rejection message of the limit class when blocked.
        retry_after_seconds: Whole seconds until reset when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    message: str | None = None
    retry_after_seconds: int | None = None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters keyed by (client identity, limit class)."""

    @abstractmethod
    def check(self, client_id: str, limit_class: str) -> RateLimitResult:
        """Count one request from client_id under limit_class.

        Args:
            client_id: Client identity (usually the origin address).
            limit_class: Name of a configured limit class.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def sweep(self) -> int:
        """Drop expired entries.

        Returns:
            Number of entries removed.
        """
        raise NotImplementedError
