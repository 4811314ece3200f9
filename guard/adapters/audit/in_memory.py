"""In-memory bounded audit ledger.

Notes:
- Per-process only and lost on restart.
- Thread-safe: appends and evictions share one lock; readers copy the ledger
  under the lock and filter outside it.
"""

from __future__ import annotations

import logging
import secrets
import threading
from collections import deque
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any, Callable, Mapping

from guard.adapters.audit.base import (
    AbstractAuditLog,
    AuditAction,
    AuditEvent,
    SecurityMetrics,
    summarize,
)

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryAuditLog(AbstractAuditLog):
    """Audit ledger retaining the most recent ``capacity`` events.

    Appending past capacity evicts the oldest events first; survivors keep
    their insertion order.
    """

    def __init__(
        self,
        *,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], datetime] = _utcnow,
        echo: bool = False,
    ) -> None:
        """Initialize the ledger.

        Args:
            capacity: Maximum number of retained events.
            clock: Time source returning timezone-aware datetimes.
            echo: Log every recorded event at INFO level (development aid).

        Raises:
            ValueError: If capacity is invalid.
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")

        self._capacity = capacity
        self._clock = clock
        self._echo = echo
        self._lock = threading.Lock()
        self._events: deque[AuditEvent] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def record(
        self,
        action: AuditAction,
        resource: str,
        client_address: str,
        client_agent: str,
        success: bool,
        actor_id: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> AuditEvent | None:
        """Append one immutable event, evicting the oldest beyond capacity.

        Never raises: failures are logged as ``audit.record_failed``.
        """
        try:
            event = AuditEvent(
                id=secrets.token_hex(32),
                timestamp=self._clock(),
                action=AuditAction(action),
                resource=resource,
                client_address=client_address,
                client_agent=client_agent,
                success=bool(success),
                actor_id=actor_id,
                details=MappingProxyType(dict(details)) if details is not None else None,
            )
            with self._lock:
                self._events.append(event)
        except Exception:
            logger.exception(
                "audit.record_failed",
                extra={"action": str(action), "resource": resource},
            )
            return None

        logger.log(
            logging.INFO if self._echo else logging.DEBUG,
            "audit.recorded",
            extra={
                "action": event.action.value,
                "resource": event.resource,
                "success": event.success,
                "actor_id": event.actor_id,
                "client_address": event.client_address,
            },
        )
        return event

    def _snapshot(self) -> list[AuditEvent]:
        with self._lock:
            return list(self._events)

    def query(
        self,
        actor_id: str | None = None,
        action: AuditAction | str | None = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Return events filtered by actor then action, most recent first.

        Args:
            actor_id: Keep only events of this actor when given.
            action: Keep only events of this action when given.
            limit: Maximum number of events returned.

        Raises:
            ValueError: If limit is negative.
        """
        if limit < 0:
            raise ValueError("limit must be >= 0")

        events = self._snapshot()
        if actor_id:
            events = [e for e in events if e.actor_id == actor_id]
        if action:
            wanted = action.value if isinstance(action, AuditAction) else action
            events = [e for e in events if e.action.value == wanted]

        # Newest first; ties keep reverse insertion order.
        events.reverse()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]

    def metrics(self, window: timedelta = timedelta(hours=24)) -> SecurityMetrics:
        cutoff = self._clock() - window
        return summarize([e for e in self._snapshot() if e.timestamp >= cutoff])
