"""Audit ledger interfaces and event types.

Events are immutable once created. Backends decide where they live; the
in-memory ledger keeps a bounded window of the most recent events.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Mapping

API_ACTION_PREFIX = "API_"


class AuditAction(str, Enum):
    """Closed set of security-relevant actions."""

    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    API_ACCESS = "API_ACCESS"
    SENSITIVE_ACCESS = "SENSITIVE_ACCESS"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    DATA_EXPORT = "DATA_EXPORT"
    DATA_IMPORT = "DATA_IMPORT"
    USER_CREATE = "USER_CREATE"
    USER_UPDATE = "USER_UPDATE"
    USER_DELETE = "USER_DELETE"


@dataclass(frozen=True)
class AuditEvent:
    """Immutable record of one security-relevant action.

    Attributes:
        id: Opaque unique identifier.
        timestamp: UTC creation time.
        action: What happened.
        resource: Path or object acted upon.
        client_address: Origin address of the request.
        client_agent: User agent of the request.
        success: Outcome of the action.
        actor_id: Acting principal, None for anonymous events.
        details: Read-only free-form context.
    """

    id: str
    timestamp: datetime
    action: AuditAction
    resource: str
    client_address: str
    client_agent: str
    success: bool
    actor_id: str | None = None
    details: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class SecurityMetrics:
    """Counts derived from recent audit events."""

    total_events: int
    failed_logins: int
    successful_logins: int
    api_calls: int
    suspicious_activity: int


class AbstractAuditLog(ABC):
    """Interface for audit ledgers."""

    @abstractmethod
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
        """Append one event.

        Implementations must never raise: a failure to record is reported on
        the process log and None is returned instead.
        """
        raise NotImplementedError

    @abstractmethod
    def query(
        self,
        actor_id: str | None = None,
        action: AuditAction | str | None = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Return a filtered snapshot, most recent first."""
        raise NotImplementedError

    @abstractmethod
    def metrics(self, window: timedelta = timedelta(hours=24)) -> SecurityMetrics:
        """Summarize events newer than now - window."""
        raise NotImplementedError


def summarize(events: list[AuditEvent]) -> SecurityMetrics:
    """Compute security metrics over an already filtered list of events."""

    failed_logins = 0
    successful_logins = 0
    api_calls = 0
    suspicious = 0
    for event in events:
        is_login = event.action is AuditAction.LOGIN
        if is_login:
            if event.success:
                successful_logins += 1
            else:
                failed_logins += 1
        elif not event.success:
            suspicious += 1
        if event.action.value.startswith(API_ACTION_PREFIX):
            api_calls += 1

    return SecurityMetrics(
        total_events=len(events),
        failed_logins=failed_logins,
        successful_logins=successful_logins,
        api_calls=api_calls,
        suspicious_activity=suspicious,
    )
