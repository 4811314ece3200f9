"""Per-request admission gate composing rate limiting and audit logging.

For every inbound request the gate:
- Classifies the path into a limit class (API routes only)
- Consumes one unit of the client's budget for that class
- Records a RATE_LIMIT_EXCEEDED event on denial
- Records an API_ACCESS event for every protected page visit, success or not

General API traffic is only audited on denial to bound log volume. The rate
check and the audit record are not atomic with respect to each other.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from guard.adapters.audit.base import AbstractAuditLog, AuditAction
from guard.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from guard.core import policy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GateDecision:
    """Outcome of ``Gate.admit``.

    Attributes:
        allow: False only when the rate limit was exceeded.
        limit_class: Class the path was classified into, if any.
        rate_limit: Result of the rate check, if the path is rate limited.
        retry_after: Whole seconds until the window resets (denials only).
        message: Rejection message of the limit class (denials only).
        redirect_to: Page the client should be sent to instead, if any.
    """

    allow: bool
    limit_class: str | None = None
    rate_limit: RateLimitResult | None = None
    retry_after: int | None = None
    message: str | None = None
    redirect_to: str | None = None


class Gate:
    """Composed decision point in front of the HTTP handlers."""

    def __init__(
        self,
        limiter: AbstractRateLimiter,
        audit_log: AbstractAuditLog,
        *,
        path_policies: tuple[tuple[str, str], ...] = policy.PATH_POLICIES,
        protected_pages: tuple[str, ...] = policy.PROTECTED_PAGES,
        auth_pages: tuple[str, ...] = policy.AUTH_PAGES,
        rate_limit_enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._limiter = limiter
        self._audit_log = audit_log
        self._path_policies = path_policies
        self._protected_pages = protected_pages
        self._auth_pages = auth_pages
        self._rate_limit_enabled = rate_limit_enabled
        self._clock = clock

    def classify(self, path: str) -> str | None:
        return policy.classify_path(path, self._path_policies)

    def _retry_after(self, result: RateLimitResult) -> int:
        if result.retry_after_seconds is not None:
            return max(0, result.retry_after_seconds)
        return max(0, math.ceil(result.reset_at - self._clock()))

    def admit(
        self,
        client_id: str,
        path: str,
        client_address: str,
        client_agent: str,
        actor_id: str | None = None,
        authenticated: bool = False,
    ) -> GateDecision:
        """Decide whether a request may proceed.

        Args:
            client_id: Identity the rate limit is keyed on.
            path: Request path.
            client_address: Origin address recorded in audit events.
            client_agent: User agent recorded in audit events.
            actor_id: Authenticated principal, if known.
            authenticated: Whether the request carries a valid session.

        Returns:
            GateDecision for the request.
        """

        limit_class = self.classify(path) if self._rate_limit_enabled else None
        result: RateLimitResult | None = None

        if limit_class is not None:
            result = self._limiter.check(client_id, limit_class)
            if not result.allowed:
                retry_after = self._retry_after(result)
                self._audit_log.record(
                    AuditAction.RATE_LIMIT_EXCEEDED,
                    path,
                    client_address,
                    client_agent,
                    False,
                    details={"rate_limit_type": limit_class, "limit": result.limit},
                )
                logger.warning(
                    "gate.denied",
                    extra={
                        "path": path,
                        "limit_class": limit_class,
                        "limit": result.limit,
                        "retry_after_s": retry_after,
                    },
                )
                return GateDecision(
                    allow=False,
                    limit_class=limit_class,
                    rate_limit=result,
                    retry_after=retry_after,
                    message=result.message,
                )

        redirect_to: str | None = None
        if policy.is_protected_page(path, self._protected_pages):
            if authenticated:
                self._audit_log.record(
                    AuditAction.API_ACCESS,
                    path,
                    client_address,
                    client_agent,
                    True,
                    actor_id=actor_id,
                )
            else:
                self._audit_log.record(
                    AuditAction.API_ACCESS,
                    path,
                    client_address,
                    client_agent,
                    False,
                    details={"reason": "Unauthenticated access attempt"},
                )
                redirect_to = policy.LOGIN_REDIRECT
        elif authenticated and policy.is_auth_page(path, self._auth_pages):
            redirect_to = policy.HOME_REDIRECT

        return GateDecision(
            allow=True,
            limit_class=limit_class,
            rate_limit=result,
            redirect_to=redirect_to,
        )
