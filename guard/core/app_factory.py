"""Application factory for FastAPI app.

Centralizes app construction: the protection components are created here,
once, and handed to the gate, the middleware and the routes through
``app.state``. Passing instances in lets tests start from a fresh state.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI

from guard.adapters.audit.base import AbstractAuditLog
from guard.adapters.audit.in_memory import InMemoryAuditLog
from guard.adapters.rate_limit.base import AbstractRateLimiter
from guard.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from guard.adapters.rate_limit.sweeper import RateLimitSweeper
from guard.api.routes import health_router, security_router
from guard.core.config import settings
from guard.core.exception_handlers import setup_exception_handlers
from guard.core.logging import configure_logging
from guard.core.middleware import request_id_middleware, security_gate_middleware
from guard.core.openapi import apply_openapi_customizations
from guard.core.policy import LIMIT_CLASSES, PATH_POLICIES, validate_policy
from guard.services.gate import Gate
from guard.services.upstream import UpstreamFetcher
from guard.utils.response_cache import ResponseCache

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the rate limit sweep and own the upstream HTTP client."""

    sweeper: RateLimitSweeper = app.state.sweeper
    await sweeper.start()
    async with httpx.AsyncClient(timeout=settings.app.upstream_timeout_seconds) as client:
        app.state.upstream = UpstreamFetcher(client, app.state.response_cache)
        logger.info("startup.complete", extra={"app_env": settings.app_env})
        try:
            yield
        finally:
            await sweeper.stop()
    logger.info("shutdown.complete")


def create_app(
    *,
    rate_limiter: AbstractRateLimiter | None = None,
    audit_log: AbstractAuditLog | None = None,
    response_cache: ResponseCache | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        rate_limiter: Limiter to use; a fresh in-memory one by default.
        audit_log: Ledger to use; a fresh in-memory one by default.
        response_cache: Cache to use; a fresh one by default.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.

    Raises:
        ConfigurationAppError: If the policy tables are miswired.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    validate_policy(LIMIT_CLASSES, PATH_POLICIES)

    limiter = rate_limiter
    if limiter is None:
        limiter = InMemoryFixedWindowRateLimiter(limit_classes=LIMIT_CLASSES)
    ledger = audit_log
    if ledger is None:
        ledger = InMemoryAuditLog(capacity=settings.app.audit_capacity, echo=settings.app.debug)
    cache = response_cache
    if cache is None:
        cache = ResponseCache(settings.app.cache_default_ttl_seconds)

    app = FastAPI(
        title="Request Guard",
        description=(
            "Request protection layer: per-client fixed-window rate limiting, "
            "a bounded security audit ledger with derived metrics, and TTL "
            "caching of upstream fetches."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.rate_limiter = limiter
    app.state.audit_log = ledger
    app.state.response_cache = cache
    app.state.gate = Gate(
        limiter,
        ledger,
        path_policies=PATH_POLICIES,
        rate_limit_enabled=settings.app.rate_limit_enabled,
    )
    app.state.sweeper = RateLimitSweeper(
        limiter,
        interval_seconds=settings.app.rate_limit_sweep_interval_seconds,
    )

    # Middleware (last registered runs first)
    app.middleware("http")(security_gate_middleware)
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(security_router, prefix="/api")
    app.include_router(health_router)

    # OpenAPI customizations (security scheme, tags, exemptions)
    apply_openapi_customizations(app)

    return app
