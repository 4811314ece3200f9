"""Credentials for the diagnostics endpoints.

The gate itself never authenticates anyone; only the audit and status reads
are guarded. Two credentials are accepted:

- the dashboard session cookie ``authenticated=true``
- an ``X-API-Key`` header matching one of ``APP_API_KEYS`` (comma-separated)

Keys are never logged; a short SHA-256 prefix identifies them instead.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from guard.core.config import settings
from guard.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)

SESSION_COOKIE = "authenticated"


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Split a comma-separated key list, dropping blanks and whitespace.

    >>> sorted(parse_api_keys("ops-key, audit-key ,"))
    ['audit-key', 'ops-key']
    >>> parse_api_keys(None)
    set()
    """
    if not keys_string:
        return set()
    return {key.strip() for key in keys_string.split(",") if key.strip()}


def key_fingerprint(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def validate_api_key(provided_key: str) -> None:
    """Check a key against the configured list.

    Raises:
        AuthenticationAppError: ``api_keys_not_configured`` when keys are
            required but none are set, ``invalid_api_key`` on a mismatch.
    """
    if not settings.app.api_key_required:
        return

    valid_keys = parse_api_keys(settings.app.api_keys)
    if not valid_keys:
        logger.error("auth.keys_not_configured")
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="API key authentication is enabled but no valid keys are configured",
            details={"hint": "Set APP_API_KEYS or use the session cookie only with APP_API_KEY_REQUIRED=false"},
        )

    if provided_key not in valid_keys:
        logger.warning(
            "auth.invalid_key",
            extra={"key_fingerprint": key_fingerprint(provided_key)},
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


async def verify_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """Dependency accepting a request only with a configured API key (403 otherwise)."""
    if not settings.app.api_key_required:
        return

    if not x_api_key:
        logger.warning("auth.missing_key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing API key. Provide X-API-Key header.",
        )

    try:
        validate_api_key(x_api_key)
    except AuthenticationAppError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message) from exc

    logger.debug("auth.key_accepted", extra={"key_fingerprint": key_fingerprint(x_api_key)})


async def verify_diagnostics_access(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """Dependency guarding the audit and status endpoints.

    A dashboard session passes as is. Without one, a request needs an API
    key, judged by ``verify_api_key``; with API keys disabled the session is
    the only credential. Anything else gets 401.
    """
    if request.cookies.get(SESSION_COOKIE) == "true":
        return

    if x_api_key is None or not settings.app.api_key_required:
        logger.warning("auth.unauthenticated", extra={"path": request.url.path})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    await verify_api_key(x_api_key=x_api_key)
