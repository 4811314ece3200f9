"""HTTP middleware: request correlation and the protection gate.

``request_id_middleware``:
- Accepts incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars for log correlation
- Injects request_id and total duration into response headers

``security_gate_middleware``:
- Runs ``Gate.admit`` for every request
- Answers denials with HTTP 429 and a ``Retry-After`` hint
- Answers redirect decisions with HTTP 307
- Adds X-RateLimit-* headers to rate limited routes and security headers
  to every response

Usage (last registered runs first):
    app.middleware("http")(security_gate_middleware)
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from guard.core.config import settings
from guard.core.logging import clear_request_id, set_request_id
from guard.core.security import SECURITY_HEADERS, get_request_context
from guard.services.gate import Gate, GateDecision


async def request_id_middleware(request: Request, call_next) -> Response:
    """Bind a correlation id to the request for logging.

    The client's id header (``settings.log.request_id_header``) is reused when
    present, otherwise a UUID4 is generated. Outermost middleware, so 429s and
    redirects produced by the gate carry the id and duration headers too.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


def _apply_security_headers(response: Response) -> None:
    if not settings.app.security_headers_enabled:
        return
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)


def _apply_rate_limit_headers(response: Response, decision: GateDecision) -> None:
    result = decision.rate_limit
    if result is None or not settings.app.rate_limit_include_headers:
        return
    response.headers["X-RateLimit-Limit"] = str(result.limit)
    response.headers["X-RateLimit-Remaining"] = str(result.remaining)
    response.headers["X-RateLimit-Reset"] = str(int(result.reset_at))


def build_denied_response(decision: GateDecision) -> JSONResponse:
    """Render a rate limit denial as HTTP 429."""

    retry_after = decision.retry_after or 0
    response = JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": decision.message,
            "retryAfter": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )
    _apply_rate_limit_headers(response, decision)
    return response


async def security_gate_middleware(request: Request, call_next) -> Response:
    """Admit, deny or redirect each request through the application's gate."""

    gate: Gate = request.app.state.gate
    ctx = get_request_context(request)

    decision = gate.admit(
        client_id=ctx.client_address,
        path=request.url.path,
        client_address=ctx.client_address,
        client_agent=ctx.client_agent,
        actor_id=ctx.actor_id,
        authenticated=ctx.authenticated,
    )

    if not decision.allow:
        response: Response = build_denied_response(decision)
    elif decision.redirect_to is not None:
        response = RedirectResponse(url=decision.redirect_to, status_code=307)
    else:
        response = await call_next(request)
        _apply_rate_limit_headers(response, decision)

    _apply_security_headers(response)
    return response
