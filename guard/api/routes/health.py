from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe; outside the API prefix, so never rate limited."""

    return {"status": "ok"}


@router.get("/health/ready")
def readiness_check(request: Request) -> JSONResponse:
    """Ready once the lifespan has started the sweeper and the upstream client."""

    state = request.app.state
    sweeper_running = state.sweeper.running
    upstream_ready = getattr(state, "upstream", None) is not None
    ready = sweeper_running and upstream_ready

    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ok" if ready else "starting",
            "sweeper": sweeper_running,
            "upstream": upstream_ready,
        },
    )
