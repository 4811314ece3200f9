from __future__ import annotations

from guard.api.routes.health import router as health_router
from guard.api.routes.security import router as security_router

__all__ = ["health_router", "security_router"]
