"""FastAPI dependencies resolving the protection components of the running app.

Instances are built once by the app factory and stored on ``app.state``;
routes receive them through these functions instead of module globals.
"""

from __future__ import annotations

from fastapi import Request

from guard.adapters.audit.base import AbstractAuditLog
from guard.utils.response_cache import ResponseCache


def get_audit_log(request: Request) -> AbstractAuditLog:
    return request.app.state.audit_log


def get_response_cache(request: Request) -> ResponseCache:
    return request.app.state.response_cache
