from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from guard.adapters.audit.base import AbstractAuditLog, AuditAction
from guard.api.dependencies import get_audit_log, get_response_cache
from guard.core.auth import verify_diagnostics_access
from guard.core.config import settings
from guard.core.errors import ValidationAppError
from guard.core.security import (
    build_recommendations,
    check_environment_security,
    get_request_context,
)
from guard.schemas.security import (
    AuditEventOut,
    AuditLogsData,
    AuditLogsResponse,
    EnvironmentStatus,
    SecurityMetricsOut,
    SecurityStatusData,
    SecurityStatusResponse,
)
from guard.utils.response_cache import ResponseCache

router = APIRouter(tags=["Security"])

AUDIT_LOGS_RESOURCE = "/api/security/audit-logs"

_ACTION_NAMES = [a.value for a in AuditAction]


def _check_action(action: str | None) -> None:
    if action is not None and action not in _ACTION_NAMES:
        raise ValidationAppError(
            code="unknown_audit_action",
            message=f"Unknown audit action '{action}'",
            details={"field": "action", "allowed": _ACTION_NAMES},
        )


@router.get(
    "/security/audit-logs",
    response_model=AuditLogsResponse,
    dependencies=[Depends(verify_diagnostics_access)],
)
async def get_audit_logs(
    request: Request,
    user_id: str | None = Query(None, alias="userId", description="Only events of this actor."),
    action: str | None = Query(None, description="Only events with this action name."),
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of events."),
    audit_log: AbstractAuditLog = Depends(get_audit_log),
) -> AuditLogsResponse:
    """Return recent audit events and 24h security metrics.

    Reading the ledger is itself recorded as a SENSITIVE_ACCESS event.
    Unknown action names are rejected with 400 before anything is recorded.
    """
    _check_action(action)
    ctx = get_request_context(request)
    audit_log.record(
        AuditAction.SENSITIVE_ACCESS,
        AUDIT_LOGS_RESOURCE,
        ctx.client_address,
        ctx.client_agent,
        True,
        actor_id=request.cookies.get("username"),
    )

    events = audit_log.query(actor_id=user_id, action=action, limit=limit)
    logs = [AuditEventOut.from_event(event) for event in events]

    return AuditLogsResponse(
        data=AuditLogsData(
            logs=logs,
            metrics=SecurityMetricsOut.from_metrics(audit_log.metrics()),
            total=len(logs),
        )
    )


@router.get(
    "/security/status",
    response_model=SecurityStatusResponse,
    dependencies=[Depends(verify_diagnostics_access)],
)
async def get_security_status(
    audit_log: AbstractAuditLog = Depends(get_audit_log),
    cache: ResponseCache = Depends(get_response_cache),
) -> SecurityStatusResponse:
    """Report deployment issues, recent metrics and recommendations."""
    report = check_environment_security(settings.app, app_env=settings.app_env)
    metrics = audit_log.metrics()

    return SecurityStatusResponse(
        data=SecurityStatusData(
            environment=EnvironmentStatus(is_valid=report.is_valid, issues=report.issues),
            metrics=SecurityMetricsOut.from_metrics(metrics),
            recommendations=build_recommendations(report, metrics, app_env=settings.app_env),
            cache=cache.stats(),
        )
    )
