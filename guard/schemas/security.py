"""Pydantic schemas for the security diagnostics responses.

Field names follow the dashboard's JSON conventions (camelCase) through
aliases; Python code uses the snake_case attributes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from guard.adapters.audit.base import AuditEvent, SecurityMetrics


class AuditEventOut(BaseModel):
    """One audit event as exposed to operators."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Opaque event identifier.")
    timestamp: datetime = Field(..., description="UTC creation time.")
    actor_id: str | None = Field(
        default=None, alias="userId", description="Acting principal, if any."
    )
    action: str = Field(..., description="Audit action name.")
    resource: str = Field(..., description="Path or object acted upon.")
    client_address: str = Field(..., alias="ipAddress")
    client_agent: str = Field(..., alias="userAgent")
    success: bool
    details: Dict[str, Any] | None = None

    @classmethod
    def from_event(cls, event: AuditEvent) -> "AuditEventOut":
        return cls(
            id=event.id,
            timestamp=event.timestamp,
            actor_id=event.actor_id,
            action=event.action.value,
            resource=event.resource,
            client_address=event.client_address,
            client_agent=event.client_agent,
            success=event.success,
            details=dict(event.details) if event.details is not None else None,
        )


class SecurityMetricsOut(BaseModel):
    """Counts over the last 24 hours of audit events."""

    model_config = ConfigDict(populate_by_name=True)

    total_events: int = Field(..., alias="totalEvents")
    failed_logins: int = Field(..., alias="failedLogins")
    successful_logins: int = Field(..., alias="successfulLogins")
    api_calls: int = Field(..., alias="apiCalls")
    suspicious_activity: int = Field(..., alias="suspiciousActivity")

    @classmethod
    def from_metrics(cls, metrics: SecurityMetrics) -> "SecurityMetricsOut":
        return cls(
            total_events=metrics.total_events,
            failed_logins=metrics.failed_logins,
            successful_logins=metrics.successful_logins,
            api_calls=metrics.api_calls,
            suspicious_activity=metrics.suspicious_activity,
        )


class AuditLogsData(BaseModel):
    logs: List[AuditEventOut] = Field(default_factory=list)
    metrics: SecurityMetricsOut
    total: int = Field(..., description="Number of events returned.")


class AuditLogsResponse(BaseModel):
    success: bool = True
    data: AuditLogsData


class EnvironmentStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_valid: bool = Field(..., alias="isValid")
    issues: List[str] = Field(default_factory=list)


class SecurityStatusData(BaseModel):
    environment: EnvironmentStatus
    metrics: SecurityMetricsOut
    recommendations: List[str] = Field(default_factory=list)
    cache: Dict[str, int | float] = Field(
        default_factory=dict,
        description="Response cache counters (entries, hits, misses, evictions).",
    )


class SecurityStatusResponse(BaseModel):
    success: bool = True
    data: SecurityStatusData
