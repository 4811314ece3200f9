"""Security helpers shared by the gate middleware and diagnostics routes.

Includes:
- Static security response headers
- Request context extraction (client address, agent, session identity)
- Environment security check and operator recommendations
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from fastapi import Request

from guard.adapters.audit.base import SecurityMetrics
from guard.core.auth import parse_api_keys
from guard.core.config import AppSettings

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Content-Security-Policy": (
        "default-src 'self'; script-src 'self' 'unsafe-inline' 'unsafe-eval'; "
        "style-src 'self' 'unsafe-inline'; img-src 'self' data: https:; "
        "font-src 'self' data:; connect-src 'self' https://api.emailjs.com "
        "https://docs.google.com; frame-src 'self' https://docs.google.com;"
    ),
}

UNKNOWN = "unknown"

# Default password shipped with the dashboard; never acceptable in production.
KNOWN_DEFAULT_PASSWORDS = frozenset({"dashboardforall@123"})

FAILED_LOGIN_THRESHOLD = 10
SUSPICIOUS_ACTIVITY_THRESHOLD = 5
API_CALL_THRESHOLD = 1000


@dataclass(frozen=True)
class RequestContext:
    """Per-request facts the protection layer needs."""

    client_address: str
    client_agent: str
    authenticated: bool
    actor_id: str | None


def get_client_address(request: Request) -> str:
    """Resolve the origin address of a request.

    Prefers the first ``X-Forwarded-For`` hop, then ``X-Real-IP``, then the
    socket peer; falls back to ``"unknown"``.
    """

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN


def is_authenticated(request: Request) -> bool:
    return (
        request.cookies.get("authenticated") == "true"
        or request.headers.get("x-authenticated") == "true"
    )


def get_request_context(request: Request) -> RequestContext:
    """Collect client address, agent and session identity for a request."""

    authenticated = is_authenticated(request)
    return RequestContext(
        client_address=get_client_address(request),
        client_agent=request.headers.get("user-agent") or UNKNOWN,
        authenticated=authenticated,
        actor_id=request.cookies.get("username") if authenticated else None,
    )


@dataclass
class EnvironmentReport:
    is_valid: bool
    issues: list[str] = field(default_factory=list)


def check_environment_security(
    app_settings: AppSettings,
    *,
    app_env: str,
    environ: Mapping[str, str] | None = None,
) -> EnvironmentReport:
    """Inspect the process environment for insecure deployment settings.

    Args:
        app_settings: Application settings (required vars, password policy).
        app_env: Deployment environment name.
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        EnvironmentReport listing every issue found.
    """

    env = os.environ if environ is None else environ
    issues: list[str] = []

    required = [name.strip() for name in app_settings.required_env_vars.split(",") if name.strip()]
    for name in required:
        if not env.get(name):
            issues.append(f"Missing required environment variable: {name}")

    password = env.get("DASHBOARD_PASSWORD")
    if password and len(password) < app_settings.min_password_length:
        issues.append(
            "Dashboard password is too weak "
            f"(minimum {app_settings.min_password_length} characters recommended)"
        )

    if app_env == "production" and password in KNOWN_DEFAULT_PASSWORDS:
        issues.append("Using default password in production is not secure")

    if app_settings.api_key_required and not parse_api_keys(app_settings.api_keys):
        issues.append("API key authentication is enabled but no keys are configured")

    return EnvironmentReport(is_valid=not issues, issues=issues)


def build_recommendations(
    report: EnvironmentReport,
    metrics: SecurityMetrics,
    *,
    app_env: str,
    environ: Mapping[str, str] | None = None,
) -> list[str]:
    """Translate the environment report and recent metrics into advice."""

    env = os.environ if environ is None else environ
    recommendations: list[str] = []

    if not report.is_valid:
        recommendations.append("Fix environment security issues")

    if metrics.failed_logins > FAILED_LOGIN_THRESHOLD:
        recommendations.append(
            "High number of failed login attempts - consider implementing account lockout"
        )

    if metrics.suspicious_activity > SUSPICIOUS_ACTIVITY_THRESHOLD:
        recommendations.append("Suspicious activity detected - review audit logs")

    if metrics.api_calls > API_CALL_THRESHOLD:
        recommendations.append(
            "High API usage - consider implementing additional rate limiting"
        )

    if app_env == "production" and env.get("DASHBOARD_PASSWORD") in KNOWN_DEFAULT_PASSWORDS:
        recommendations.append("Change default password in production environment")

    return recommendations
