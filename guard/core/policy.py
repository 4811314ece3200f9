"""Static protection policy: limit classes and path classification tables.

The tables are plain module constants so they can be reviewed in one place.
``validate_policy`` runs once at application construction and fails fast on
miswiring, so classification never meets an unknown class per request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from guard.core.errors import ConfigurationAppError

API_PREFIX = "/api/"

DEFAULT_LIMIT_CLASS = "api"
AUTH_LIMIT_CLASS = "login"
SENSITIVE_LIMIT_CLASS = "sensitive"


@dataclass(frozen=True)
class LimitClass:
    """Named fixed-window policy applied to a category of endpoints.

    Attributes:
        name: Class identifier used in rate limit keys.
        window_seconds: Length of one fixed window.
        max_requests: Requests admitted per window.
        message: Rejection message returned to throttled clients.
    """

    name: str
    window_seconds: float
    max_requests: int
    message: str


LIMIT_CLASSES: dict[str, LimitClass] = {
    DEFAULT_LIMIT_CLASS: LimitClass(
        name=DEFAULT_LIMIT_CLASS,
        window_seconds=15 * 60,
        max_requests=100,
        message="Too many requests, please try again later",
    ),
    AUTH_LIMIT_CLASS: LimitClass(
        name=AUTH_LIMIT_CLASS,
        window_seconds=15 * 60,
        max_requests=5,
        message="Too many login attempts, please try again later",
    ),
    SENSITIVE_LIMIT_CLASS: LimitClass(
        name=SENSITIVE_LIMIT_CLASS,
        window_seconds=60 * 60,
        max_requests=10,
        message="Rate limit exceeded for sensitive operations",
    ),
}

# Ordered (prefix, class) pairs; first match wins.
PATH_POLICIES: tuple[tuple[str, str], ...] = (
    ("/api/auth/login", SENSITIVE_LIMIT_CLASS),
    ("/api/auth/change-password", SENSITIVE_LIMIT_CLASS),
    ("/api/submit-it-asset-request", SENSITIVE_LIMIT_CLASS),
    ("/api/update-request-status", SENSITIVE_LIMIT_CLASS),
    ("/api/auth/", AUTH_LIMIT_CLASS),
    ("/api/verify-finance-passkey", AUTH_LIMIT_CLASS),
    (API_PREFIX, DEFAULT_LIMIT_CLASS),
)

# Pages whose every access is audited and which require a session.
PROTECTED_PAGES: tuple[str, ...] = (
    "/sales",
    "/marketing",
    "/finance",
    "/hr",
    "/operations",
    "/it",
    "/president",
    "/admin",
    "/profile",
    "/home",
)

# Pages an authenticated visitor is bounced away from.
AUTH_PAGES: tuple[str, ...] = ("/splash", "/login")

LOGIN_REDIRECT = "/login"
HOME_REDIRECT = "/home"


def classify_path(
    path: str,
    policies: Sequence[tuple[str, str]] = PATH_POLICIES,
) -> str | None:
    """Return the limit class name for a request path.

    Args:
        path: Request path (no query string).
        policies: Ordered prefix table.

    Returns:
        Limit class name, or None when the path is not rate limited.
    """

    for prefix, class_name in policies:
        if path.startswith(prefix):
            return class_name
    return None


def is_protected_page(path: str, pages: Iterable[str] = PROTECTED_PAGES) -> bool:
    return any(path.startswith(page) for page in pages)


def is_auth_page(path: str, pages: Iterable[str] = AUTH_PAGES) -> bool:
    return any(path.startswith(page) for page in pages)


def validate_policy(
    limit_classes: Mapping[str, LimitClass] = LIMIT_CLASSES,
    policies: Sequence[tuple[str, str]] = PATH_POLICIES,
) -> None:
    """Check the policy tables for wiring mistakes.

    Raises:
        ConfigurationAppError: If a class is malformed, a class is registered
            under the wrong name, a path policy references an unknown class,
            or the required default/auth/sensitive classes are missing.
    """

    for key, limit_class in limit_classes.items():
        if key != limit_class.name:
            raise ConfigurationAppError(
                code="limit_class_name_mismatch",
                message=f"Limit class registered as '{key}' is named '{limit_class.name}'",
                details={"limit_class": key},
            )
        if limit_class.max_requests < 1:
            raise ConfigurationAppError(
                code="invalid_limit_class",
                message=f"Limit class '{key}' must allow at least one request",
                details={"limit_class": key},
            )
        if limit_class.window_seconds <= 0:
            raise ConfigurationAppError(
                code="invalid_limit_class",
                message=f"Limit class '{key}' must have a positive window",
                details={"limit_class": key},
            )

    for required in (DEFAULT_LIMIT_CLASS, AUTH_LIMIT_CLASS, SENSITIVE_LIMIT_CLASS):
        if required not in limit_classes:
            raise ConfigurationAppError(
                code="missing_limit_class",
                message=f"Required limit class '{required}' is not defined",
                details={"limit_class": required},
            )

    for prefix, class_name in policies:
        if not prefix.startswith("/"):
            raise ConfigurationAppError(
                code="invalid_path_policy",
                message=f"Path policy prefix '{prefix}' must start with '/'",
                details={"limit_class": class_name},
            )
        if class_name not in limit_classes:
            raise ConfigurationAppError(
                code="unknown_limit_class",
                message=f"Path policy '{prefix}' references unknown limit class '{class_name}'",
                details={"limit_class": class_name},
            )
