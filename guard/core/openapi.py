"""OpenAPI schema tweaks for the diagnostics endpoints.

Only the ``/security`` routes require credentials, and they accept either an
``X-API-Key`` header or the dashboard session cookie. FastAPI cannot infer
that from the dependency, so the requirement is written into the schema here.
"""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import FastAPI

DIAGNOSTICS_PATH_MARKER = "/security/"

SECURITY_SCHEMES: Dict[str, Dict[str, str]] = {
    "ApiKeyAuth": {
        "type": "apiKey",
        "in": "header",
        "name": "X-API-Key",
        "description": "One of the keys configured in APP_API_KEYS.",
    },
    "SessionCookie": {
        "type": "apiKey",
        "in": "cookie",
        "name": "authenticated",
        "description": "Dashboard session cookie, value 'true' once logged in.",
    },
}

# Alternatives: either scheme on its own is enough
DIAGNOSTICS_SECURITY: List[Dict[str, List[str]]] = [{name: []} for name in SECURITY_SCHEMES]

TAGS: List[Dict[str, str]] = [
    {"name": "Security", "description": "Audit ledger and security status diagnostics."},
    {"name": "Health", "description": "Liveness probe; never rate limited."},
]


def _mark_diagnostics(paths: Dict[str, Any]) -> None:
    for path, operations in paths.items():
        if DIAGNOSTICS_PATH_MARKER not in path:
            continue
        for operation in operations.values():
            if isinstance(operation, dict):
                operation["security"] = DIAGNOSTICS_SECURITY


def apply_openapi_customizations(app: FastAPI) -> None:
    """Wrap ``app.openapi`` so the generated schema documents both credentials."""

    generate = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema is not None and "tags" in app.openapi_schema:
            return app.openapi_schema

        schema = generate()
        schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        for name, scheme in SECURITY_SCHEMES.items():
            schemes.setdefault(name, dict(scheme))

        _mark_diagnostics(schema.get("paths", {}))

        known = {tag.get("name") for tag in schema.setdefault("tags", [])}
        schema["tags"].extend(dict(tag) for tag in TAGS if tag["name"] not in known)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
