"""OpenAPI customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata
- Bearer session auth and the ``X-CSRF-Token`` header as security schemes
- Per-operation security: health endpoints are open, safe methods need only
  the session, state-changing methods need session and CSRF token
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from finance_tracker.core.csrf import STATE_CHANGING_METHODS

TAGS_METADATA = [
    {
        "name": "Security",
        "description": "CSRF token issuance and session inspection.",
    },
    {
        "name": "Transactions",
        "description": "Income and expense records of the authenticated user.",
    },
    {
        "name": "Health",
        "description": "Liveness and readiness checks.",
    },
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and security schemes."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "SessionAuth",
            {
                "type": "http",
                "scheme": "bearer",
                "description": "Session token issued by the authentication provider.",
            },
        )
        security_schemes.setdefault(
            "CsrfToken",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-CSRF-Token",
                "description": "Token from GET /v1/csrf-token; required on POST/PUT/PATCH/DELETE.",
            },
        )

        existing_tag_names = {t.get("name") for t in schema.get("tags", [])}
        tags = schema.setdefault("tags", [])
        tags.extend(t for t in TAGS_METADATA if t["name"] not in existing_tag_names)

        for path, methods in schema.get("paths", {}).items():
            for method, operation in methods.items():
                if not isinstance(operation, dict):
                    continue
                if path.startswith("/health"):
                    operation["security"] = []
                elif method.upper() in STATE_CHANGING_METHODS:
                    operation["security"] = [{"SessionAuth": [], "CsrfToken": []}]
                else:
                    operation["security"] = [{"SessionAuth": []}]

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
