"""OpenAPI metadata and customization utilities.

Provides a helper to enrich the generated OpenAPI schema with:
- Tags metadata
- The throttling response every operation can return

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from app.core.config import settings
from app.core.rate_limit import RATE_LIMIT_ERROR, rate_limit_message


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and throttling docs.

    - Adds tags metadata if not present
    - Documents the rate limit response (429 by default) on every operation,
      since the limiter applies to all routes
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema
        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Users",
                "description": "User listing, one endpoint per connection strategy.",
            },
            {
                "name": "Health",
                "description": "Liveness and connection pool counters.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        status_code = str(settings.app.rate_limit_status_code)
        throttled = {
            "description": "Too many requests from this client in the current window",
            "content": {
                "application/json": {
                    "example": {
                        "error": RATE_LIMIT_ERROR,
                        "message": rate_limit_message(
                            settings.app.rate_limit_requests,
                            settings.app.rate_limit_window_seconds,
                        ),
                    }
                }
            },
        }
        for methods in schema.get("paths", {}).values():
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj.setdefault("responses", {}).setdefault(status_code, throttled)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
