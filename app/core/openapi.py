"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata
- A shared ``TooManyRequests`` response documented on every operation,
  including the rate limit headers
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from app.schemas.health import RateLimitErrorResponse

_RATE_LIMIT_HEADERS: Dict[str, Any] = {
    "X-RateLimit-Limit": {
        "description": "Threshold of the window that applies to this response.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Remaining": {
        "description": "Requests left before the most restrictive window trips.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Reset": {
        "description": "UNIX epoch seconds when the relevant window clears.",
        "schema": {"type": "integer"},
    },
    "Retry-After": {
        "description": "Seconds to wait before retrying (429 only).",
        "schema": {"type": "integer", "minimum": 1},
    },
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to document rate limiting.

    - Registers ``components.responses.TooManyRequests``
    - References it as the ``429`` response of every operation
    - Adds tags metadata if not present
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        components.setdefault("schemas", {}).setdefault(
            "RateLimitErrorResponse", RateLimitErrorResponse.model_json_schema()
        )
        components.setdefault("responses", {}).setdefault(
            "TooManyRequests",
            {
                "description": "Rate limit exceeded for the caller's identity.",
                "headers": _RATE_LIMIT_HEADERS,
                "content": {
                    "application/json": {
                        "schema": {"$ref": "#/components/schemas/RateLimitErrorResponse"}
                    }
                },
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Health",
                "description": "Liveness checks and service metadata.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for methods in schema.get("paths", {}).values():
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj.setdefault("responses", {}).setdefault(
                        "429", {"$ref": "#/components/responses/TooManyRequests"}
                    )

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
