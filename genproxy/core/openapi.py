"""OpenAPI metadata and customization utilities.

Enriches the generated schema with tag descriptions and documents the
upstream-facing error envelope on the chat route. No security scheme is
declared: callers are anonymous and identified only by address for rate
limiting.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tag metadata."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Chat",
                "description": (
                    "Chat completions forwarded to the generative-language API "
                    "with per-client rate limiting and API key failover."
                ),
            },
            {
                "name": "Health",
                "description": "Liveness and configuration checks.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
