"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before anything imports the settings module, so
no developer .env file leaks real credentials into the suite.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.pop("GENERATIVE_API_KEYS", None)
os.environ.pop("GENERATIVE_API_KEY", None)
os.environ.setdefault("GEMINI_MODEL", "gemini-test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Any, Callable

import pytest
from fastapi import FastAPI

from genproxy.core.app_factory import create_app
from genproxy.core.config import AppSettings, LogSettings, Settings, UpstreamSettings


def build_settings(
    keys: str | None = None,
    key: str | None = None,
    *,
    upstream: dict[str, Any] | None = None,
    **app_overrides: Any,
) -> Settings:
    """Explicit settings for one app instance, independent of the environment."""

    return Settings(
        upstream=UpstreamSettings(
            generative_api_keys=keys,
            generative_api_key=key,
            **(upstream or {}),
        ),
        app=AppSettings(**app_overrides),
        log=LogSettings(level="WARNING"),
    )


@pytest.fixture
def make_app() -> Callable[..., FastAPI]:
    """Build an isolated app from explicit settings (see build_settings)."""

    def _make(*args: Any, **kwargs: Any) -> FastAPI:
        return create_app(build_settings(*args, **kwargs))

    return _make
