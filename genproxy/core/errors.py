"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.

Error taxonomy for the proxy:
- ValidationAppError: malformed inbound request (400)
- ConfigurationAppError: no usable credentials (500, never retried)
- RateLimitedAppError: local admission rejected the caller (429)
- UpstreamTransportError: network/timeout/invalid JSON for one attempt
  (retryable, never rendered directly)
- TerminalUpstreamAppError: upstream rejected the request itself (upstream status)
- ExhaustedUpstreamAppError: every credential failed retryably (502)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep the shapes flexible while encouraging
    consistent keys across the codebase.
    """

    code: str | int
    status: str
    message: str
    hint: str
    http_status: int
    retry_after: float
    model: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input validation fails."""


class ConfigurationAppError(AppError):
    """Raised when the server lacks the configuration to serve a request."""


@dataclass
class RateLimitedAppError(AppError):
    """Raised when a client exceeds its sliding-window quota."""

    headers: dict[str, str] = field(default_factory=dict)


class UpstreamTransportError(AppError):
    """Raised by upstream clients when no usable HTTP response was obtained."""


@dataclass
class TerminalUpstreamAppError(AppError):
    """Upstream returned an error that retrying on another credential won't fix."""

    status_code: int = 400


@dataclass
class ExhaustedUpstreamAppError(AppError):
    """Every credential in the pool failed with a retryable outcome."""

    attempts: list[dict[str, Any]] = field(default_factory=list)
