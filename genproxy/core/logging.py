"""Logging for the proxy: JSON lines, request correlation and credential redaction.

Every line emitted while serving a request is tagged with two correlation
fields kept in context variables:

- ``request_id``: set by the request-id middleware
- ``client_hash``: a truncated hash of the caller's address, set on admission

The proxy's own events (``dispatch.*``, ``rate_limit.*``, ``chat.request``)
carry a small set of well-known fields (``key_index``, ``pool_size``,
``status_code`` ...). The JSON formatter writes those right after the
correlation fields so lines line up when read side by side; anything else
follows in record order.

Upstream credentials must never reach a log line. They are removed three ways:
by field name (``SensitiveDataFilter``), from free-form text (``scrub_secrets``)
and by muting httpx's URL logging, since the key travels in the query string.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from genproxy.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
_client_hash_var: ContextVar[str | None] = ContextVar("client_hash", default=None)

# Field names whose values are replaced wholesale, at any nesting depth.
# Conversation text is treated like a credential: it belongs to the caller.
SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "api_key",
        "api_keys",
        "key",
        "credential",
        "credentials",
        "generative_api_key",
        "generative_api_keys",
        "x-goog-api-key",
        "authorization",
        "token",
        "secret",
        "password",
        "cookie",
        "set-cookie",
        "contents",
        "prompt",
        "parts",
        "text",
    }
)

CORRELATION_FIELDS: tuple[str, ...] = ("request_id", "client_hash")

# Fields the proxy's events share, in output order
PROXY_EVENT_FIELDS: tuple[str, ...] = (
    "key_index",
    "attempt",
    "attempt_count",
    "pool_size",
    "status_code",
    "duration_ms",
)

_RESERVED_ATTRS = frozenset(
    vars(LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime"}


def set_request_id(request_id: str | None) -> None:
    """Bind the request id for the rest of the current context."""

    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def set_client_hash(client_hash: str | None) -> None:
    """Bind the hashed caller identity for the rest of the current context."""

    _client_hash_var.set(client_hash)


def get_client_hash() -> str | None:
    return _client_hash_var.get()


def clear_request_context() -> None:
    """Forget both correlation fields."""

    _request_id_var.set(None)
    _client_hash_var.set(None)


def redact(value: Any, sensitive_keys: Iterable[str] = SENSITIVE_KEYS_DEFAULT) -> Any:
    """Return a copy of ``value`` with sensitive mapping entries replaced.

    Mappings are walked recursively, as are lists and tuples inside them.
    Scalars are returned unchanged.
    """

    keys = sensitive_keys if isinstance(sensitive_keys, (set, frozenset)) else set(sensitive_keys)
    if isinstance(value, Mapping):
        return {
            k: REDACTED if str(k).lower() in keys else redact(v, keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(redact(v, keys) for v in value)
    return value


def scrub_secrets(text: str, secrets: Iterable[str]) -> str:
    """Replace every occurrence of the given secrets in text with a marker.

    Args:
        text: Free-form text such as an exception message.
        secrets: Values that must never reach logs or clients.

    Returns:
        The text with each non-empty secret replaced by "[REDACTED]".
    """

    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text


def _extra_fields(record: LogRecord) -> dict[str, Any]:
    """Fields passed through ``extra=`` (anything LogRecord does not define)."""

    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


class RequestContextFilter(logging.Filter):
    """Copy request_id and client_hash from context onto the record."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        if getattr(record, "client_hash", None) is None:
            record.client_hash = get_client_hash()
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact sensitive extra fields on the record before formatting."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT))

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in _extra_fields(record).items():
            if key.lower() in self.sensitive_keys:
                setattr(record, key, REDACTED)
            else:
                setattr(record, key, redact(value, self.sensitive_keys))
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line: envelope, correlation, proxy fields, the rest."""

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT))
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        line: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }

        extras = redact(_extra_fields(record), self.sensitive_keys)
        if getattr(record, "request_id", None) is None:
            extras["request_id"] = get_request_id()
        if getattr(record, "client_hash", None) is None:
            extras["client_hash"] = get_client_hash()

        for name in CORRELATION_FIELDS + PROXY_EVENT_FIELDS:
            value = extras.pop(name, None)
            if value is not None:
                line[name] = value
        line.update(extras)

        return json.dumps(line, default=str, ensure_ascii=self.ensure_ascii)


class PlainFormatter(logging.Formatter):
    """Human-readable lines for local runs, prefixed with the request id."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s")

    def format(self, record: LogRecord) -> str:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id() or "-"
        return super().format(record)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    """Stdout by default, or a (rotating) file when LOG_OUTPUT=file."""

    if log_settings.output != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/genproxy.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install the proxy's handler on the root logger.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
    """

    cfg = log_settings or settings.log
    level = getattr(logging, cfg.level.upper(), logging.INFO)

    handler = _build_handler(cfg)
    handler.addFilter(RequestContextFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(PlainFormatter() if cfg.format == "plain" else JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Avoid double logging from uvicorn if it gets re-configured
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False

    # httpx logs full request URLs at INFO; the upstream credential travels in
    # the query string.
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
