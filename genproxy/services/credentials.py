"""Credential pool parsing.

The pool is rebuilt from settings on every request; its order defines the
rotation order used by the dispatcher.
"""

from __future__ import annotations

from genproxy.core.config import UpstreamSettings

MAX_CREDENTIALS = 5


def parse_credentials(keys_string: str | None, *, limit: int = MAX_CREDENTIALS) -> list[str]:
    """Parse a comma-separated credential list, keeping order.

    Args:
        keys_string: Comma-separated credentials, or None.
        limit: Maximum number of credentials kept.

    Returns:
        Trimmed, non-empty credentials, at most ``limit`` of them.

    Examples:
        >>> parse_credentials("k1,k2,k3")
        ['k1', 'k2', 'k3']
        >>> parse_credentials(" k1 , ,k2 ")
        ['k1', 'k2']
        >>> parse_credentials(None)
        []
    """
    if not keys_string:
        return []

    keys = [key.strip() for key in keys_string.split(",") if key.strip()]
    return keys[:limit]


def load_credential_pool(upstream_settings: UpstreamSettings) -> list[str]:
    """Resolve the credential pool from upstream settings.

    ``GENERATIVE_API_KEYS`` wins when it yields at least one credential,
    otherwise the singular ``GENERATIVE_API_KEY`` is used.
    """
    pool = parse_credentials(upstream_settings.generative_api_keys)
    if pool:
        return pool
    return parse_credentials(upstream_settings.generative_api_key, limit=1)
