"""Upstream adapter layer - abstracts over the generative-language provider."""

from genproxy.adapters.llm.base import AbstractUpstreamClient, UpstreamResponse
from genproxy.adapters.llm.factory import create_upstream_client
from genproxy.adapters.llm.gemini_client import GeminiClient

__all__ = [
    "AbstractUpstreamClient",
    "GeminiClient",
    "UpstreamResponse",
    "create_upstream_client",
]
