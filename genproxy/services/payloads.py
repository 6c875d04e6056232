"""Upstream request/response shaping.

Pure helpers around the generateContent wire format:
- build the upstream body from conversation turns
- pull the structured error out of an upstream error body
- extract or normalise the candidate text of a success body
"""

from __future__ import annotations

from typing import Any, Iterable, Literal, Mapping

PayloadStyle = Literal["contents", "prompt"]


def _as_dict(turn: Any) -> dict[str, Any]:
    if hasattr(turn, "model_dump"):
        return turn.model_dump()
    return dict(turn)


def flatten_contents(contents: Iterable[Any]) -> str:
    """Flatten conversation turns into ``ROLE: text`` blocks.

    Blocks are separated by a blank line; multiple parts in one turn are
    joined by newlines.

    Examples:
        >>> flatten_contents([{"role": "user", "parts": [{"text": "hi"}]}])
        'USER: hi'
    """
    blocks = []
    for turn in contents:
        data = _as_dict(turn)
        role = str(data.get("role") or "user").upper()
        text = "\n".join(str(part.get("text", "")) for part in data.get("parts") or [])
        blocks.append(f"{role}: {text}")
    return "\n\n".join(blocks)


def build_upstream_payload(
    contents: Iterable[Any],
    style: PayloadStyle = "contents",
) -> dict[str, Any]:
    """Build the upstream request body.

    Args:
        contents: Conversation turns (pydantic models or plain mappings).
        style: ``contents`` forwards turns as-is; ``prompt`` is the legacy
            single-text form.

    Returns:
        dict: JSON-serialisable upstream body.

    Raises:
        ValueError: If style is unknown.
    """
    turns = list(contents)
    if style == "contents":
        return {"contents": [_as_dict(turn) for turn in turns]}
    if style == "prompt":
        return {"prompt": {"text": flatten_contents(turns)}}
    raise ValueError(f"unknown payload style: {style!r}")


def extract_upstream_error(body: Any) -> dict[str, Any] | None:
    """Return ``{code, status, message}`` from an upstream error body, if any."""
    if not isinstance(body, Mapping):
        return None
    error = body.get("error")
    if not isinstance(error, Mapping):
        return None
    return {
        "code": error.get("code"),
        "status": error.get("status"),
        "message": error.get("message"),
    }


def extract_text(body: Any) -> str:
    """Join the text parts of the first candidate; empty string when absent."""
    try:
        parts = body["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""
    return "".join(
        str(part.get("text", "")) for part in parts if isinstance(part, Mapping)
    )


def normalize_response(body: Any) -> dict[str, Any]:
    """Reshape an upstream success body into a single-candidate envelope."""
    return {
        "candidates": [{"content": {"parts": [{"text": extract_text(body)}]}}],
        "raw": body,
    }


def wrap_response(result: Any, *, model: str, duration_ms: float) -> dict[str, Any]:
    """Wrap a success body with the model name and the time spent upstream."""
    return {
        "ok": True,
        "model": model,
        "duration_ms": round(duration_ms),
        "result": result,
    }
