"""Request and response schemas for the chat proxy endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Part(BaseModel):
    """One piece of a conversation turn."""

    model_config = ConfigDict(extra="allow")

    text: str = Field(..., description="Text content of this part")


class Content(BaseModel):
    """One conversation turn."""

    model_config = ConfigDict(extra="allow")

    role: str = Field(..., description="Speaker role, e.g. 'user' or 'model'")
    parts: list[Part] = Field(..., description="Ordered parts of the turn")


class ChatRequest(BaseModel):
    """Inbound chat request; ``contents`` is forwarded upstream untouched."""

    model_config = ConfigDict(extra="ignore")

    contents: list[Content] = Field(
        ...,
        description="Ordered conversation turns",
        examples=[[{"role": "user", "parts": [{"text": "Hello!"}]}]],
    )


class AttemptOut(BaseModel):
    key_index: int
    outcome: str
    status: int | None = None
    error: Any = None


class ErrorResponse(BaseModel):
    """Error envelope shared by every non-2xx response."""

    error: str
    source: str | None = None
    message: str | None = None
    details: Any = None
    attempts: list[AttemptOut] | None = None
    request_id: str | None = None
