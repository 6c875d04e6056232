"""Tests for upstream payload building and response shaping."""

import pytest

from genproxy.schemas.chat import ChatRequest
from genproxy.services.payloads import (
    build_upstream_payload,
    extract_text,
    extract_upstream_error,
    flatten_contents,
    normalize_response,
    wrap_response,
)

CONTENTS = [
    {"role": "user", "parts": [{"text": "Siapa kamu?"}]},
    {"role": "model", "parts": [{"text": "Asisten."}, {"text": "Ada yang bisa dibantu?"}]},
]


class TestBuildUpstreamPayload:
    def test_contents_style_forwards_turns(self) -> None:
        assert build_upstream_payload(CONTENTS) == {"contents": CONTENTS}

    def test_accepts_pydantic_models(self) -> None:
        request = ChatRequest(contents=CONTENTS)

        assert build_upstream_payload(request.contents) == {"contents": CONTENTS}

    def test_prompt_style_flattens_turns(self) -> None:
        payload = build_upstream_payload(CONTENTS, "prompt")

        assert payload == {
            "prompt": {
                "text": "USER: Siapa kamu?\n\nMODEL: Asisten.\nAda yang bisa dibantu?"
            }
        }

    def test_unknown_style(self) -> None:
        with pytest.raises(ValueError):
            build_upstream_payload(CONTENTS, "messages")  # type: ignore[arg-type]

    def test_flatten_empty(self) -> None:
        assert flatten_contents([]) == ""


class TestExtractUpstreamError:
    def test_extracts_fields(self) -> None:
        body = {
            "error": {
                "code": 429,
                "status": "RESOURCE_EXHAUSTED",
                "message": "Quota exceeded",
                "details": [{"@type": "type.googleapis.com/google.rpc.QuotaFailure"}],
            }
        }

        assert extract_upstream_error(body) == {
            "code": 429,
            "status": "RESOURCE_EXHAUSTED",
            "message": "Quota exceeded",
        }

    @pytest.mark.parametrize("body", [None, [], {}, {"error": "text"}, {"candidates": []}])
    def test_no_error(self, body) -> None:
        assert extract_upstream_error(body) is None


class TestResponseShaping:
    def test_extract_text_joins_parts(self) -> None:
        body = {"candidates": [{"content": {"parts": [{"text": "Ha"}, {"text": "lo"}]}}]}

        assert extract_text(body) == "Halo"

    @pytest.mark.parametrize(
        "body",
        [{}, {"candidates": []}, {"candidates": [{"finishReason": "SAFETY"}]}, None],
    )
    def test_extract_text_missing(self, body) -> None:
        assert extract_text(body) == ""

    def test_normalize_keeps_raw(self) -> None:
        body = {"candidates": [{"content": {"parts": [{"text": "Halo"}]}}], "usageMetadata": {}}

        assert normalize_response(body) == {
            "candidates": [{"content": {"parts": [{"text": "Halo"}]}}],
            "raw": body,
        }

    def test_wrap_response_rounds_duration(self) -> None:
        assert wrap_response({"candidates": []}, model="gemini-test", duration_ms=41.6) == {
            "ok": True,
            "model": "gemini-test",
            "duration_ms": 42,
            "result": {"candidates": []},
        }
