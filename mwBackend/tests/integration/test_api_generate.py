"""Tests for the generation endpoints: /api/generate, /api/generate-structured, /api/generate-stream."""

import json

import pytest
from unittest.mock import AsyncMock, patch

from providers.claude_provider import ClaudeProvider
from providers.errors import AppError, ErrorCode
from providers.models import GenerationResponse, StreamChunk, TokenUsage
from providers.openai_provider import OpenAIProvider
from providers.openrouter_provider import OpenRouterProvider


def _payload(**overrides):
    body = {
        "provider": "openai",
        "apiKey": "sk-test",
        "prompt": "Write about unit testing",
        "options": {"wordCount": 800, "tone": "professional", "format": "how-to"},
    }
    body.update(overrides)
    return body


def _response(content="An article"):
    return GenerationResponse(
        content=content,
        usage=TokenUsage(prompt_tokens=5, completion_tokens=10, total_tokens=15),
        model="gpt-4-turbo-preview",
        finish_reason="stop",
    )


def _events(text: str) -> list[tuple[str, dict]]:
    events = []
    for frame in text.strip().split("\n\n"):
        lines = frame.split("\n")
        events.append((lines[0][len("event: "):], json.loads(lines[1][len("data: "):])))
    return events


class TestGenerate:
    def test_success(self, client):
        with patch.object(OpenAIProvider, "generate_content", new_callable=AsyncMock,
                          return_value=_response()) as m:
            resp = client.post("/api/generate", json=_payload())

        assert resp.status_code == 200
        body = resp.json()
        assert body["content"] == "An article"
        assert body["usage"]["total_tokens"] == 15
        sent = m.await_args.args[0]
        assert sent.options.word_count == 800
        assert sent.options.tone == "professional"

    def test_model_and_max_tokens_forwarded(self, client):
        payload = _payload(model="gpt-4", options={
            "wordCount": 800, "tone": "casual", "format": "listicle", "maxTokens": 256,
        })
        with patch.object(OpenAIProvider, "generate_content", new_callable=AsyncMock,
                          return_value=_response()) as m:
            client.post("/api/generate", json=payload)
        assert m.await_args.args[0].options.max_tokens == 256

    def test_invalid_tone_is_400_before_network(self, client):
        payload = _payload(options={"wordCount": 800, "tone": "furious", "format": "how-to"})
        resp = client.post("/api/generate", json=payload)
        assert resp.status_code == 400
        assert "Invalid tone" in resp.json()["detail"]

    def test_word_count_out_of_range(self, client):
        payload = _payload(options={"wordCount": 20000, "tone": "casual", "format": "how-to"})
        resp = client.post("/api/generate", json=payload)
        assert resp.status_code == 400
        assert "Word count" in resp.json()["detail"]

    def test_unknown_provider(self, client):
        resp = client.post("/api/generate", json=_payload(provider="cohere"))
        assert resp.status_code == 400

    def test_missing_api_key(self, client):
        resp = client.post("/api/generate", json=_payload(apiKey=""))
        assert resp.status_code == 400
        assert "API key is required" in resp.json()["detail"]

    def test_unknown_model(self, client):
        resp = client.post("/api/generate", json=_payload(model="gpt-99"))
        assert resp.status_code == 400
        assert "Invalid model" in resp.json()["detail"]

    def test_rejected_model_closes_provider(self, client):
        with patch.object(OpenRouterProvider, "fetch_remote_models", new_callable=AsyncMock, return_value=[]), \
                patch.object(OpenRouterProvider, "aclose", new_callable=AsyncMock) as closed:
            resp = client.post(
                "/api/generate",
                json=_payload(provider="openrouter", apiKey="sk-or", model="acme/remote-1"),
            )

        assert resp.status_code == 400
        assert "Invalid model" in resp.json()["detail"]
        closed.assert_awaited_once()

    @pytest.mark.parametrize("code,status", [
        (ErrorCode.INVALID_API_KEY, 401),
        (ErrorCode.FORBIDDEN, 403),
        (ErrorCode.RATE_LIMIT_EXCEEDED, 429),
        (ErrorCode.PROVIDER_UNAVAILABLE, 503),
        (ErrorCode.NETWORK_ERROR, 502),
        (ErrorCode.API_ERROR, 502),
    ])
    def test_app_error_status_mapping(self, client, code, status):
        err = AppError(code, "vendor said no", {"provider": "openai"})
        with patch.object(OpenAIProvider, "generate_content", new_callable=AsyncMock, side_effect=err):
            resp = client.post("/api/generate", json=_payload())

        assert resp.status_code == status
        detail = resp.json()["detail"]
        assert detail["code"] == code.value
        assert detail["message"] == "vendor said no"


class TestGenerateStructured:
    def test_parsed_json(self, client):
        with patch.object(OpenAIProvider, "generate_content", new_callable=AsyncMock,
                          return_value=_response('Here is the JSON: {"title": "T"}')):
            resp = client.post("/api/generate-structured", json=_payload())

        assert resp.status_code == 200
        body = resp.json()
        assert body["data"] == {"title": "T"}
        assert body["parsed"] is True
        assert body["raw"] == 'Here is the JSON: {"title": "T"}'

    def test_unparseable_is_502(self, client):
        with patch.object(OpenAIProvider, "generate_content", new_callable=AsyncMock,
                          return_value=_response("no json at all")):
            resp = client.post("/api/generate-structured", json=_payload(maxRetries=1))

        assert resp.status_code == 502
        assert "Failed to parse JSON response" in resp.json()["detail"]

    def test_plain_text_mode(self, client):
        with patch.object(OpenAIProvider, "generate_content", new_callable=AsyncMock,
                          return_value=_response("just prose")):
            resp = client.post("/api/generate-structured", json=_payload(expectsJson=False))
        assert resp.json()["data"] == "just prose"

    def test_claude_prefill_forwarded(self, client):
        with patch.object(ClaudeProvider, "generate_content", new_callable=AsyncMock,
                          return_value=_response('{"title": "T"}')) as m:
            resp = client.post(
                "/api/generate-structured",
                json=_payload(provider="anthropic", apiKey="sk-ant", prefill="{"),
            )
        assert resp.status_code == 200
        assert m.await_args.args[0].prefill == "{"

    def test_max_retries_bounded(self, client):
        resp = client.post("/api/generate-structured", json=_payload(maxRetries=50))
        assert resp.status_code == 422


class TestGenerateStream:
    def test_chunks_then_done(self, client):
        async def fake_stream(self, request):
            yield StreamChunk(content="Hello ", is_complete=False)
            yield StreamChunk(content="world", is_complete=False)
            yield StreamChunk(content="", is_complete=True,
                              usage=TokenUsage(prompt_tokens=1, completion_tokens=2, total_tokens=3))

        with patch.object(OpenAIProvider, "generate_content_stream", fake_stream):
            resp = client.post("/api/generate-stream", json=_payload())

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        events = _events(resp.text)
        assert [e for e, _ in events] == ["chunk", "chunk", "done"]
        assert events[0][1] == {"content": "Hello "}
        assert events[-1][1]["usage"]["total_tokens"] == 3

    def test_error_after_start_becomes_event(self, client):
        async def failing_stream(self, request):
            yield StreamChunk(content="partial", is_complete=False)
            raise AppError(ErrorCode.PROVIDER_UNAVAILABLE, "went away", {"status": 503})

        with patch.object(OpenAIProvider, "generate_content_stream", failing_stream):
            resp = client.post("/api/generate-stream", json=_payload())

        events = _events(resp.text)
        assert events[0] == ("chunk", {"content": "partial"})
        assert events[-1][0] == "error"
        assert events[-1][1]["code"] == "PROVIDER_UNAVAILABLE"

    def test_invalid_options_rejected_before_stream(self, client):
        payload = _payload(options={"wordCount": 800, "tone": "casual", "format": "haiku"})
        resp = client.post("/api/generate-stream", json=payload)
        assert resp.status_code == 400
        assert "Invalid format" in resp.json()["detail"]
