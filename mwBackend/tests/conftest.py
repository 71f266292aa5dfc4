"""Shared test fixtures for the Medium Writer backend tests."""

import json
import os
import sys
from unittest.mock import AsyncMock, patch

import httpx
import pytest

# Ensure mwBackend is on sys.path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from providers.models import GenerationOptions, GenerationRequest


# ---------------------------------------------------------------------------
# FastAPI TestClient
# ---------------------------------------------------------------------------

@pytest.fixture()
def client():
    """FastAPI TestClient for route.app."""
    from starlette.testclient import TestClient
    from route import app

    with TestClient(app) as c:
        yield c


# ---------------------------------------------------------------------------
# Global state resets
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def reset_model_catalog_cache():
    """Empty the shared OpenRouter catalog cache between tests."""
    from providers.model_cache import default_cache
    default_cache.clear()
    default_cache._refresh_task = None
    yield
    default_cache.clear()
    default_cache._refresh_task = None


@pytest.fixture()
def reset_models_cache():
    """Reset the models_list module cache."""
    import models_list as _mod
    old_cache, old_ts = _mod._cache, _mod._cache_ts
    _mod._cache = None
    _mod._cache_ts = 0
    yield
    _mod._cache, _mod._cache_ts = old_cache, old_ts


@pytest.fixture()
def clear_config_cache():
    """Clear the lru_cache on getConfig."""
    from configs.getConfig import getConfig
    getConfig.cache_clear()
    yield
    getConfig.cache_clear()


@pytest.fixture()
def no_sleep():
    """Patch asyncio.sleep so retry backoff returns immediately."""
    with patch("providers.base.asyncio.sleep", new_callable=AsyncMock) as m:
        yield m


# ---------------------------------------------------------------------------
# HTTP mocking helpers
# ---------------------------------------------------------------------------

class Recorder:
    """MockTransport handler that replays queued responses and keeps requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        # Fresh copy so a queued response can be replayed on retries.
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


def _sse_body(*events, done: bool = False) -> bytes:
    """Encode events as ``data:`` lines, optionally ending with ``[DONE]``."""
    lines = []
    for event in events:
        payload = event if isinstance(event, str) else json.dumps(event)
        lines.append(f"data: {payload}\n\n")
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


@pytest.fixture()
def options():
    return GenerationOptions(word_count=1000, tone="professional", format="how-to")


@pytest.fixture()
def gen_request(options):
    return GenerationRequest(prompt="Write about testing", options=options)


@pytest.fixture()
def mock_http():
    """Factory fixture: call with responses, get (AsyncClient, Recorder)."""
    def _make(*responses):
        recorder = Recorder(*responses)
        return httpx.AsyncClient(transport=httpx.MockTransport(recorder)), recorder
    return _make


@pytest.fixture()
def sse_body():
    """Factory fixture: build an SSE response body from events."""
    return _sse_body
