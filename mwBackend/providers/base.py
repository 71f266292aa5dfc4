"""
Base generation contract shared by every provider adapter.

Adapters supply the vendor wire format through a handful of hooks
(``_endpoint``, ``_build_payload``, ``_parse_response``,
``_parse_stream_event``); request execution, retries and metrics live
here.
"""

import asyncio
import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar

import httpx

from providers.errors import (
    AUTH_FAILURE_STATUSES,
    AppError,
    InvalidFormat,
    InvalidModel,
    InvalidTone,
    InvalidWordCount,
    LocalValidationError,
    ProviderHTTPError,
    classify_error,
)
from providers.models import (
    MAX_WORD_COUNT,
    MIN_WORD_COUNT,
    ArticleFormat,
    ArticleTone,
    GenerationOptions,
    GenerationRequest,
    GenerationResponse,
    ModelInfo,
    ProviderType,
    StreamChunk,
    StructuredGenerationRequest,
    StructuredGenerationResponse,
    TokenUsage,
    UsageMetrics,
)
from providers.streaming import iter_sse_data, read_error_body
from providers.structured import generate_structured_content as _generate_structured

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 120.0
USER_AGENT = "Medium-AI-Writing-Assistant/1.0.0"

JSON_INSTRUCTION = (
    "\n\nIMPORTANT: Respond with ONLY valid JSON. Do not include any explanatory "
    "text, markdown formatting, or code blocks. Return only the raw JSON object "
    "that matches the requested format."
)

_VALID_TONES = [t.value for t in ArticleTone]
_VALID_FORMATS = [f.value for f in ArticleFormat]


@dataclass
class StreamState:
    """Per-call accumulator for a streaming response."""
    usage: Optional[TokenUsage] = None
    prefill: Optional[str] = None
    extra: dict = field(default_factory=dict)


class BaseAIProvider(ABC):
    """Abstract base for all vendor adapters."""

    provider_type: ProviderType

    # Tone -> temperature. Values are per-vendor tuning constants.
    TONE_TEMPERATURES: dict[str, float] = {
        "professional": 0.3,
        "academic": 0.2,
        "casual": 0.7,
        "conversational": 0.6,
    }
    DEFAULT_TEMPERATURE = 0.5
    TOKENS_PER_WORD = 1.5
    MAX_OUTPUT_TOKENS = 4000

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.api_key = api_key
        self.model = model or self.default_model()
        self.base_url = (base_url or self.default_base_url()).rstrip("/")
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._metrics = UsageMetrics()

    # ── Vendor hooks ──────────────────────────────────────────────────

    @abstractmethod
    def default_model(self) -> str:
        ...

    @abstractmethod
    def default_base_url(self) -> str:
        ...

    @abstractmethod
    def get_available_models(self) -> list[ModelInfo]:
        ...

    @abstractmethod
    async def validate_api_key(self) -> bool:
        """Vendor-specific auth probe. Never raises."""

    @abstractmethod
    def _endpoint(self, stream: bool) -> tuple[str, dict]:
        """Return (url, query params) for a generation call."""

    @abstractmethod
    def _build_payload(self, request: GenerationRequest, stream: bool) -> dict:
        ...

    @abstractmethod
    def _parse_response(self, data: dict, request: GenerationRequest) -> GenerationResponse:
        ...

    @abstractmethod
    def _parse_stream_event(self, data: str, state: StreamState) -> Optional[StreamChunk]:
        """Turn one SSE payload into a chunk.

        Returns None for lines that carry no text, and a chunk with
        ``is_complete=True`` when the vendor's end-of-stream sentinel is seen.
        """

    # ── HTTP plumbing ─────────────────────────────────────────────────

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    def create_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }

    async def _post_json(self, url: str, payload: dict, params: Optional[dict] = None) -> Any:
        """POST once and decode the body; non-2xx raises ProviderHTTPError."""
        res = await self.client.post(url, headers=self.create_headers(), params=params, json=payload)
        if res.is_error:
            try:
                body = res.json()
            except ValueError:
                body = res.text
            raise ProviderHTTPError(res.status_code, body)
        return res.json()

    # ── Generation ────────────────────────────────────────────────────

    async def generate_content(self, request: GenerationRequest) -> GenerationResponse:
        self.validate_generation_options(request.options)

        url, params = self._endpoint(stream=False)
        payload = self._build_payload(request, stream=False)
        start = time.perf_counter()

        try:
            data = await self.retry_request(lambda: self._post_json(url, payload, params))
            result = self._parse_response(data, request)
        except Exception as e:
            self._update_metrics(0, _elapsed_ms(start), True)
            raise self.handle_error(e) from e

        tokens = result.usage.total_tokens if result.usage else 0
        self._update_metrics(tokens, _elapsed_ms(start), False)
        logger.info(f"{self.provider_type.value} response: model={result.model}, tokens={tokens}")
        return result

    async def generate_content_stream(self, request: GenerationRequest) -> AsyncIterator[StreamChunk]:
        """Yield chunks as the vendor produces them.

        The last chunk has ``is_complete=True``. Closing the generator early
        exits the ``client.stream`` context, which closes the connection.
        """
        self.validate_generation_options(request.options)

        url, params = self._endpoint(stream=True)
        payload = self._build_payload(request, stream=True)
        state = StreamState(prefill=self._effective_prefill(request))
        start = time.perf_counter()

        try:
            async with self.client.stream(
                "POST", url, headers=self.create_headers(), params=params, json=payload
            ) as response:
                if response.is_error:
                    raise ProviderHTTPError(response.status_code, await read_error_body(response))

                async for data in iter_sse_data(response):
                    chunk = self._parse_stream_event(data, state)
                    if chunk is None:
                        continue
                    if chunk.is_complete:
                        self._finish_stream(state, start)
                        yield chunk
                        return
                    yield chunk
        except Exception as e:
            self._update_metrics(0, _elapsed_ms(start), True)
            raise self.handle_error(e) from e

        # Transport ended without an explicit sentinel.
        self._finish_stream(state, start)
        yield StreamChunk(content="", is_complete=True, usage=state.usage)

    def _finish_stream(self, state: StreamState, start: float) -> None:
        tokens = state.usage.total_tokens if state.usage else 0
        self._update_metrics(tokens, _elapsed_ms(start), False)

    def _effective_prefill(self, request: GenerationRequest) -> Optional[str]:
        if request.prefill and self.supports_prefilling():
            return request.prefill.rstrip()
        return None

    async def generate_structured_content(
        self, request: StructuredGenerationRequest
    ) -> StructuredGenerationResponse:
        return await _generate_structured(self, request)

    def build_structured_prompt(self, request: StructuredGenerationRequest) -> str:
        prompt = request.prompt
        if request.expects_json:
            prompt += JSON_INSTRUCTION
        return prompt

    # ── Shared behaviour ──────────────────────────────────────────────

    def validate_generation_options(self, options: GenerationOptions) -> None:
        if not MIN_WORD_COUNT <= options.word_count <= MAX_WORD_COUNT:
            raise InvalidWordCount(
                f"Word count must be between {MIN_WORD_COUNT} and {MAX_WORD_COUNT:,}"
            )
        if options.tone not in _VALID_TONES:
            raise InvalidTone(f"Invalid tone. Must be one of: {', '.join(_VALID_TONES)}")
        if options.format not in _VALID_FORMATS:
            raise InvalidFormat(f"Invalid format. Must be one of: {', '.join(_VALID_FORMATS)}")

    async def retry_request(
        self,
        operation: Callable[[], Awaitable[T]],
        max_retries: int = 3,
        base_delay: float = 1.0,
    ) -> T:
        """Run ``operation`` with exponential backoff.

        Attempt ``n`` waits ``base_delay * 2 ** (n - 1)`` seconds before the
        next one. 401/403 and local validation errors are raised at once.
        """
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")

        for attempt in range(1, max_retries + 1):
            try:
                return await operation()
            except LocalValidationError:
                raise
            except Exception as e:
                if getattr(e, "status", None) in AUTH_FAILURE_STATUSES:
                    raise
                if attempt == max_retries:
                    raise
                delay = base_delay * 2 ** (attempt - 1)
                logger.warning(
                    f"{self.provider_type.value} request failed "
                    f"(attempt {attempt}/{max_retries}): {e}; retrying in {delay}s"
                )
                await asyncio.sleep(delay)

    def handle_error(self, error: BaseException) -> AppError:
        app_error = classify_error(error, self.provider_type.value)
        logger.error(f"{self.provider_type.value} call failed: {app_error.code.value} {app_error.message}")
        return app_error

    def _temperature_for_tone(self, tone: str) -> float:
        return self.TONE_TEMPERATURES.get(tone, self.DEFAULT_TEMPERATURE)

    def _max_output_tokens(self, options: GenerationOptions) -> int:
        budget = options.max_tokens or math.ceil(options.word_count * self.TOKENS_PER_WORD)
        return min(self.MAX_OUTPUT_TOKENS, budget)

    def _update_metrics(self, tokens: int, response_time_ms: float, is_error: bool) -> None:
        # Synchronous: concurrent coroutines on one adapter never interleave here.
        m = self._metrics
        m.request_count += 1
        m.total_requests += 1
        m.tokens_used += tokens
        m.last_used = datetime.now(timezone.utc)
        if is_error:
            m.error_count += 1
            m.failed_requests += 1
        else:
            m.successful_requests += 1
        m.average_response_time += (response_time_ms - m.average_response_time) / m.request_count

    # ── Introspection ─────────────────────────────────────────────────

    def get_usage_metrics(self) -> UsageMetrics:
        return self._metrics.model_copy()

    def set_model(self, model: str) -> None:
        available = [m.id for m in self.get_available_models()]
        if model not in available:
            raise InvalidModel(f"Invalid model: {model}. Available models: {', '.join(available)}")
        self.model = model

    def get_current_model(self) -> str:
        return self.model

    def supports_prefilling(self) -> bool:
        return False

    def get_info(self) -> dict:
        return {
            "type": self.provider_type.value,
            "model": self.model,
            "baseURL": self.base_url,
            "hasValidKey": bool(self.api_key),
            "availableModels": [m.model_dump() for m in self.get_available_models()],
            "supportsPrefilling": self.supports_prefilling(),
        }


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
