"""Google Gemini (Generative Language API) adapter."""

import logging
from typing import Optional

from providers.base import BaseAIProvider, StreamState
from providers.models import (
    GenerationRequest,
    GenerationResponse,
    ModelInfo,
    ProviderType,
    StreamChunk,
    StructuredGenerationRequest,
    TokenUsage,
)
from providers.streaming import parse_event

logger = logging.getLogger(__name__)

GEMINI_MODELS = [
    ModelInfo(
        id="gemini-2.5-pro",
        name="Gemini 2.5 Pro",
        description="Most capable Gemini model for complex reasoning",
        max_tokens=1048576,
        input_cost_per_1000=0.00125,
        output_cost_per_1000=0.01,
        capabilities=["text-generation", "analysis", "complex-reasoning", "long-context"],
    ),
    ModelInfo(
        id="gemini-2.5-flash",
        name="Gemini 2.5 Flash",
        description="Balanced price and performance",
        max_tokens=1048576,
        input_cost_per_1000=0.0003,
        output_cost_per_1000=0.0025,
        capabilities=["text-generation", "analysis", "reasoning", "fast-response", "long-context"],
        is_default=True,
    ),
    ModelInfo(
        id="gemini-2.5-flash-lite",
        name="Gemini 2.5 Flash-Lite",
        description="Lowest latency Gemini 2.5 model",
        max_tokens=1048576,
        input_cost_per_1000=0.0001,
        output_cost_per_1000=0.0004,
        capabilities=["text-generation", "fast-response", "long-context"],
    ),
    ModelInfo(
        id="gemini-2.0-flash",
        name="Gemini 2.0 Flash",
        description="Previous generation workhorse model",
        max_tokens=1048576,
        input_cost_per_1000=0.0001,
        output_cost_per_1000=0.0004,
        capabilities=["text-generation", "analysis", "fast-response", "long-context"],
    ),
    ModelInfo(
        id="gemini-2.0-flash-lite",
        name="Gemini 2.0 Flash-Lite",
        description="Cost-efficient previous generation model",
        max_tokens=1048576,
        input_cost_per_1000=0.000075,
        output_cost_per_1000=0.0003,
        capabilities=["text-generation", "fast-response"],
    ),
]


def _gemini_usage(meta: Optional[dict]) -> Optional[TokenUsage]:
    if not meta:
        return None
    return TokenUsage(
        prompt_tokens=meta.get("promptTokenCount", 0) or 0,
        completion_tokens=meta.get("candidatesTokenCount", 0) or 0,
        total_tokens=meta.get("totalTokenCount", 0) or 0,
    )


def _candidate_text(candidate: dict) -> str:
    parts = candidate.get("content", {}).get("parts", [])
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


class GeminiProvider(BaseAIProvider):
    provider_type = ProviderType.GEMINI

    TONE_TEMPERATURES = {
        "professional": 0.2,
        "academic": 0.1,
        "casual": 0.8,
        "conversational": 0.7,
    }
    MAX_OUTPUT_TOKENS = 8192
    TOP_P = 0.8
    TOP_K = 40

    def default_model(self) -> str:
        return "gemini-2.5-flash"

    def default_base_url(self) -> str:
        return "https://generativelanguage.googleapis.com/v1beta"

    def get_available_models(self) -> list[ModelInfo]:
        return list(GEMINI_MODELS)

    async def validate_api_key(self) -> bool:
        try:
            r = await self.client.get(
                f"{self.base_url}/models",
                headers=self.create_headers(),
                params={"key": self.api_key},
            )
            return r.is_success
        except Exception as e:
            logger.warning(f"Gemini key validation failed: {e}")
            return False

    def build_structured_prompt(self, request: StructuredGenerationRequest) -> str:
        prompt = super().build_structured_prompt(request)
        if request.expects_json and request.prefill:
            prompt += f"\n\nBegin your response with exactly: {request.prefill}"
        return prompt

    def _endpoint(self, stream: bool) -> tuple[str, dict]:
        if stream:
            return (
                f"{self.base_url}/models/{self.model}:streamGenerateContent",
                {"key": self.api_key, "alt": "sse"},
            )
        return f"{self.base_url}/models/{self.model}:generateContent", {"key": self.api_key}

    def _build_payload(self, request: GenerationRequest, stream: bool) -> dict:
        return {
            "contents": [{"parts": [{"text": request.prompt}]}],
            "generationConfig": {
                "maxOutputTokens": self._max_output_tokens(request.options),
                "temperature": self._temperature_for_tone(request.options.tone),
                "topP": self.TOP_P,
                "topK": self.TOP_K,
            },
        }

    def _parse_response(self, data: dict, request: GenerationRequest) -> GenerationResponse:
        candidates = data.get("candidates") or []
        if not candidates:
            raise ValueError("No content generated from Gemini API")
        return GenerationResponse(
            content=_candidate_text(candidates[0]),
            usage=_gemini_usage(data.get("usageMetadata")),
            model=data.get("modelVersion") or self.model,
            finish_reason=candidates[0].get("finishReason"),
        )

    def _parse_stream_event(self, data: str, state: StreamState) -> Optional[StreamChunk]:
        # Gemini has no sentinel line; the stream ends with the transport and
        # usageMetadata is only complete in the last event.
        event = parse_event(data)
        if not isinstance(event, dict):
            return None

        usage = _gemini_usage(event.get("usageMetadata"))
        if usage:
            state.usage = usage

        candidates = event.get("candidates") or []
        text = _candidate_text(candidates[0]) if candidates else ""
        if not text:
            return None
        return StreamChunk(content=text, is_complete=False)
