"""OpenAI Chat Completions adapter."""

import logging
from typing import Optional

from providers.base import BaseAIProvider, StreamState
from providers.models import GenerationRequest, GenerationResponse, ModelInfo, ProviderType, StreamChunk, TokenUsage
from providers.streaming import parse_event

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"

OPENAI_MODELS = [
    ModelInfo(
        id="gpt-4-turbo-preview",
        name="GPT-4 Turbo Preview",
        description="Most capable GPT-4 model with 128k context window",
        max_tokens=128000,
        input_cost_per_1000=0.01,
        output_cost_per_1000=0.03,
        capabilities=["text-generation", "analysis", "reasoning"],
        is_default=True,
    ),
    ModelInfo(
        id="gpt-4",
        name="GPT-4",
        description="High-quality reasoning model with 8k context",
        max_tokens=8192,
        input_cost_per_1000=0.03,
        output_cost_per_1000=0.06,
        capabilities=["text-generation", "analysis", "reasoning"],
    ),
    ModelInfo(
        id="gpt-3.5-turbo",
        name="GPT-3.5 Turbo",
        description="Fast and efficient model with 16k context",
        max_tokens=16384,
        input_cost_per_1000=0.0005,
        output_cost_per_1000=0.0015,
        capabilities=["text-generation", "conversation"],
    ),
    ModelInfo(
        id="gpt-3.5-turbo-16k",
        name="GPT-3.5 Turbo 16K",
        description="Extended context version of GPT-3.5",
        max_tokens=16384,
        input_cost_per_1000=0.003,
        output_cost_per_1000=0.004,
        capabilities=["text-generation", "conversation"],
    ),
]


def chat_usage(usage: Optional[dict]) -> Optional[TokenUsage]:
    """Map an OpenAI-style ``usage`` block to TokenUsage."""
    if not usage:
        return None
    return TokenUsage(
        prompt_tokens=usage.get("prompt_tokens", 0) or 0,
        completion_tokens=usage.get("completion_tokens", 0) or 0,
        total_tokens=usage.get("total_tokens", 0) or 0,
    )


class OpenAIProvider(BaseAIProvider):
    provider_type = ProviderType.OPENAI

    def default_model(self) -> str:
        return "gpt-4-turbo-preview"

    def default_base_url(self) -> str:
        return "https://api.openai.com/v1"

    def get_available_models(self) -> list[ModelInfo]:
        return list(OPENAI_MODELS)

    def create_headers(self) -> dict[str, str]:
        return {**super().create_headers(), "Authorization": f"Bearer {self.api_key}"}

    async def validate_api_key(self) -> bool:
        try:
            r = await self.client.get(f"{self.base_url}/models", headers=self.create_headers())
            return r.is_success
        except Exception as e:
            logger.warning(f"OpenAI key validation failed: {e}")
            return False

    def _endpoint(self, stream: bool) -> tuple[str, dict]:
        return f"{self.base_url}/chat/completions", {}

    def _build_payload(self, request: GenerationRequest, stream: bool) -> dict:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": request.prompt}],
            "max_tokens": self._max_output_tokens(request.options),
            "temperature": self._temperature_for_tone(request.options.tone),
        }
        if stream:
            payload["stream"] = True
            # Usage only arrives in a final chunk with an empty choices list.
            payload["stream_options"] = {"include_usage": True}
        return payload

    def _parse_response(self, data: dict, request: GenerationRequest) -> GenerationResponse:
        choice = data["choices"][0]
        return GenerationResponse(
            content=choice["message"].get("content") or "",
            usage=chat_usage(data.get("usage")),
            model=data.get("model") or self.model,
            finish_reason=choice.get("finish_reason"),
        )

    def _parse_stream_event(self, data: str, state: StreamState) -> Optional[StreamChunk]:
        if data == DONE_SENTINEL:
            return StreamChunk(content="", is_complete=True, usage=state.usage)

        event = parse_event(data)
        if not isinstance(event, dict):
            return None

        usage = chat_usage(event.get("usage"))
        if usage:
            state.usage = usage

        choices = event.get("choices") or []
        delta = choices[0].get("delta", {}).get("content") if choices else None
        if not delta:
            return None
        return StreamChunk(content=delta, is_complete=False)
