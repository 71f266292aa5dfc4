"""OpenRouter adapter: OpenAI-compatible chat completions over many vendors."""

import logging
import re
from typing import Optional

import httpx

from providers.base import DEFAULT_TIMEOUT
from providers.model_cache import ModelCatalogCache, default_cache
from providers.models import GenerationRequest, ModelInfo, ProviderType
from providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

APP_REFERER = "https://medium-ai-assistant.com"
APP_TITLE = "Medium AI Writing Assistant"
DEFAULT_MODEL = "openai/gpt-4-turbo-preview"
CATALOG_TIMEOUT = 10.0

# Remote catalog entries are listed in this order first, then by name.
PREFERRED_ORDER = [
    "openai/gpt-4-turbo-preview",
    "openai/gpt-4",
    "anthropic/claude-3-opus",
    "anthropic/claude-3-sonnet",
    "anthropic/claude-3-haiku",
    "google/gemini-pro",
    "meta-llama/llama-2-70b-chat",
]

# Image and audio models.
EXCLUDED_PREFIXES = ("openai/whisper-1", "openai/dall-e-3", "stability-ai/", "midjourney/")

FALLBACK_MODELS = [
    ModelInfo(
        id="openai/gpt-4-turbo-preview",
        name="GPT-4 Turbo Preview",
        description="OpenAI GPT-4 Turbo via OpenRouter",
        max_tokens=128000,
        input_cost_per_1000=0.01,
        output_cost_per_1000=0.03,
        capabilities=["text-generation", "analysis", "reasoning"],
        is_default=True,
    ),
    ModelInfo(
        id="anthropic/claude-3-opus",
        name="Claude 3 Opus",
        description="Anthropic Claude 3 Opus via OpenRouter",
        max_tokens=200000,
        input_cost_per_1000=0.015,
        output_cost_per_1000=0.075,
        capabilities=["text-generation", "analysis", "complex-reasoning"],
    ),
    ModelInfo(
        id="anthropic/claude-3-sonnet",
        name="Claude 3 Sonnet",
        description="Anthropic Claude 3 Sonnet via OpenRouter",
        max_tokens=200000,
        input_cost_per_1000=0.003,
        output_cost_per_1000=0.015,
        capabilities=["text-generation", "analysis", "reasoning"],
    ),
    ModelInfo(
        id="google/gemini-pro",
        name="Gemini Pro",
        description="Google Gemini Pro via OpenRouter",
        max_tokens=32768,
        input_cost_per_1000=0.0005,
        output_cost_per_1000=0.0015,
        capabilities=["text-generation", "analysis", "reasoning"],
    ),
    ModelInfo(
        id="meta-llama/llama-2-70b-chat",
        name="Llama 2 70B Chat",
        description="Meta Llama 2 70B model optimized for chat",
        max_tokens=4096,
        input_cost_per_1000=0.0007,
        output_cost_per_1000=0.0009,
        capabilities=["text-generation", "conversation"],
    ),
    ModelInfo(
        id="mistralai/mistral-7b-instruct",
        name="Mistral 7B Instruct",
        description="Efficient Mistral model for instructions",
        max_tokens=32768,
        input_cost_per_1000=0.0001,
        output_cost_per_1000=0.0001,
        capabilities=["text-generation", "instructions", "fast-response"],
    ),
]


# ---------------------------------------------------------------------------
# Remote catalog conversion
# ---------------------------------------------------------------------------

def should_include_model(model: dict) -> bool:
    """Keep only current text-generation models with a known context size."""
    model_id = model.get("id") or ""
    if model_id.startswith(EXCLUDED_PREFIXES):
        return False
    if "deprecated" in model_id or "beta" in model_id:
        return False
    return (model.get("context_length") or 0) > 0


def determine_capabilities(model: dict) -> list[str]:
    capabilities = ["text-generation"]
    model_id = (model.get("id") or "").lower()

    if "gpt-4" in model_id or "claude-3-opus" in model_id:
        capabilities += ["complex-reasoning", "analysis"]
    elif "claude-3" in model_id or "gemini" in model_id:
        capabilities += ["analysis", "reasoning"]
    elif "llama" in model_id or "mistral" in model_id:
        capabilities.append("conversation")

    if any(marker in model_id for marker in ("turbo", "flash", "7b")):
        capabilities.append("fast-response")
    if (model.get("context_length") or 0) > 32000:
        capabilities.append("long-context")
    return capabilities


def _format_name(name: str) -> str:
    name = re.sub(r"\(OpenRouter\)", "", name, flags=re.IGNORECASE)
    name = re.sub(r"via OpenRouter", "", name, flags=re.IGNORECASE)
    return name.strip()


def _per_thousand(price) -> Optional[float]:
    # OpenRouter quotes USD per token as a string.
    if not price:
        return None
    try:
        return float(price) * 1000
    except (TypeError, ValueError):
        return None


def convert_model(model: dict) -> ModelInfo:
    raw_name = model.get("name") or model["id"]
    pricing = model.get("pricing") or {}
    return ModelInfo(
        id=model["id"],
        name=_format_name(raw_name),
        description=model.get("description") or f"{raw_name} via OpenRouter",
        max_tokens=model.get("context_length") or 4096,
        input_cost_per_1000=_per_thousand(pricing.get("prompt")),
        output_cost_per_1000=_per_thousand(pricing.get("completion")),
        capabilities=determine_capabilities(model),
        is_default=model["id"] == DEFAULT_MODEL,
    )


def _sort_key(model: ModelInfo) -> tuple:
    if model.id in PREFERRED_ORDER:
        return (0, PREFERRED_ORDER.index(model.id), "")
    return (1, 0, model.name.lower())


def sort_models(models: list[ModelInfo]) -> list[ModelInfo]:
    return sorted(models, key=_sort_key)


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

class OpenRouterProvider(OpenAIProvider):
    """Same wire format as OpenAI plus attribution headers and transforms."""

    provider_type = ProviderType.OPENROUTER

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
        model_cache: Optional[ModelCatalogCache] = None,
    ):
        super().__init__(api_key, model=model, base_url=base_url, client=client, timeout=timeout)
        self.model_cache = model_cache or default_cache

    def default_model(self) -> str:
        return DEFAULT_MODEL

    def default_base_url(self) -> str:
        return "https://openrouter.ai/api/v1"

    def create_headers(self) -> dict[str, str]:
        return {
            **super().create_headers(),
            "HTTP-Referer": APP_REFERER,
            "X-Title": APP_TITLE,
        }

    def get_available_models(self) -> list[ModelInfo]:
        cached = self.model_cache.get()
        if cached is not None:
            return cached
        self.model_cache.schedule_refresh(self.fetch_remote_models)
        return list(FALLBACK_MODELS)

    async def fetch_remote_models(self) -> list[ModelInfo]:
        """Fetch, filter, convert and sort the live OpenRouter catalog.

        Uses a short-lived client of its own unless one was injected; the
        adapter's lazily created client is never touched.
        """
        try:
            if self._owns_client:
                async with httpx.AsyncClient(timeout=CATALOG_TIMEOUT) as client:
                    raw = await self._get_catalog(client)
            else:
                raw = await self._get_catalog(self.client)
        except Exception as e:
            logger.error(f"Error fetching OpenRouter models: {e}")
            return list(FALLBACK_MODELS)

        return sort_models([convert_model(m) for m in raw if should_include_model(m)])

    async def _get_catalog(self, client: httpx.AsyncClient) -> list[dict]:
        r = await client.get(f"{self.base_url}/models", headers=self.create_headers())
        r.raise_for_status()
        return r.json().get("data") or []

    async def validate_api_key(self) -> bool:
        try:
            r = await self.client.get(f"{self.base_url}/models", headers=self.create_headers())
            return r.is_success
        except Exception as e:
            logger.warning(f"OpenRouter key validation failed: {e}")
            return False

    def _build_payload(self, request: GenerationRequest, stream: bool) -> dict:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": request.prompt}],
            "max_tokens": self._max_output_tokens(request.options),
            "temperature": self._temperature_for_tone(request.options.tone),
            "transforms": ["middle-out"],
        }
        if stream:
            payload["stream"] = True
        return payload

