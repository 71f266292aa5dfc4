"""
Model catalog for the Medium Writer backend.

OpenAI, Gemini and Claude catalogs are static. OpenRouter's catalog is
discovered from its public ``/models`` endpoint and shared with the adapters
through the provider model cache. The grouped result is cached in memory.
"""

import logging
import os
import time
from typing import Optional

from configs.getConfig import getConfig
from providers.claude_provider import CLAUDE_MODELS
from providers.factory import resolve_provider_type
from providers.gemini_provider import GEMINI_MODELS
from providers.model_cache import default_cache
from providers.models import ModelInfo, ProviderType
from providers.openai_provider import OPENAI_MODELS
from providers.openrouter_provider import FALLBACK_MODELS, OpenRouterProvider

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

_cache: Optional[dict] = None
_cache_ts: float = 0
CACHE_TTL = 600  # 10 minutes

LABELS = {
    ProviderType.OPENAI: "OpenAI",
    ProviderType.GEMINI: "Google Gemini",
    ProviderType.ANTHROPIC: "Anthropic",
    ProviderType.OPENROUTER: "OpenRouter",
}


def _cache_ttl() -> float:
    try:
        return getConfig().get("providers", {}).get("model_cache_ttl", CACHE_TTL)
    except FileNotFoundError:
        return CACHE_TTL


# ---------------------------------------------------------------------------
# Provider fetchers
# ---------------------------------------------------------------------------

async def _fetch_openrouter_models() -> list[ModelInfo]:
    """Refresh the shared OpenRouter catalog. Falls back to the built-in list."""
    provider = OpenRouterProvider(api_key=os.getenv("OPENROUTER_API_KEY", ""))
    try:
        models = await provider.fetch_remote_models()
    except Exception as e:
        logger.warning(f"Failed to fetch OpenRouter models: {e}")
        return list(FALLBACK_MODELS)
    finally:
        await provider.aclose()

    if models:
        default_cache.set(models)
    return models or list(FALLBACK_MODELS)


def _openrouter_cached() -> list[ModelInfo]:
    return default_cache.get() or list(FALLBACK_MODELS)


def _group(provider_type: ProviderType, models: list[ModelInfo]) -> dict:
    return {
        "provider": provider_type.value,
        "label": LABELS[provider_type],
        "models": [m.model_dump() for m in models],
    }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def get_available_models(provider: Optional[str] = None, force_refresh: bool = False) -> dict:
    """Return available models grouped by provider.

    Response format::

        {
            "providers": [
                {
                    "provider": "openai",
                    "label": "OpenAI",
                    "models": [{"id": "gpt-4-turbo-preview", "name": "GPT-4 Turbo Preview", ...}, ...]
                },
                ...
            ]
        }

    Raises UnsupportedProvider when ``provider`` names an unknown vendor.
    """
    global _cache, _cache_ts

    wanted = resolve_provider_type(provider) if provider else None

    if force_refresh or not _cache or (time.time() - _cache_ts) >= _cache_ttl():
        openrouter = await _fetch_openrouter_models() if force_refresh else _openrouter_cached()
        _cache = {
            "providers": [
                _group(ProviderType.OPENAI, OPENAI_MODELS),
                _group(ProviderType.GEMINI, GEMINI_MODELS),
                _group(ProviderType.ANTHROPIC, CLAUDE_MODELS),
                _group(ProviderType.OPENROUTER, openrouter),
            ]
        }
        _cache_ts = time.time()

    if wanted is None:
        return _cache
    return {"providers": [g for g in _cache["providers"] if g["provider"] == wanted.value]}
