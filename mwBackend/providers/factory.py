"""
Provider construction and a small registry of configured adapters.
"""

import logging
from typing import Optional

import httpx

from providers.base import BaseAIProvider
from providers.claude_provider import ClaudeProvider
from providers.errors import ApiKeyRejected, MissingApiKey, ProviderNotConfigured, UnsupportedProvider
from providers.gemini_provider import GeminiProvider
from providers.models import ProviderConfig, ProviderType, UsageMetrics
from providers.openai_provider import OpenAIProvider
from providers.openrouter_provider import OpenRouterProvider

logger = logging.getLogger(__name__)

_PROVIDERS: dict[ProviderType, type[BaseAIProvider]] = {
    ProviderType.OPENAI: OpenAIProvider,
    ProviderType.GEMINI: GeminiProvider,
    ProviderType.ANTHROPIC: ClaudeProvider,
    ProviderType.OPENROUTER: OpenRouterProvider,
}

_ALIASES = {"claude": ProviderType.ANTHROPIC}

_DEFAULT_CONFIGS: dict[ProviderType, dict] = {
    ProviderType.OPENAI: {"model": "gpt-4-turbo-preview", "max_tokens": 4000, "temperature": 0.7},
    ProviderType.GEMINI: {"model": "gemini-2.5-flash", "max_tokens": 8192, "temperature": 0.7},
    ProviderType.ANTHROPIC: {"model": "claude-3-5-sonnet-20241022", "max_tokens": 4096, "temperature": 0.7},
    ProviderType.OPENROUTER: {"model": "openai/gpt-4-turbo-preview", "max_tokens": 4000, "temperature": 0.7},
}

_SUPPORTED = [
    {
        "type": ProviderType.OPENAI.value,
        "name": "OpenAI",
        "description": "GPT-4 and GPT-3.5 models for high-quality content generation",
        "requiresApiKey": True,
    },
    {
        "type": ProviderType.GEMINI.value,
        "name": "Google Gemini",
        "description": "Google's advanced AI model with multimodal capabilities",
        "requiresApiKey": True,
    },
    {
        "type": ProviderType.ANTHROPIC.value,
        "name": "Anthropic Claude",
        "description": "Claude models optimized for helpful, harmless content",
        "requiresApiKey": True,
    },
    {
        "type": ProviderType.OPENROUTER.value,
        "name": "OpenRouter",
        "description": "Access to multiple AI models through a unified interface",
        "requiresApiKey": True,
    },
]

AUTO_SELECT_PRIORITY = [
    ProviderType.OPENAI,
    ProviderType.ANTHROPIC,
    ProviderType.GEMINI,
    ProviderType.OPENROUTER,
]

CATEGORY_PREFERENCES: dict[str, list[ProviderType]] = {
    "technology": [ProviderType.OPENAI, ProviderType.ANTHROPIC, ProviderType.GEMINI],
    "business": [ProviderType.ANTHROPIC, ProviderType.OPENAI, ProviderType.GEMINI],
    "personal-development": [ProviderType.ANTHROPIC, ProviderType.OPENAI, ProviderType.GEMINI],
    "lifestyle": [ProviderType.OPENAI, ProviderType.GEMINI, ProviderType.ANTHROPIC],
    "current-affairs": [ProviderType.ANTHROPIC, ProviderType.OPENAI, ProviderType.GEMINI],
}


def resolve_provider_type(name) -> ProviderType:
    """Normalise a provider identifier, accepting ``claude`` for anthropic."""
    if isinstance(name, ProviderType):
        return name
    key = str(name or "").strip().lower()
    if key in _ALIASES:
        return _ALIASES[key]
    try:
        return ProviderType(key)
    except ValueError:
        raise UnsupportedProvider(f"Unsupported AI provider type: {name}") from None


def create_provider(
    config: ProviderConfig,
    client: Optional[httpx.AsyncClient] = None,
    **kwargs,
) -> BaseAIProvider:
    """Build an adapter for ``config``.

    Raises:
        MissingApiKey: if the config carries no key.
        UnsupportedProvider: for an unknown provider type.
    """
    if not config.api_key:
        raise MissingApiKey(f"API key is required for {config.type} provider")

    provider_type = resolve_provider_type(config.type)
    cls = _PROVIDERS[provider_type]
    return cls(config.api_key, model=config.model, base_url=config.base_url, client=client, **kwargs)


async def validate_provider(config: ProviderConfig, client: Optional[httpx.AsyncClient] = None) -> bool:
    """True when the adapter can be built and its key probe succeeds. Never raises."""
    try:
        provider = create_provider(config, client=client)
    except Exception as e:
        logger.error(f"Failed to validate {config.type} provider: {e}")
        return False

    try:
        return await provider.validate_api_key()
    finally:
        await provider.aclose()


def get_default_config(provider_type) -> dict:
    try:
        return dict(_DEFAULT_CONFIGS[resolve_provider_type(provider_type)])
    except UnsupportedProvider:
        return {}


def get_supported_providers() -> list[dict]:
    return [dict(p) for p in _SUPPORTED]


class ProviderManager:
    """Holds at most one adapter per provider type and tracks the active one."""

    def __init__(self):
        self._providers: dict[ProviderType, BaseAIProvider] = {}
        self._active: Optional[ProviderType] = None

    async def add_provider(
        self,
        config: ProviderConfig,
        client: Optional[httpx.AsyncClient] = None,
    ) -> BaseAIProvider:
        """Create, validate and register an adapter, replacing any previous one."""
        provider = create_provider(config, client=client)
        if not await provider.validate_api_key():
            await provider.aclose()
            raise ApiKeyRejected(f"Invalid API key for {config.type} provider")

        previous = self._providers.get(provider.provider_type)
        if previous is not None and previous is not provider:
            await previous.aclose()

        self._providers[provider.provider_type] = provider
        logger.info(f"Registered {provider.provider_type.value} provider (model={provider.model})")
        return provider

    async def remove_provider(self, provider_type) -> None:
        provider_type = resolve_provider_type(provider_type)
        provider = self._providers.pop(provider_type, None)
        if self._active == provider_type:
            self._active = None
        if provider is not None:
            await provider.aclose()

    def set_active_provider(self, provider_type) -> None:
        provider_type = resolve_provider_type(provider_type)
        if provider_type not in self._providers:
            raise ProviderNotConfigured(f"Provider {provider_type.value} is not configured")
        self._active = provider_type

    def get_active_provider(self) -> Optional[BaseAIProvider]:
        if self._active is None:
            return None
        return self._providers.get(self._active)

    def get_provider(self, provider_type) -> Optional[BaseAIProvider]:
        return self._providers.get(resolve_provider_type(provider_type))

    def available_providers(self) -> list[ProviderType]:
        return list(self._providers)

    async def validate_all_providers(self) -> dict[ProviderType, bool]:
        results = {}
        for provider_type, provider in self._providers.items():
            try:
                results[provider_type] = await provider.validate_api_key()
            except Exception as e:
                logger.warning(f"Validation of {provider_type.value} raised: {e}")
                results[provider_type] = False
        return results

    def get_usage_metrics(self) -> dict[ProviderType, UsageMetrics]:
        return {t: p.get_usage_metrics() for t, p in self._providers.items()}

    def auto_select_provider(self) -> Optional[ProviderType]:
        """Activate the best configured provider by fixed priority."""
        available = self.available_providers()
        if not available:
            return None

        for candidate in AUTO_SELECT_PRIORITY:
            if candidate in self._providers:
                self.set_active_provider(candidate)
                return candidate

        self.set_active_provider(available[0])
        return available[0]

    def get_recommended_provider(self, category: str) -> Optional[ProviderType]:
        """Best configured provider for a content category. Does not activate it."""
        available = self.available_providers()
        if not available:
            return None

        preferred = CATEGORY_PREFERENCES.get(category, CATEGORY_PREFERENCES["technology"])
        for candidate in preferred:
            if candidate in self._providers:
                return candidate
        return available[0]

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()
        self._providers.clear()
        self._active = None
