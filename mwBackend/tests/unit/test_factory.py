"""Tests for providers/factory.py."""

import httpx
import pytest

from providers.claude_provider import ClaudeProvider
from providers.errors import ApiKeyRejected, MissingApiKey, ProviderNotConfigured, UnsupportedProvider
from providers.factory import (
    ProviderManager,
    create_provider,
    get_default_config,
    get_supported_providers,
    validate_provider,
)
from providers.gemini_provider import GeminiProvider
from providers.models import ProviderConfig, ProviderType
from providers.openai_provider import OpenAIProvider
from providers.openrouter_provider import OpenRouterProvider


class TestCreateProvider:
    @pytest.mark.parametrize("type_,cls", [
        ("openai", OpenAIProvider),
        ("gemini", GeminiProvider),
        ("anthropic", ClaudeProvider),
        ("claude", ClaudeProvider),
        ("openrouter", OpenRouterProvider),
    ])
    def test_types(self, type_, cls):
        provider = create_provider(ProviderConfig(type=type_, api_key="k"))
        assert isinstance(provider, cls)

    def test_model_and_base_url_passed(self):
        provider = create_provider(ProviderConfig(
            type="openai", api_key="k", model="gpt-4", base_url="https://proxy.local/v1",
        ))
        assert provider.model == "gpt-4"
        assert provider.base_url == "https://proxy.local/v1"

    def test_missing_key(self):
        with pytest.raises(MissingApiKey, match="API key is required for openai provider"):
            create_provider(ProviderConfig(type="openai", api_key=""))

    def test_unsupported_type(self):
        with pytest.raises(UnsupportedProvider, match="Unsupported AI provider type: cohere"):
            create_provider(ProviderConfig(type="cohere", api_key="k"))


class TestValidateProvider:
    @pytest.mark.asyncio
    async def test_valid_key(self, mock_http):
        http, _ = mock_http(httpx.Response(200, json={"data": []}))
        assert await validate_provider(ProviderConfig(type="openai", api_key="k"), client=http) is True

    @pytest.mark.asyncio
    async def test_unsupported_type_is_false(self):
        assert await validate_provider(ProviderConfig(type="cohere", api_key="k")) is False

    @pytest.mark.asyncio
    async def test_missing_key_is_false(self):
        assert await validate_provider(ProviderConfig(type="openai")) is False


class TestStaticHelpers:
    def test_default_config(self):
        assert get_default_config("openai") == {"model": "gpt-4-turbo-preview", "max_tokens": 4000, "temperature": 0.7}
        assert get_default_config("claude")["max_tokens"] == 4096
        assert get_default_config(ProviderType.GEMINI)["max_tokens"] == 8192

    def test_default_config_unknown(self):
        assert get_default_config("cohere") == {}

    def test_supported_providers(self):
        types = [p["type"] for p in get_supported_providers()]
        assert types == ["openai", "gemini", "anthropic", "openrouter"]
        assert all(p["requiresApiKey"] for p in get_supported_providers())


@pytest.fixture()
def manager_with(mock_http):
    """Build a ProviderManager with the given provider types registered."""
    async def _build(*types):
        manager = ProviderManager()
        for t in types:
            http, _ = mock_http(httpx.Response(200, json={"data": []}))
            await manager.add_provider(ProviderConfig(type=t, api_key="k"), client=http)
        return manager
    return _build


class TestProviderManager:
    @pytest.mark.asyncio
    async def test_add_rejected_key(self, mock_http):
        http, _ = mock_http(httpx.Response(401, json={}))
        manager = ProviderManager()
        with pytest.raises(ApiKeyRejected, match="Invalid API key for openai provider"):
            await manager.add_provider(ProviderConfig(type="openai", api_key="bad"), client=http)
        assert manager.available_providers() == []

    @pytest.mark.asyncio
    async def test_add_and_get(self, manager_with):
        manager = await manager_with("gemini")
        assert manager.available_providers() == [ProviderType.GEMINI]
        assert isinstance(manager.get_provider("gemini"), GeminiProvider)
        assert manager.get_provider("openai") is None

    @pytest.mark.asyncio
    async def test_claude_alias_registers_anthropic(self, manager_with):
        manager = await manager_with("claude")
        assert manager.available_providers() == [ProviderType.ANTHROPIC]

    @pytest.mark.asyncio
    async def test_set_active_requires_configured(self, manager_with):
        manager = await manager_with("gemini")
        with pytest.raises(ProviderNotConfigured):
            manager.set_active_provider("openai")
        manager.set_active_provider("gemini")
        assert isinstance(manager.get_active_provider(), GeminiProvider)

    @pytest.mark.asyncio
    async def test_remove_active_clears_it(self, manager_with):
        manager = await manager_with("openai")
        manager.set_active_provider("openai")
        await manager.remove_provider("openai")
        assert manager.get_active_provider() is None
        assert manager.available_providers() == []

    @pytest.mark.asyncio
    async def test_remove_closes_owned_client(self, mock_http):
        manager = ProviderManager()
        http, _ = mock_http(httpx.Response(200, json={"data": []}))
        await manager.add_provider(ProviderConfig(type="openai", api_key="k"), client=http)
        provider = manager.get_provider("openai")
        # Swap in a client the adapter owns, as it would outside tests.
        owned, _ = mock_http(httpx.Response(200, json={}))
        provider._client, provider._owns_client = owned, True

        await manager.remove_provider("openai")

        assert owned.is_closed
        assert provider._client is None

    @pytest.mark.asyncio
    async def test_remove_unknown_is_noop(self, manager_with):
        manager = await manager_with("gemini")
        await manager.remove_provider("openai")
        assert manager.available_providers() == [ProviderType.GEMINI]

    @pytest.mark.asyncio
    async def test_auto_select_priority(self, manager_with):
        manager = await manager_with("openrouter", "gemini", "anthropic")
        assert manager.auto_select_provider() == ProviderType.ANTHROPIC
        assert isinstance(manager.get_active_provider(), ClaudeProvider)

    def test_auto_select_empty(self):
        assert ProviderManager().auto_select_provider() is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("category,configured,expected", [
        ("technology", ("gemini", "anthropic"), ProviderType.ANTHROPIC),
        ("business", ("openai", "anthropic"), ProviderType.ANTHROPIC),
        ("lifestyle", ("anthropic", "gemini"), ProviderType.GEMINI),
        ("unknown-category", ("anthropic", "openai"), ProviderType.OPENAI),
        ("technology", ("openrouter",), ProviderType.OPENROUTER),
    ])
    async def test_recommended_provider(self, manager_with, category, configured, expected):
        manager = await manager_with(*configured)
        assert manager.get_recommended_provider(category) == expected
        assert manager.get_active_provider() is None

    @pytest.mark.asyncio
    async def test_validate_all_and_metrics(self, manager_with):
        manager = await manager_with("openai", "gemini")
        results = await manager.validate_all_providers()
        assert results == {ProviderType.OPENAI: True, ProviderType.GEMINI: True}
        metrics = manager.get_usage_metrics()
        assert set(metrics) == {ProviderType.OPENAI, ProviderType.GEMINI}
        assert metrics[ProviderType.OPENAI].request_count == 0

    @pytest.mark.asyncio
    async def test_aclose_empties_manager(self, manager_with):
        manager = await manager_with("openai")
        await manager.aclose()
        assert manager.available_providers() == []
