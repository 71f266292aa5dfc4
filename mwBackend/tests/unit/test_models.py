"""Tests for providers/models.py."""

import pytest
from pydantic import BaseModel, ValidationError

from providers.models import (
    ArticleFormat,
    ArticleTone,
    GenerationOptions,
    ModelInfo,
    ProviderType,
    StructuredGenerationRequest,
    TokenUsage,
    UsageMetrics,
)


class TestEnums:
    def test_provider_values(self):
        assert [p.value for p in ProviderType] == ["openai", "gemini", "anthropic", "openrouter"]

    def test_tones(self):
        assert {t.value for t in ArticleTone} == {"professional", "casual", "academic", "conversational"}

    def test_formats(self):
        assert "personal-story" in {f.value for f in ArticleFormat}
        assert len(ArticleFormat) == 6


class TestGenerationOptions:
    def test_out_of_range_values_construct(self):
        # Range checks happen in the adapter, before the network call.
        opts = GenerationOptions(word_count=5, tone="shouty", format="poem")
        assert opts.word_count == 5

    def test_optional_fields_default_none(self):
        opts = GenerationOptions(word_count=1000, tone="casual", format="listicle")
        assert opts.temperature is None
        assert opts.max_tokens is None


class TestStructuredGenerationRequest:
    def test_defaults(self, options):
        req = StructuredGenerationRequest(prompt="p", options=options)
        assert req.expects_json is False
        assert req.max_retries == 3
        assert req.response_model is None
        assert req.stream is False

    def test_max_retries_must_be_positive(self, options):
        with pytest.raises(ValidationError):
            StructuredGenerationRequest(prompt="p", options=options, max_retries=0)

    def test_accepts_response_model_class(self, options):
        class Outline(BaseModel):
            title: str

        req = StructuredGenerationRequest(prompt="p", options=options, response_model=Outline)
        assert req.response_model is Outline


class TestSmallModels:
    def test_token_usage_defaults(self):
        assert TokenUsage().total_tokens == 0

    def test_usage_metrics_defaults(self):
        m = UsageMetrics()
        assert m.request_count == 0
        assert m.average_response_time == 0.0
        assert m.last_used is None

    def test_model_info_is_frozen(self):
        info = ModelInfo(id="m", name="M", description="d", max_tokens=10)
        with pytest.raises(ValidationError):
            info.name = "other"
        assert info.capabilities == []
        assert info.is_default is False
