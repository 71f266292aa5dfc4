"""
Provider layer for the Medium writing assistant.
Brings your own key to OpenAI, Gemini, Anthropic Claude and OpenRouter,
with streaming and JSON-structured generation over plain httpx.
"""

from providers.base import BaseAIProvider
from providers.claude_provider import ClaudeProvider
from providers.errors import (
    AppError,
    ErrorCode,
    LLMError,
    LocalValidationError,
    StructuredOutputError,
    classify_error,
)
from providers.factory import (
    ProviderManager,
    create_provider,
    get_default_config,
    get_supported_providers,
    validate_provider,
)
from providers.gemini_provider import GeminiProvider
from providers.models import (
    GenerationOptions,
    GenerationRequest,
    GenerationResponse,
    ModelInfo,
    ProviderConfig,
    ProviderType,
    StreamChunk,
    StructuredGenerationRequest,
    StructuredGenerationResponse,
    TokenUsage,
    UsageMetrics,
)
from providers.openai_provider import OpenAIProvider
from providers.openrouter_provider import OpenRouterProvider

__all__ = [
    "BaseAIProvider",
    "OpenAIProvider",
    "GeminiProvider",
    "ClaudeProvider",
    "OpenRouterProvider",
    "ProviderManager",
    "create_provider",
    "validate_provider",
    "get_default_config",
    "get_supported_providers",
    "AppError",
    "ErrorCode",
    "LLMError",
    "LocalValidationError",
    "StructuredOutputError",
    "classify_error",
    "GenerationOptions",
    "GenerationRequest",
    "GenerationResponse",
    "ModelInfo",
    "ProviderConfig",
    "ProviderType",
    "StreamChunk",
    "StructuredGenerationRequest",
    "StructuredGenerationResponse",
    "TokenUsage",
    "UsageMetrics",
]
