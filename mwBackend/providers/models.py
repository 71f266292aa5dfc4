from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProviderType(str, Enum):
    """Supported LLM vendors. Values match the identifiers callers send."""
    OPENAI = "openai"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"
    OPENROUTER = "openrouter"


class ArticleTone(str, Enum):
    PROFESSIONAL = "professional"
    CASUAL = "casual"
    ACADEMIC = "academic"
    CONVERSATIONAL = "conversational"


class ArticleFormat(str, Enum):
    HOW_TO = "how-to"
    LISTICLE = "listicle"
    OPINION = "opinion"
    PERSONAL_STORY = "personal-story"
    TUTORIAL = "tutorial"
    ANALYSIS = "analysis"


MIN_WORD_COUNT = 300
MAX_WORD_COUNT = 10000


class GenerationOptions(BaseModel):
    """Article generation options.

    Values are range-checked by BaseAIProvider.validate_generation_options
    rather than at construction, so a bad option surfaces as a local error
    before any network call.
    """
    word_count: int
    tone: str
    format: str
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


class GenerationRequest(BaseModel):
    prompt: str
    options: GenerationOptions
    stream: bool = False
    # Only honoured by adapters whose supports_prefilling() is True.
    prefill: Optional[str] = None


class StructuredGenerationRequest(GenerationRequest):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    expects_json: bool = False
    max_retries: int = Field(default=3, ge=1)
    response_model: Optional[type[BaseModel]] = None


class TokenUsage(BaseModel):
    """Token consumption metadata."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class GenerationResponse(BaseModel):
    content: str
    usage: Optional[TokenUsage] = None
    model: Optional[str] = None
    finish_reason: Optional[str] = None


class StreamChunk(BaseModel):
    content: str
    is_complete: bool
    usage: Optional[TokenUsage] = None


class StructuredGenerationResponse(BaseModel):
    """Result of a structured generation call.

    ``parsed`` is the only signal of whether ``data`` can be trusted;
    ``raw`` is always the untouched vendor text.
    """
    data: Any
    raw: str
    parsed: bool
    usage: Optional[TokenUsage] = None
    model: Optional[str] = None
    finish_reason: Optional[str] = None
    recovery_stage: Optional[str] = None


class UsageMetrics(BaseModel):
    tokens_used: int = 0
    request_count: int = 0
    error_count: int = 0
    average_response_time: float = 0.0
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    last_used: Optional[datetime] = None


class ModelInfo(BaseModel):
    """Static catalog entry for one vendor model."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    max_tokens: int
    input_cost_per_1000: Optional[float] = None
    output_cost_per_1000: Optional[float] = None
    capabilities: list[str] = Field(default_factory=list)
    is_default: bool = False


class ProviderConfig(BaseModel):
    type: str
    api_key: str = ""
    model: Optional[str] = None
    base_url: Optional[str] = None
