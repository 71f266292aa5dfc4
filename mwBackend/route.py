import logging
import os
from typing import Optional

import fastapi
from fastapi import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from pydantic import BaseModel, Field

from configs.getConfig import getConfig
from models_list import get_available_models
from providers import (
    AppError,
    BaseAIProvider,
    ErrorCode,
    GenerationOptions,
    GenerationRequest,
    GenerationResponse,
    LocalValidationError,
    ProviderConfig,
    StructuredGenerationRequest,
    StructuredGenerationResponse,
    StructuredOutputError,
    create_provider,
    get_supported_providers,
    validate_provider,
)
from providers.factory import resolve_provider_type
from sse import _sse, sse_response

logger = logging.getLogger(__name__)

app = fastapi.FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=getConfig()["cors"]["allow_origins"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

APP_ERROR_STATUS = {
    ErrorCode.INVALID_API_KEY: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.RATE_LIMIT_EXCEEDED: 429,
    ErrorCode.PROVIDER_UNAVAILABLE: 503,
}

# Keys read by the deep health check only. Generation always uses the
# caller's key.
ENV_KEYS = {
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------

class ValidateKeyRequest(BaseModel):
    provider: Optional[str] = None
    key: Optional[str] = None


class OptionsPayload(BaseModel):
    wordCount: int
    tone: str
    format: str
    maxTokens: Optional[int] = None


class GenerateRequest(BaseModel):
    provider: str
    apiKey: str
    model: Optional[str] = None
    prompt: str
    options: OptionsPayload
    prefill: Optional[str] = None


class GenerateStructuredRequest(GenerateRequest):
    expectsJson: bool = True
    maxRetries: int = Field(default=3, ge=1, le=5)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _build_provider(req: GenerateRequest) -> BaseAIProvider:
    timeout = getConfig()["providers"]["request_timeout"]
    config = ProviderConfig(type=req.provider, api_key=req.apiKey, model=req.model)
    provider = create_provider(config, timeout=timeout)
    if req.model:
        # Reject unknown models before any network call.
        try:
            provider.set_model(req.model)
        except LocalValidationError:
            await provider.aclose()
            raise
    return provider


def _options(req: GenerateRequest) -> GenerationOptions:
    return GenerationOptions(
        word_count=req.options.wordCount,
        tone=req.options.tone,
        format=req.options.format,
        max_tokens=req.options.maxTokens,
    )


def _http_error(e: Exception) -> HTTPException:
    """Translate a provider-layer error into the HTTP response it deserves."""
    if isinstance(e, LocalValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, AppError):
        return HTTPException(status_code=APP_ERROR_STATUS.get(e.code, 502), detail=e.to_dict())
    if isinstance(e, StructuredOutputError):
        return HTTPException(status_code=502, detail=str(e))
    logger.error(f"Unexpected error: {e}", exc_info=True)
    return HTTPException(status_code=500, detail="Internal server error")


# ---------------------------------------------------------------------------
# Core endpoints
# ---------------------------------------------------------------------------

@app.get("/")
async def root():
    return JSONResponse({"message": "Welcome to the Medium Writer Backend API!"})


@app.get("/health-check")
async def health_check(deep: bool = False):
    """Health check endpoint.

    Query params:
        deep (bool): When true, validates each provider key found in the
                     environment with that provider's own key probe.
    """
    result: dict = {"status": "healthy"}

    if not deep:
        return JSONResponse(result)

    providers = await _check_api_keys()
    result["providers"] = providers

    if any(p["status"] == "error" for p in providers.values() if p["configured"]):
        result["status"] = "degraded"

    return JSONResponse(result)


async def _check_api_keys() -> dict:
    checks: dict = {}
    for provider, env_var in ENV_KEYS.items():
        key = os.environ.get(env_var)
        if not key:
            checks[provider] = {"configured": False, "status": "missing", "message": f"{env_var} not set"}
            continue
        valid = await validate_provider(ProviderConfig(type=provider, api_key=key))
        checks[provider] = {
            "configured": True,
            "status": "ok" if valid else "error",
            "message": "Key is valid" if valid else "Key was rejected",
        }
    return checks


@app.get("/api/providers")
async def api_providers():
    """List the supported providers."""
    return {"providers": get_supported_providers()}


@app.post("/api/validate-key")
async def api_validate_key(req: ValidateKeyRequest):
    """Probe a caller-supplied key against its provider."""
    if not req.provider or not req.key:
        return JSONResponse({"valid": False, "error": "Provider and key are required"}, status_code=400)

    try:
        provider_type = resolve_provider_type(req.provider)
    except LocalValidationError:
        return JSONResponse({"valid": False, "error": "Unknown provider"}, status_code=400)

    valid = await validate_provider(ProviderConfig(type=provider_type.value, api_key=req.key))
    body = {"valid": valid, "provider": provider_type.value}
    if not valid:
        body["error"] = "API key validation failed"
    return JSONResponse(body)


# ---------------------------------------------------------------------------
# Models endpoint
# ---------------------------------------------------------------------------

@app.get("/api/models")
async def api_models(provider: Optional[str] = None, refresh: bool = False):
    """Return available LLM models grouped by provider."""
    try:
        return await get_available_models(provider=provider, force_refresh=refresh)
    except LocalValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ---------------------------------------------------------------------------
# Generation endpoints
# ---------------------------------------------------------------------------

@app.post("/api/generate", response_model=GenerationResponse)
async def api_generate(req: GenerateRequest):
    """Single-shot generation with the caller's key."""
    try:
        async with await _build_provider(req) as provider:
            return await provider.generate_content(
                GenerationRequest(prompt=req.prompt, options=_options(req), prefill=req.prefill)
            )
    except Exception as e:
        raise _http_error(e)


@app.post("/api/generate-structured", response_model=StructuredGenerationResponse)
async def api_generate_structured(req: GenerateStructuredRequest):
    """Generate and parse JSON, retrying the whole cycle on failure."""
    try:
        async with await _build_provider(req) as provider:
            return await provider.generate_structured_content(
                StructuredGenerationRequest(
                    prompt=req.prompt,
                    options=_options(req),
                    prefill=req.prefill,
                    expects_json=req.expectsJson,
                    max_retries=req.maxRetries,
                )
            )
    except Exception as e:
        raise _http_error(e)


@app.post("/api/generate-stream")
async def api_generate_stream(req: GenerateRequest):
    """Stream generated text as SSE ``chunk`` events, ending with ``done``.

    Construction errors are returned as normal HTTP errors; failures after
    the stream has started arrive as a single ``error`` event.
    """
    try:
        provider = await _build_provider(req)
    except Exception as e:
        raise _http_error(e)
    try:
        provider.validate_generation_options(_options(req))
    except Exception as e:
        await provider.aclose()
        raise _http_error(e)

    request = GenerationRequest(prompt=req.prompt, options=_options(req), stream=True, prefill=req.prefill)

    async def _frames():
        try:
            async for chunk in provider.generate_content_stream(request):
                if chunk.is_complete:
                    yield _sse("done", chunk.model_dump())
                else:
                    yield _sse("chunk", {"content": chunk.content})
        except AppError as e:
            yield _sse("error", e.to_dict())
        except LocalValidationError as e:
            yield _sse("error", {"code": "VALIDATION_ERROR", "message": str(e)})
        finally:
            await provider.aclose()

    return sse_response(_frames())
