"""
Structured generation: ask any adapter for JSON and get parsed data back.

The orchestrator holds no state. Every attempt re-prompts the vendor; a
malformed response is usually best fixed by asking again rather than by
re-parsing the same text.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Optional

from pydantic import ValidationError

from providers.errors import AppError, LocalValidationError, StructuredOutputError
from providers.json_recovery import STAGE_SENTINEL, parse_json_response
from providers.models import GenerationRequest, StructuredGenerationRequest, StructuredGenerationResponse

if TYPE_CHECKING:
    from providers.base import BaseAIProvider

logger = logging.getLogger(__name__)

RETRY_DELAY_SECONDS = 1.0


def _process(content: str, request: StructuredGenerationRequest) -> tuple[Any, bool, Optional[str]]:
    """Return (data, parsed, recovery stage) for one vendor response."""
    if not request.expects_json:
        return content, True, None

    data, stage = parse_json_response(content)
    if stage == STAGE_SENTINEL:
        logger.warning("Truncated response had no complete member; returning placeholder data")
        return data, False, stage

    if request.response_model is not None:
        try:
            data = request.response_model.model_validate(data)
        except ValidationError as e:
            raise StructuredOutputError(f"Failed to parse JSON response: {e}") from e
    return data, True, stage


async def generate_structured_content(
    provider: "BaseAIProvider",
    request: StructuredGenerationRequest,
) -> StructuredGenerationResponse:
    """Generate and parse, retrying the whole cycle up to ``max_retries`` times.

    Waits ``1s * attempt`` between attempts. Local validation errors and
    authentication failures are raised immediately. When attempts run out a
    parse failure raises StructuredOutputError and a transport failure
    re-raises the last AppError.
    """
    prefill = request.prefill if provider.supports_prefilling() else None
    last_error: Optional[Exception] = None

    for attempt in range(1, request.max_retries + 1):
        try:
            generation_request = GenerationRequest(
                prompt=provider.build_structured_prompt(request),
                options=request.options,
                stream=False,
                prefill=prefill,
            )
            response = await provider.generate_content(generation_request)
            data, parsed, stage = _process(response.content, request)

            return StructuredGenerationResponse(
                data=data,
                raw=response.content,
                parsed=parsed,
                usage=response.usage,
                model=response.model,
                finish_reason=response.finish_reason,
                recovery_stage=stage,
            )
        except LocalValidationError:
            raise
        except AppError as e:
            if not e.is_retryable:
                raise
            last_error = e
        except Exception as e:
            last_error = e

        logger.warning(
            f"Structured generation attempt {attempt}/{request.max_retries} failed: {last_error}"
        )
        if attempt < request.max_retries:
            await asyncio.sleep(RETRY_DELAY_SECONDS * attempt)

    logger.error(f"Structured generation failed after {request.max_retries} attempts: {last_error}")
    raise last_error
