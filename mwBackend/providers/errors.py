"""
Error taxonomy for the provider layer.

Two families:

* local validation errors, raised before any network call and never retried;
* ``AppError``, the classified form of a vendor/transport failure, produced
  only by :func:`classify_error`.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when an LLM call fails."""
    pass


class ErrorCode(str, Enum):
    INVALID_API_KEY = "INVALID_API_KEY"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    API_ERROR = "API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


# Statuses that can never succeed on retry.
AUTH_FAILURE_STATUSES = (401, 403)


class AppError(LLMError):
    """A classified provider failure with a stable error code."""

    def __init__(self, code: ErrorCode, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)

    @property
    def status(self) -> Optional[int]:
        return self.details.get("status")

    @property
    def is_retryable(self) -> bool:
        return self.code not in (ErrorCode.INVALID_API_KEY, ErrorCode.FORBIDDEN)

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }

    def __repr__(self) -> str:
        return f"AppError(code={self.code.value!r}, message={self.message!r})"


class ProviderHTTPError(LLMError):
    """A non-2xx vendor response, carrying the status and decoded body."""

    def __init__(self, status: int, data: Any = None):
        super().__init__(f"HTTP {status}")
        self.status = status
        self.data = data


class StructuredOutputError(LLMError):
    """Every JSON recovery stage failed on a vendor response."""
    pass


# ---------------------------------------------------------------------------
# Local validation errors
# ---------------------------------------------------------------------------

class LocalValidationError(LLMError, ValueError):
    """Invalid input detected before any network call. Never retried."""
    pass


class InvalidWordCount(LocalValidationError):
    pass


class InvalidTone(LocalValidationError):
    pass


class InvalidFormat(LocalValidationError):
    pass


class InvalidModel(LocalValidationError):
    pass


class MissingApiKey(LocalValidationError):
    pass


class UnsupportedProvider(LocalValidationError):
    pass


class ProviderNotConfigured(LocalValidationError):
    pass


class ApiKeyRejected(LocalValidationError):
    pass


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def _vendor_message(data: Any) -> Optional[str]:
    """Pull the human-readable message out of a vendor error body.

    OpenAI, Anthropic and OpenRouter send ``{"error": {"message": ...}}``;
    Gemini does the same but sometimes wraps the body in a one-element list.
    """
    if isinstance(data, list) and data:
        data = data[0]
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict):
        return error.get("message")
    if isinstance(error, str):
        return error
    return data.get("message")


def classify_error(exc: BaseException, provider: Optional[str] = None) -> AppError:
    """Map any raised error to one AppError.

    HTTP status decides when there is one; a request that never got a
    response is a network error; everything else is unknown.
    """
    if isinstance(exc, AppError):
        return exc

    status = None
    data = None
    if isinstance(exc, ProviderHTTPError):
        status, data = exc.status, exc.data
    elif isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        try:
            data = exc.response.json()
        except ValueError:
            data = exc.response.text

    if status is not None:
        details = {"provider": provider, "status": status}
        if status == 401:
            return AppError(ErrorCode.INVALID_API_KEY, "Invalid or expired API key", details)
        if status == 403:
            return AppError(ErrorCode.FORBIDDEN, "Access forbidden - check API key permissions", details)
        if status == 429:
            return AppError(ErrorCode.RATE_LIMIT_EXCEEDED, "Rate limit exceeded - please try again later", details)
        if 500 <= status < 600:
            return AppError(ErrorCode.PROVIDER_UNAVAILABLE, "AI provider temporarily unavailable", details)
        message = _vendor_message(data) or "API request failed"
        details["message"] = message
        return AppError(ErrorCode.API_ERROR, f"API error: {message}", details)

    if isinstance(exc, httpx.RequestError):
        return AppError(
            ErrorCode.NETWORK_ERROR,
            "Network error - check your internet connection",
            {"provider": provider, "error": str(exc)},
        )

    return AppError(
        ErrorCode.UNKNOWN_ERROR,
        str(exc) or "An unknown error occurred",
        {"provider": provider, "error": repr(exc)},
    )
