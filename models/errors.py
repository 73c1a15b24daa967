"""Error taxonomy and standardized error response schema.

Two halves live here:

1. The inference-core exception taxonomy. These exceptions describe what
   went wrong while turning an utterance into field values. None of them
   ever reaches an HTTP client: the orchestrator catches them and degrades
   to an empty-but-successful result.

   - TransientUpstreamFailure: network or non-success answer from the
     completion service (after the client's own retries)
   - MalformedResponse: completion text that no repair strategy could use
   - ValidationRejected: one field's extracted text failed its validator
   - PromptTooLargeError: prompt exceeds the configured token budget

2. The HTTP error body used by the exception handlers in main.py.

Error response format:
{
    "error": "ValidationError",
    "message": "Request validation failed",
    "details": {"field": "userInput", "constraint": "min_length"},
    "request_id": "abc-123-def-456",
    "timestamp": "2026-01-29T12:00:00Z",
    "path": "/api/ai/contextual-parse"
}
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ListingAssistantError(Exception):
    """Base class for inference-core errors."""


class TransientUpstreamFailure(ListingAssistantError):
    """Raised when the completion service call fails after retries."""

    def __init__(self, message: str, cause: Exception | None = None):
        self.cause = cause
        super().__init__(message)


class MalformedResponse(ListingAssistantError):
    """Raised when no repair strategy can recover a usable structure."""

    def __init__(self, raw_text: str, message: str | None = None):
        self.raw_text = raw_text
        if message is None:
            message = (
                f"Completion response could not be parsed "
                f"({len(raw_text or '')} chars)"
            )
        super().__init__(message)


class ValidationRejected(ListingAssistantError):
    """Raised when an extracted value fails its field's validator."""

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(f"Value {value!r} rejected for field '{field}'")


class PromptTooLargeError(ListingAssistantError, ValueError):
    """Raised when the prompt exceeds the maximum allowed token count."""

    def __init__(
        self, estimated_tokens: int, max_tokens: int, message: str | None = None
    ):
        self.estimated_tokens = estimated_tokens
        self.max_tokens = max_tokens
        if message is None:
            message = (
                f"Prompt too large: estimated {estimated_tokens} tokens, "
                f"max allowed is {max_tokens} tokens"
            )
        super().__init__(message)


class ErrorType(StrEnum):
    VALIDATION_ERROR = "ValidationError"
    NOT_FOUND = "NotFound"
    BAD_REQUEST = "BadRequest"
    PAYLOAD_TOO_LARGE = "PayloadTooLarge"
    SERVICE_UNAVAILABLE = "ServiceUnavailable"
    INTERNAL_ERROR = "InternalError"


class ErrorResponse(BaseModel):
    """Body of every non-2xx response.

    Inference failures are not errors at this level: a parse call whose
    completion service is down still answers 200 with success=false.
    """

    error: str = Field(..., examples=["ValidationError", "PayloadTooLarge"])
    message: str = Field(..., description="Safe to show to the user")
    details: Optional[dict[str, Any]] = None
    request_id: Optional[str] = None
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    path: Optional[str] = Field(None, examples=["/api/ai/contextual-parse"])


class ValidationErrorDetail(BaseModel):
    field: str
    message: str
    type: str


class ValidationErrorResponse(ErrorResponse):
    error: str = ErrorType.VALIDATION_ERROR.value
    validation_errors: list[ValidationErrorDetail] = Field(default_factory=list)


def create_error_response(
    error: ErrorType | str,
    message: str,
    details: Optional[dict[str, Any]] = None,
    request_id: Optional[str] = None,
    path: Optional[str] = None,
) -> dict[str, Any]:
    """JSONResponse content for an ErrorResponse; unset fields are omitted."""
    return ErrorResponse(
        error=str(error),
        message=message,
        details=details,
        request_id=request_id,
        path=path,
    ).model_dump(exclude_none=True)


def create_validation_error_response(
    message: str,
    errors: list[dict[str, str]],
    request_id: Optional[str] = None,
    path: Optional[str] = None,
) -> dict[str, Any]:
    """Like create_error_response, with one entry per invalid field.

    Args:
        message: Overall error message
        errors: {"field", "message", "type"} dicts, as built by main.py
        request_id: Request correlation ID
        path: Request path
    """
    return ValidationErrorResponse(
        message=message,
        validation_errors=[
            ValidationErrorDetail(
                field=e.get("field", "unknown"),
                message=e.get("message", "Validation failed"),
                type=e.get("type", "value_error"),
            )
            for e in errors
        ],
        request_id=request_id,
        path=path,
    ).model_dump(exclude_none=True)
