from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ErrorKind(str, Enum):
    MISSING_API_KEY = "missing_api_key"
    IMAGE_PROCESSING_ERROR = "image_processing_error"
    NETWORK_ERROR = "network_error"
    INVALID_REQUEST = "invalid_request"
    INVALID_API_KEY = "invalid_api_key"
    PERMISSION_ERROR = "permission_error"
    RATE_LIMIT = "rate_limit"
    QUOTA_EXCEEDED = "quota_exceeded"
    SERVER_ERROR = "server_error"
    API_ERROR = "api_error"
    INVALID_RESPONSE = "invalid_response"
    EMPTY_RESPONSE = "empty_response"
    # Request validation
    MISSING_IMAGE_URL = "missing_image_url"
    MISSING_ATTACHMENT_ID = "missing_attachment_id"
    INVALID_ATTACHMENT = "invalid_attachment"
    INVALID_NONCE = "invalid_nonce"
    INSUFFICIENT_PERMISSIONS = "insufficient_permissions"
    # Client side only: the endpoint reply could not be understood
    UNKNOWN_ERROR = "unknown_error"


ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.MISSING_API_KEY: "OpenAI API key is missing. Please add it in the service settings.",
    ErrorKind.IMAGE_PROCESSING_ERROR: "Failed to process the image. The image format may be unsupported or corrupted.",
    ErrorKind.NETWORK_ERROR: "Network error while contacting the vision API.",
    ErrorKind.INVALID_REQUEST: "Invalid request: Please check your configuration.",
    ErrorKind.INVALID_API_KEY: "Invalid API key. Please check your OpenAI API key in settings.",
    ErrorKind.PERMISSION_ERROR: "Permission denied. Your API key may not have access to this model.",
    ErrorKind.RATE_LIMIT: "Rate limit exceeded. Please try again in a few moments.",
    ErrorKind.QUOTA_EXCEEDED: "Insufficient quota. Please check your OpenAI account billing.",
    ErrorKind.SERVER_ERROR: "OpenAI service error. Please try again later.",
    ErrorKind.API_ERROR: "API request failed",
    ErrorKind.INVALID_RESPONSE: "Invalid API response: No choices returned.",
    ErrorKind.EMPTY_RESPONSE: "No alt text was generated. The API returned an empty response.",
    ErrorKind.MISSING_IMAGE_URL: "Image URL is missing.",
    ErrorKind.MISSING_ATTACHMENT_ID: "Attachment ID is missing.",
    ErrorKind.INVALID_ATTACHMENT: "Invalid attachment. Only images are supported.",
    ErrorKind.INVALID_NONCE: "Security check failed. Please refresh and try again.",
    ErrorKind.INSUFFICIENT_PERMISSIONS: "You do not have permission to perform this action.",
    ErrorKind.UNKNOWN_ERROR: "An unknown error occurred while generating alt text.",
}

# Surfaced as a blocking alert in single-image mode; everything else is just logged.
CRITICAL_ERROR_KINDS: frozenset[ErrorKind] = frozenset(
    {
        ErrorKind.MISSING_API_KEY,
        ErrorKind.INVALID_API_KEY,
        ErrorKind.PERMISSION_ERROR,
        ErrorKind.QUOTA_EXCEEDED,
        ErrorKind.INVALID_NONCE,
        ErrorKind.INSUFFICIENT_PERMISSIONS,
    }
)


def is_critical_error(kind: ErrorKind | str | None) -> bool:
    try:
        return ErrorKind(kind) in CRITICAL_ERROR_KINDS
    except ValueError:
        return False


class TokenUsage(BaseModel):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class GenerationResult(BaseModel):
    """Uniform outcome of one alt-text generation attempt."""

    success: bool
    alt_text: str | None = None
    message: str | None = None
    error_kind: ErrorKind | None = None
    usage: TokenUsage | None = None

    @classmethod
    def ok(cls, alt_text: str, usage: TokenUsage | None = None) -> "GenerationResult":
        return cls(success=True, alt_text=alt_text, usage=usage)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str | None = None) -> "GenerationResult":
        return cls(success=False, error_kind=kind, message=message or ERROR_MESSAGES[kind])


class GenerateResponse(BaseModel):
    """Wire shape returned by the generation endpoints."""

    success: bool
    alt_text: str | None = None
    message: str | None = None
    error_kind: ErrorKind | None = None
    token_usage: TokenUsage | None = None
    attachment_id: str | None = None

    @classmethod
    def from_result(cls, result: GenerationResult, attachment_id: str | None = None) -> "GenerateResponse":
        return cls(
            success=result.success,
            alt_text=result.alt_text,
            message=result.message,
            error_kind=result.error_kind,
            token_usage=result.usage,
            attachment_id=attachment_id,
        )

    @classmethod
    def error(cls, kind: ErrorKind, attachment_id: str | None = None) -> "GenerateResponse":
        return cls.from_result(GenerationResult.fail(kind), attachment_id)
