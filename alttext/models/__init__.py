from .attachment import Attachment, ImageRef
from .bulk import BulkJob, BulkLogEntry, BulkState, BulkStats
from .generation import (
    CRITICAL_ERROR_KINDS,
    ERROR_MESSAGES,
    ErrorKind,
    GenerateResponse,
    GenerationResult,
    TokenUsage,
    is_critical_error,
)
from .image_data import NormalizedImage

__all__ = [
    "Attachment",
    "ImageRef",
    "BulkJob",
    "BulkLogEntry",
    "BulkState",
    "BulkStats",
    "CRITICAL_ERROR_KINDS",
    "ERROR_MESSAGES",
    "ErrorKind",
    "GenerateResponse",
    "GenerationResult",
    "TokenUsage",
    "is_critical_error",
    "NormalizedImage",
]
