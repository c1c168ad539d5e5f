"""Custom exception hierarchy.

Every error carries the HTTP status and the machine-readable code the API
layer renders, so handlers never have to map exception types themselves.
"""

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ValidationError(AppError):
    """Raised when input validation fails."""

    status_code = 400
    code = "VALIDATION_ERROR"


class InvalidIdError(ValidationError):
    """Raised when a document id fails the safe-character/length check."""

    code = "INVALID_ID"


class InvalidMappingError(ValidationError):
    """Raised when a legacy id mapping contains an unsafe id."""

    code = "INVALID_MAPPING"


class UnsupportedTypeError(AppError):
    """Raised when a document type has no preview converter."""

    status_code = 415
    code = "UNSUPPORTED_TYPE"


class UnauthorizedError(AppError):
    """Raised when authentication is enabled and no user is present."""

    status_code = 401
    code = "UNAUTHORIZED"


class DocumentNotFoundError(AppError):
    """Raised when a document is not found or not visible to the caller."""

    status_code = 404
    code = "NOT_FOUND"


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""

    code = "CONFIGURATION_ERROR"


class StorageNotConfiguredError(ConfigurationError):
    """Raised when no blob storage backend is configured."""

    status_code = 503
    code = "STORAGE_UNAVAILABLE"


class StorageError(AppError):
    """Raised when a blob storage operation fails."""

    code = "STORAGE_ERROR"


class MissingBlobError(StorageError):
    """Raised when a blob key does not exist in the store."""

    status_code = 404
    code = "MISSING_BLOB"

    def __init__(self, key: str, original_error: Optional[Exception] = None):
        super().__init__(f"Blob not found: {key}", original_error=original_error)
        self.key = key


class PreviewGenerationError(AppError):
    """Raised when a preview converter fails."""

    code = "PREVIEW_GENERATION_FAILED"


class QueueError(AppError):
    """Raised when a preview job cannot be enqueued."""

    code = "QUEUE_ERROR"
