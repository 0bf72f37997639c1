"""
Error taxonomy for the media upload pipeline.

Every failure the pipeline reports to its caller is one of the kinds below,
carrying a human-readable message that can be shown to the end user, a
machine-readable error code and optional details.
"""

from typing import Any, Dict, Optional


class MediaPipelineError(Exception):
    """
    Base exception for all upload and delete failures.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Additional error context
        status_code: HTTP status used when surfaced through the API
        retryable: Whether the caller may safely retry the same operation
    """

    status_code: int = 500
    retryable: bool = False
    default_message: str = "Upload failed, please try again"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        message = message or self.default_message
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class InvalidTypeError(MediaPipelineError):
    """The selected file is not an image."""

    status_code = 415
    default_message = "Please select an image file"

    def __init__(self, content_type: str = ""):
        super().__init__(error_code="INVALID_TYPE", details={"contentType": content_type})


class OversizeFileError(MediaPipelineError):
    """The file exceeds the configured byte limit."""

    status_code = 413

    def __init__(self, max_size_mb: float, size_bytes: int):
        super().__init__(
            f"File size cannot exceed {max_size_mb:g}MB",
            "OVERSIZE_FILE",
            {"maxSizeMB": max_size_mb, "sizeBytes": size_bytes},
        )
        self.max_size_mb = max_size_mb


class UnsupportedFormatError(MediaPipelineError):
    """The image type is outside the allow-list."""

    status_code = 415
    default_message = "Supported formats: JPG, PNG, WebP"

    def __init__(self, content_type: str = ""):
        super().__init__(error_code="UNSUPPORTED_FORMAT", details={"contentType": content_type})


class TooManyFilesError(MediaPipelineError):
    """Adding the file would exceed the category's maximum count."""

    status_code = 409

    def __init__(self, max_count: int, requested_count: int):
        super().__init__(
            f"You can upload at most {max_count} images",
            "TOO_MANY_FILES",
            {"maxCount": max_count, "requestedCount": requested_count},
        )
        self.max_count = max_count


class UnauthorizedError(MediaPipelineError):
    """The store rejected the write or delete for lack of permission."""

    status_code = 401
    default_message = "No upload permission, please login again"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "UNAUTHORIZED", details)


class QuotaExceededError(MediaPipelineError):
    status_code = 507
    default_message = "Storage quota exceeded"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "QUOTA_EXCEEDED", details)


class StoreUnavailableError(MediaPipelineError):
    """Transient network or service failure. Safe to retry."""

    status_code = 503
    retryable = True
    default_message = "Upload failed, please check your connection and try again"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "STORE_UNAVAILABLE", details)


class CanceledError(MediaPipelineError):
    """The store reported that the operation was canceled."""

    status_code = 499
    default_message = "Upload canceled"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CANCELED", details)


class NotFoundError(MediaPipelineError):
    """The object is already absent from the store."""

    status_code = 404
    default_message = "Image not found"

    def __init__(self, path: str = ""):
        super().__init__(error_code="NOT_FOUND", details={"path": path})
        self.path = path
