"""Custom exception hierarchy for the video processing pipeline.

All pipeline-specific exceptions inherit from VideoPipelineError,
enabling consistent error handling and structured status records.

Exception hierarchy:
    VideoPipelineError (base)
    ├── IngestError
    ├── ProbeError
    ├── ValidationError
    ├── EncodeError
    ├── UploadError
    ├── LeaseError
    └── UnknownError
"""

from typing import Any


class VideoPipelineError(Exception):
    """Base exception for all pipeline errors.

    Provides structured error information suitable for logging,
    CloudWatch metrics, and the failed status written to the video record.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code for metrics/filtering
        details: Additional context as key-value pairs
    """

    failure_label = "Processing failed"

    def __init__(
        self,
        message: str,
        error_code: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize pipeline error.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (e.g., 'ENCODE_ERROR')
            details: Additional context for debugging
        """
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def status_message(self) -> str:
        """Message written to the record's processingStatus.error."""
        return f"{self.failure_label}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for JSON serialization.

        Returns:
            Dictionary with error_code, error_message, and details.
            Note: Uses 'error_message' instead of 'message' to avoid conflicts
            with Python's logging module which reserves 'message' internally.
        """
        return {
            "error_code": self.error_code,
            "error_message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.error_code!r}, {self.message!r})"


class IngestError(VideoPipelineError):
    """Raised when the source object cannot be downloaded into scratch space."""

    failure_label = "Download failed"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "INGEST_ERROR", details)


class ProbeError(VideoPipelineError):
    """Raised when the source cannot be probed.

    This covers:
    - Corrupt or truncated container
    - No video stream
    - FFprobe missing, timing out, or producing unreadable output
    """

    failure_label = "Could not read video metadata"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "PROBE_ERROR", details)


class ValidationError(VideoPipelineError):
    """Raised when the source violates a processing limit.

    Raised before any encoder runs, so rejected uploads cost no encode time.
    """

    failure_label = "Validation failed"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "VALIDATION_ERROR", details)


class DurationLimitError(ValidationError):
    """Raised when the source is longer than the configured ceiling."""

    def __init__(self, duration_seconds: float, limit_seconds: float) -> None:
        """Initialize duration limit error.

        Args:
            duration_seconds: Measured source duration
            limit_seconds: Configured maximum duration
        """
        details = {
            "duration_seconds": duration_seconds,
            "limit_seconds": limit_seconds,
        }
        message = f"Video exceeds {limit_seconds:g} second limit: {duration_seconds:.1f}s"
        super().__init__(message, details)
        # Override error code for more specific metrics
        self.error_code = "DURATION_LIMIT_ERROR"


class EncodeError(VideoPipelineError):
    """Raised when FFmpeg exits nonzero or produces no output.

    Covers both variants, both VP9 passes, and poster extraction.
    """

    failure_label = "Encoding failed"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "ENCODE_ERROR", details)


class UploadError(VideoPipelineError):
    """Raised when an artifact cannot be published to S3."""

    failure_label = "Upload failed"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "UPLOAD_ERROR", details)


class LeaseError(VideoPipelineError):
    """Raised when the processing lease table cannot be reached."""

    failure_label = "Lease failed"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "LEASE_ERROR", details)


class UnknownError(VideoPipelineError):
    """Raised for anything not covered by a more specific error."""

    failure_label = "Unexpected error"

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize unknown error.

        Args:
            message: Error description
            original_error: The underlying exception that triggered this
            details: Additional context
        """
        error_details = details or {}
        if original_error:
            error_details["original_error"] = str(original_error)
            error_details["original_error_type"] = type(original_error).__name__

        super().__init__(message, "UNKNOWN_ERROR", error_details)
        self.original_error = original_error
