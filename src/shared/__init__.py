"""Shared utilities for the video background processor."""

from .config import Settings, get_settings
from .exceptions import (
    VideoPipelineError,
    IngestError,
    ProbeError,
    ValidationError,
    DurationLimitError,
    EncodeError,
    UploadError,
    LeaseError,
    UnknownError,
)
from .models import (
    ProcessingState,
    JobState,
    VideoFormat,
    VideoQuality,
    SourceVideo,
    VideoMetadata,
    VideoVariant,
    ProcessingStatus,
    VideoRecord,
    CompressionMetrics,
    JobResult,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Exceptions
    "VideoPipelineError",
    "IngestError",
    "ProbeError",
    "ValidationError",
    "DurationLimitError",
    "EncodeError",
    "UploadError",
    "LeaseError",
    "UnknownError",
    # Models
    "ProcessingState",
    "JobState",
    "VideoFormat",
    "VideoQuality",
    "SourceVideo",
    "VideoMetadata",
    "VideoVariant",
    "ProcessingStatus",
    "VideoRecord",
    "CompressionMetrics",
    "JobResult",
]
