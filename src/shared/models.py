"""Pydantic models for data validation and serialization.

This module defines the core data structures used throughout the pipeline:
- Source and probe models (uploaded object, probed metadata)
- Published variants and the per-video record
- Processing status and the per-job state machine

All models use Pydantic v2 for validation and serialization. Records are
serialized with camelCase aliases to match the document schema the web
apps read.
"""

import posixpath
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProcessingState(str, Enum):
    """Status values stored on the video record."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingState.COMPLETED, ProcessingState.FAILED)


class JobState(str, Enum):
    """Stages a single processing job moves through."""

    PENDING = "PENDING"
    DOWNLOADING = "DOWNLOADING"
    PROBING = "PROBING"
    ENCODING_A = "ENCODING_A"
    ENCODING_B_PASS1 = "ENCODING_B_PASS1"
    ENCODING_B_PASS2 = "ENCODING_B_PASS2"
    EXTRACTING_POSTER = "EXTRACTING_POSTER"
    PUBLISHING = "PUBLISHING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)

    def can_transition_to(self, target: "JobState") -> bool:
        """Check whether the job may move from this state to ``target``.

        Every non-terminal state may fail; otherwise only the next stage
        in the sequence is allowed.
        """
        if self.is_terminal:
            return False
        if target == JobState.FAILED:
            return True
        order = list(JobState)
        return order.index(target) == order.index(self) + 1


class VideoFormat(str, Enum):
    """Container formats published for each video."""

    MP4 = "mp4"
    WEBM = "webm"

    @property
    def content_type(self) -> str:
        return f"video/{self.value}"


class VideoQuality(str, Enum):
    """Quality labels stored on published variants."""

    Q1080P = "1080p"
    Q720P = "720p"


class SourceVideo(BaseModel):
    """The uploaded object that triggered a job.

    Owned by the upload path; the pipeline never modifies it.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(
        min_length=1,
        description="Object key of the upload (e.g. 'video-backgrounds/abc123.mp4')",
    )
    content_type: str = Field(
        description="MIME type reported by storage",
    )
    size_bytes: Annotated[int, Field(ge=0)] = Field(
        default=0,
        description="Object size in bytes",
    )

    @property
    def file_name(self) -> str:
        return posixpath.basename(self.path)

    @property
    def video_id(self) -> str:
        """Video id derived from the file name without its extension."""
        stem, _ = posixpath.splitext(self.file_name)
        return stem


class VideoMetadata(BaseModel):
    """Metadata probed from the downloaded source.

    Consumed within a single job and never persisted on its own.
    """

    model_config = ConfigDict(frozen=True)

    duration_seconds: float | None = Field(
        default=None,
        description="Container duration in seconds, when the container reports one",
    )
    width: Annotated[int, Field(gt=0)] = Field(
        description="Video width in pixels",
    )
    height: Annotated[int, Field(gt=0)] = Field(
        description="Video height in pixels",
    )
    bitrate: int | None = Field(
        default=None,
        description="Container bitrate in bits per second",
    )
    codec_name: str | None = Field(
        default=None,
        description="Primary video stream codec",
    )
    pix_fmt: str | None = Field(
        default=None,
        description="Pixel format of the primary video stream",
    )
    frame_rate: float | None = Field(
        default=None,
        description="Primary video stream frame rate",
    )
    size_bytes: int | None = Field(
        default=None,
        description="Container size reported by the probe",
    )

    @property
    def resolution(self) -> str:
        """Return resolution string (e.g., '1920x1080')."""
        return f"{self.width}x{self.height}"


class VideoVariant(BaseModel):
    """One published rendition of a source video."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    quality: VideoQuality = Field(
        description="Quality label (e.g. '720p')",
    )
    format: VideoFormat = Field(
        description="Container format",
    )
    storage_path: str = Field(
        min_length=1,
        description="Object key in the storage bucket",
    )
    download_url: str = Field(
        alias="downloadURL",
        min_length=1,
        description="Public URL for the published object",
    )
    file_size_bytes: Annotated[int, Field(ge=0)] = Field(
        description="Size of the published object",
    )
    width: Annotated[int, Field(gt=0)]
    height: Annotated[int, Field(gt=0)]

    def to_document(self) -> dict[str, Any]:
        """Serialize for the video record."""
        return self.model_dump(mode="json", by_alias=True)


class ProcessingStatus(BaseModel):
    """Status block stored under the record's ``processingStatus``."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    status: ProcessingState = Field(
        default=ProcessingState.PENDING,
        description="Current processing status",
    )
    started_at: datetime | None = Field(
        default=None,
        description="When the job started processing",
    )
    completed_at: datetime | None = Field(
        default=None,
        description="When the job reached a terminal status",
    )
    error: str | None = Field(
        default=None,
        description="Readable failure message, only present when failed",
    )

    def to_document(self) -> dict[str, Any]:
        """Serialize for the video record, omitting unset fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class VideoRecord(BaseModel):
    """The per-video document the pipeline updates."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str = Field(
        min_length=1,
        description="Video id (matches the source file name without extension)",
    )
    variants: list[VideoVariant] = Field(
        default=[],
        description="Published variants, written only on success",
    )
    poster_url: str | None = Field(
        default=None,
        alias="posterURL",
    )
    poster_storage_path: str | None = Field(
        default=None,
    )
    duration: float | None = Field(
        default=None,
        description="Probed source duration in seconds",
    )
    processing_status: ProcessingStatus | None = Field(
        default=None,
    )
    updated_at: datetime | None = Field(
        default=None,
    )

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "VideoRecord":
        """Build a record from a DynamoDB item (Decimals become numbers)."""
        return cls.model_validate(_from_dynamo(item))

    @property
    def status(self) -> ProcessingState:
        if self.processing_status is None:
            return ProcessingState.PENDING
        return self.processing_status.status


class CompressionMetrics(BaseModel):
    """Size and bitrate figures for an encoded output, logged only."""

    model_config = ConfigDict(frozen=True)

    compression_ratio: float
    bitrate_kbps: float
    size_reduction_percent: float


class JobResult(BaseModel):
    """Outcome of one pipeline run, returned to the Lambda handler."""

    model_config = ConfigDict(frozen=True)

    video_id: str
    status: ProcessingState | None = Field(
        description="Terminal record status; None when the job was skipped",
    )
    final_state: JobState
    variants: list[VideoVariant] = Field(default=[])
    poster_url: str | None = None
    duration_seconds: float | None = None
    error_code: str | None = None
    error_message: str | None = None
    skipped: bool = Field(
        default=False,
        description="True when the job was not run (duplicate delivery)",
    )

    @property
    def is_success(self) -> bool:
        """Check if job completed successfully."""
        return self.status == ProcessingState.COMPLETED

    def summary(self) -> dict[str, Any]:
        """Compact form for the handler response body."""
        return {
            "video_id": self.video_id,
            "status": self.status.value if self.status else None,
            "final_state": self.final_state.value,
            "variants": len(self.variants),
            "poster_url": self.poster_url,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "skipped": self.skipped,
        }


def to_dynamo(value: Any) -> Any:
    """Convert floats to Decimal recursively for the DynamoDB resource API."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_dynamo(v) for v in value]
    return value


def _from_dynamo(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    return value
