"""Unit tests for shared models, settings and errors."""

from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from src.media_engine.metrics import compute_compression_metrics
from src.shared.config import Settings
from src.shared.exceptions import DurationLimitError, EncodeError, UnknownError
from src.shared.models import (
    JobResult,
    JobState,
    ProcessingState,
    ProcessingStatus,
    SourceVideo,
    VideoFormat,
    VideoQuality,
    VideoRecord,
    VideoVariant,
    to_dynamo,
)


class TestSourceVideo:
    """Tests for source naming."""

    def test_video_id_from_file_name(self):
        """Test the id is the basename without extension."""
        source = SourceVideo(path="video-backgrounds/abc123.mp4", content_type="video/mp4")

        assert source.file_name == "abc123.mp4"
        assert source.video_id == "abc123"

    def test_video_id_keeps_inner_dots(self):
        """Test only the last extension is stripped."""
        source = SourceVideo(path="video-backgrounds/clip.v2.mov", content_type="video/quicktime")

        assert source.video_id == "clip.v2"


class TestDocuments:
    """Tests for record serialization."""

    def test_variant_document(self):
        """Test variant documents use the record's field names."""
        variant = VideoVariant(
            quality=VideoQuality.Q720P,
            format=VideoFormat.WEBM,
            storage_path="video-backgrounds/variants/abc123-720p.webm",
            download_url="https://cdn.example.com/video-backgrounds/variants/abc123-720p.webm",
            file_size_bytes=1_800_000,
            width=1280,
            height=720,
        )

        assert variant.to_document() == {
            "quality": "720p",
            "format": "webm",
            "storagePath": "video-backgrounds/variants/abc123-720p.webm",
            "downloadURL": "https://cdn.example.com/video-backgrounds/variants/abc123-720p.webm",
            "fileSizeBytes": 1_800_000,
            "width": 1280,
            "height": 720,
        }

    def test_status_document_omits_unset_fields(self):
        """Test error is only present on failure."""
        status = ProcessingStatus(status=ProcessingState.PROCESSING)

        assert status.to_document() == {"status": "processing"}

    def test_record_from_dynamo_item(self):
        """Test Decimal values from DynamoDB become numbers."""
        record = VideoRecord.from_item(
            {
                "id": "abc123",
                "duration": Decimal("12.5"),
                "processingStatus": {"status": "completed"},
                "variants": [
                    {
                        "quality": "720p",
                        "format": "mp4",
                        "storagePath": "video-backgrounds/variants/abc123-720p.mp4",
                        "downloadURL": "https://example.com/v.mp4",
                        "fileSizeBytes": Decimal("2048"),
                        "width": Decimal("1280"),
                        "height": Decimal("720"),
                    }
                ],
            }
        )

        assert record.duration == 12.5
        assert record.status == ProcessingState.COMPLETED
        assert record.variants[0].file_size_bytes == 2048

    def test_record_without_status_is_pending(self):
        """Test a record the pipeline never touched reads as pending."""
        assert VideoRecord(id="abc123").status == ProcessingState.PENDING

    def test_to_dynamo_converts_floats(self):
        """Test nested floats become Decimals."""
        assert to_dynamo({"a": 1.5, "b": [2.25], "c": 3}) == {
            "a": Decimal("1.5"),
            "b": [Decimal("2.25")],
            "c": 3,
        }


class TestStates:
    """Tests for state enums and job results."""

    def test_terminal_states(self):
        """Test which states are terminal."""
        assert ProcessingState.COMPLETED.is_terminal
        assert ProcessingState.FAILED.is_terminal
        assert not ProcessingState.PROCESSING.is_terminal
        assert JobState.FAILED.is_terminal
        assert not JobState.PUBLISHING.is_terminal

    def test_transitions(self):
        """Test the linear stage order."""
        assert JobState.PROBING.can_transition_to(JobState.ENCODING_A)
        assert JobState.ENCODING_B_PASS1.can_transition_to(JobState.ENCODING_B_PASS2)
        assert not JobState.ENCODING_A.can_transition_to(JobState.ENCODING_B_PASS2)
        assert JobState.PUBLISHING.can_transition_to(JobState.FAILED)
        assert not JobState.COMPLETED.can_transition_to(JobState.FAILED)

    def test_job_result_summary(self):
        """Test the compact handler form."""
        result = JobResult(
            video_id="abc123",
            status=ProcessingState.FAILED,
            final_state=JobState.FAILED,
            error_code="ENCODE_ERROR",
            error_message="Encoding failed: VP9 pass 2 failed",
        )

        summary = result.summary()

        assert summary["status"] == "failed"
        assert summary["final_state"] == "FAILED"
        assert summary["variants"] == 0
        assert not result.is_success


class TestErrors:
    """Tests for the exception hierarchy."""

    def test_duration_limit_message(self):
        """Test the readable message written to the record."""
        error = DurationLimitError(25.0, 20.0)

        assert error.status_message == "Validation failed: Video exceeds 20 second limit: 25.0s"
        assert error.error_code == "DURATION_LIMIT_ERROR"
        assert error.details == {"duration_seconds": 25.0, "limit_seconds": 20.0}

    def test_to_dict(self):
        """Test structured logging form."""
        error = EncodeError("Poster produced no output", {"label": "Poster"})

        assert error.to_dict() == {
            "error_code": "ENCODE_ERROR",
            "error_message": "Poster produced no output",
            "details": {"label": "Poster"},
        }

    def test_unknown_error_keeps_cause(self):
        """Test wrapped exceptions are described in details."""
        error = UnknownError("boom", original_error=KeyError("x"))

        assert error.details["original_error_type"] == "KeyError"
        assert error.status_message == "Unexpected error: boom"


class TestSettings:
    """Tests for environment configuration."""

    def test_defaults(self, settings):
        """Test values applied when only required variables are set."""
        assert settings.storage_bucket == "test-video-bucket"
        assert settings.source_prefix == "video-backgrounds"
        assert settings.variants_prefix == "video-backgrounds/variants"
        assert settings.max_duration_seconds == 20.0
        assert settings.target_height == 720
        assert settings.cache_control == "public, max-age=31536000"
        assert settings.lease_enabled is True

    def test_rejects_slashed_prefix(self):
        """Test the namespace must be a bare prefix."""
        with pytest.raises(PydanticValidationError):
            Settings(source_prefix="video-backgrounds/")

    def test_public_base_url_normalized(self):
        """Test a trailing slash on the base URL is dropped."""
        assert Settings(public_base_url="https://cdn.example.com/").public_base_url == "https://cdn.example.com"

    def test_rejects_non_http_base_url(self):
        """Test the base URL scheme is validated."""
        with pytest.raises(PydanticValidationError):
            Settings(public_base_url="cdn.example.com")

    def test_env_override(self, monkeypatch):
        """Test settings come from the environment."""
        monkeypatch.setenv("MAX_DURATION_SECONDS", "30")

        assert Settings().max_duration_seconds == 30.0


class TestCompressionMetrics:
    """Tests for logged compression figures."""

    def test_metrics(self):
        """Test ratio, bitrate and reduction for a 10 second clip."""
        metrics = compute_compression_metrics(10_000_000, 2_500_000, 10.0)

        assert metrics.compression_ratio == 4.0
        assert metrics.bitrate_kbps == 2000.0
        assert metrics.size_reduction_percent == 75.0

    def test_zero_sizes(self):
        """Test degenerate inputs do not divide by zero."""
        metrics = compute_compression_metrics(0, 0, None)

        assert metrics.compression_ratio == 0.0
        assert metrics.bitrate_kbps == 0.0
        assert metrics.size_reduction_percent == 0.0
