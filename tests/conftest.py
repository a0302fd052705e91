"""Pytest configuration and shared fixtures.

This module provides:
- AWS credential mocking for moto
- Mocked S3 bucket and DynamoDB tables
- A fake media engine that writes placeholder outputs instead of running FFmpeg
- Sample test data (FFprobe output, S3 events, Lambda context)
- Environment variable setup
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Generator

import boto3
import pytest
from moto import mock_aws

# Set dummy AWS credentials BEFORE importing any application code
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

# Set application environment variables
os.environ["ENVIRONMENT"] = "dev"
os.environ["AWS_REGION"] = "us-east-1"
os.environ["STORAGE_BUCKET"] = "test-video-bucket"
os.environ["VIDEO_TABLE"] = "test-video-backgrounds"
os.environ["LEASE_TABLE"] = "test-video-leases"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["POWERTOOLS_TRACE_DISABLED"] = "true"
os.environ["POWERTOOLS_METRICS_NAMESPACE"] = "VideoBackgrounds"

from src.media_engine.engine import MediaEngine  # noqa: E402
from src.shared.aws_clients import clear_client_cache  # noqa: E402
from src.shared.config import Settings, clear_settings_cache  # noqa: E402
from src.shared.exceptions import EncodeError  # noqa: E402
from src.shared.models import SourceVideo, VideoMetadata  # noqa: E402

TEST_BUCKET = "test-video-bucket"
TEST_VIDEO_TABLE = "test-video-backgrounds"
TEST_LEASE_TABLE = "test-video-leases"


# =============================================================================
# AWS Fixtures
# =============================================================================


@pytest.fixture
def aws_credentials() -> None:
    """Mocked AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def mocked_aws(aws_credentials: None) -> Generator[None, None, None]:
    """Start moto and reset cached clients so they bind to the mock."""
    with mock_aws():
        clear_client_cache()
        yield
    clear_client_cache()


@pytest.fixture
def s3_client(mocked_aws: None) -> Any:
    """Mocked S3 client."""
    return boto3.client("s3", region_name="us-east-1")


@pytest.fixture
def dynamodb_resource(mocked_aws: None) -> Any:
    """Mocked DynamoDB resource."""
    return boto3.resource("dynamodb", region_name="us-east-1")


@pytest.fixture
def storage_bucket(s3_client: Any) -> str:
    """Create the test storage bucket."""
    s3_client.create_bucket(Bucket=TEST_BUCKET)
    return TEST_BUCKET


@pytest.fixture
def video_table(dynamodb_resource: Any) -> Any:
    """Create DynamoDB video record table."""
    return dynamodb_resource.create_table(
        TableName=TEST_VIDEO_TABLE,
        AttributeDefinitions=[
            {"AttributeName": "id", "AttributeType": "S"},
        ],
        KeySchema=[
            {"AttributeName": "id", "KeyType": "HASH"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def lease_table(dynamodb_resource: Any) -> Any:
    """Create DynamoDB processing lease table."""
    return dynamodb_resource.create_table(
        TableName=TEST_LEASE_TABLE,
        AttributeDefinitions=[
            {"AttributeName": "video_id", "AttributeType": "S"},
        ],
        KeySchema=[
            {"AttributeName": "video_id", "KeyType": "HASH"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def scratch_root(tmp_path: Path) -> Path:
    """Directory job scratch directories are created in."""
    root = tmp_path / "scratch"
    root.mkdir()
    return root


@pytest.fixture
def settings(scratch_root: Path) -> Settings:
    """Settings from the test environment with an isolated scratch root."""
    clear_settings_cache()
    return Settings(scratch_root=str(scratch_root))


@pytest.fixture
def mock_environment(monkeypatch: pytest.MonkeyPatch, scratch_root: Path) -> Generator[None, None, None]:
    """Point the cached settings used by the Lambda handler at the test scratch root."""
    monkeypatch.setenv("SCRATCH_ROOT", str(scratch_root))

    # Clear cached settings
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Media Engine Fixtures
# =============================================================================


DEFAULT_METADATA = VideoMetadata(
    duration_seconds=10.0,
    width=1920,
    height=1080,
    bitrate=8_000_000,
    codec_name="h264",
    frame_rate=30.0,
)


class FakeMediaEngine(MediaEngine):
    """MediaEngine that records invocations and writes placeholder files.

    The two-pass statistics log is written by pass 1 exactly where libvpx
    would write it, so cleanup of the log can be asserted.
    """

    default_metadata = DEFAULT_METADATA

    def __init__(
        self,
        metadata: VideoMetadata | None = None,
        probe_error: Exception | None = None,
        fail_label: str | None = None,
        run_error: Exception | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.metadata = metadata or self.default_metadata
        self.probe_error = probe_error
        self.fail_label = fail_label
        self.run_error = run_error
        self.probed: list[str] = []
        self.calls: list[tuple[str, list[str]]] = []
        self.stats_log_seen_by_pass2: bool | None = None

    @property
    def labels(self) -> list[str]:
        return [label for label, _ in self.calls]

    def probe(self, file_path: str) -> VideoMetadata:
        self.probed.append(file_path)
        if self.probe_error:
            raise self.probe_error
        return self.metadata

    def run(
        self,
        args: list[str],
        *,
        label: str,
        duration_seconds: float | None = None,
    ) -> None:
        self.calls.append((label, list(args)))

        if "-pass" in args:
            pass_number = args[args.index("-pass") + 1]
            stats_log = Path(f"{args[args.index('-passlogfile') + 1]}-0.log")
            if pass_number == "1":
                stats_log.write_text("vp9 first pass statistics")
            else:
                self.stats_log_seen_by_pass2 = stats_log.is_file()

        if self.run_error:
            raise self.run_error
        if label == self.fail_label:
            raise EncodeError(
                f"{label} failed: FFmpeg exited with code 1",
                {"label": label, "returncode": 1},
            )

        output = args[-1]
        if output != os.devnull:
            Path(output).write_bytes(b"\x00" * 2048)


@pytest.fixture
def make_engine() -> Callable[..., FakeMediaEngine]:
    """Factory for fake media engines."""
    return FakeMediaEngine


@pytest.fixture
def fake_engine() -> FakeMediaEngine:
    """Fake media engine reporting a 10 second 1080p source."""
    return FakeMediaEngine()


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def source_video() -> SourceVideo:
    """Uploaded source video."""
    return SourceVideo(
        path="video-backgrounds/abc123.mp4",
        content_type="video/mp4",
        size_bytes=4096,
    )


@pytest.fixture
def uploaded_source(storage_bucket: str, s3_client: Any, source_video: SourceVideo) -> SourceVideo:
    """Source video already present in the mocked bucket."""
    s3_client.put_object(
        Bucket=storage_bucket,
        Key=source_video.path,
        Body=b"\x00" * source_video.size_bytes,
        ContentType=source_video.content_type,
    )
    return source_video


@pytest.fixture
def sample_ffprobe_output() -> dict:
    """FFprobe JSON for a 12.5 second 1080p H.264 clip with audio."""
    return {
        "streams": [
            {
                "index": 0,
                "codec_name": "h264",
                "codec_type": "video",
                "width": 1920,
                "height": 1080,
                "pix_fmt": "yuv420p",
                "r_frame_rate": "30/1",
                "avg_frame_rate": "30000/1001",
                "duration": "12.512500",
                "bit_rate": "7800000",
            },
            {
                "index": 1,
                "codec_name": "aac",
                "codec_type": "audio",
                "sample_rate": "48000",
                "channels": 2,
            },
        ],
        "format": {
            "filename": "/tmp/video-abc123/abc123.mp4",
            "format_name": "mov,mp4,m4a,3gp,3g2,mj2",
            "duration": "12.500000",
            "size": "12500000",
            "bit_rate": "8000000",
        },
    }


# =============================================================================
# S3 Event Fixtures
# =============================================================================


@pytest.fixture
def make_s3_event() -> Callable[..., dict]:
    """Factory for S3 ObjectCreated events."""

    def _make(key: str, bucket: str = TEST_BUCKET, size: int = 4096) -> dict:
        return {
            "Records": [
                {
                    "eventVersion": "2.1",
                    "eventSource": "aws:s3",
                    "awsRegion": "us-east-1",
                    "eventTime": "2024-01-15T10:00:00.000Z",
                    "eventName": "ObjectCreated:Put",
                    "s3": {
                        "bucket": {
                            "name": bucket,
                            "arn": f"arn:aws:s3:::{bucket}",
                        },
                        "object": {
                            "key": key,
                            "size": size,
                            "eTag": "abc123",
                        },
                    },
                }
            ]
        }

    return _make


@dataclass
class LambdaContext:
    function_name: str = "video-background-processor"
    memory_limit_in_mb: int = 2048
    invoked_function_arn: str = (
        "arn:aws:lambda:us-east-1:123456789012:function:video-background-processor"
    )
    aws_request_id: str = "req-00000000-0000-0000-0000-000000000001"


@pytest.fixture
def lambda_context() -> LambdaContext:
    """Minimal Lambda context accepted by Powertools."""
    return LambdaContext()
