"""Media info extraction using FFprobe.

Provides container and stream analysis for uploaded sources.
Used before any encode so unreadable uploads fail fast.
"""

import json
import subprocess
from dataclasses import dataclass
from typing import Any

from ..shared.exceptions import ProbeError
from ..shared.models import VideoMetadata


@dataclass
class VideoStream:
    """Video stream information."""

    codec_name: str
    width: int
    height: int
    frame_rate: float
    duration_seconds: float | None
    bit_rate: int | None
    pix_fmt: str | None

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"


def probe_media(ffprobe_path: str, file_path: str, timeout: float = 60.0) -> VideoMetadata:
    """Extract video metadata using FFprobe.

    Args:
        ffprobe_path: Path to the ffprobe binary
        file_path: Path to the local media file
        timeout: Seconds to wait for FFprobe

    Returns:
        VideoMetadata for the primary video stream

    Raises:
        ProbeError: If FFprobe fails or the file has no usable video stream

    Example:
        >>> meta = probe_media("ffprobe", "/tmp/job/abc123.mp4")
        >>> print(f"Duration: {meta.duration_seconds}s at {meta.resolution}")
    """
    try:
        result = subprocess.run(
            [
                ffprobe_path,
                "-v", "quiet",
                "-print_format", "json",
                "-show_format",
                "-show_streams",
                file_path,
            ],
            capture_output=True,
            text=True,
            timeout=timeout,
        )

        if result.returncode != 0:
            raise ProbeError(
                f"FFprobe exited with code {result.returncode} (corrupt or unsupported file)",
                {"file_path": file_path, "stderr": result.stderr[-1000:]},
            )

        data = json.loads(result.stdout)
        return parse_ffprobe_output(data, file_path)

    except subprocess.TimeoutExpired:
        raise ProbeError(
            "FFprobe timed out",
            {"file_path": file_path, "timeout_seconds": timeout},
        )
    except FileNotFoundError:
        raise ProbeError(
            "FFprobe not found - ensure FFmpeg is installed",
            {"file_path": file_path, "ffprobe_path": ffprobe_path},
        )
    except json.JSONDecodeError as e:
        raise ProbeError(
            f"Invalid FFprobe output: {e}",
            {"file_path": file_path},
        )


def parse_ffprobe_output(data: dict[str, Any], file_path: str) -> VideoMetadata:
    """Parse FFprobe JSON output into VideoMetadata."""
    if "format" not in data:
        raise ProbeError(
            "No format information in FFprobe output",
            {"file_path": file_path},
        )

    fmt = data["format"]
    video_streams = [
        _parse_video_stream(s) for s in data.get("streams", []) if s.get("codec_type") == "video"
    ]

    if not video_streams:
        raise ProbeError(
            "No video stream found in file",
            {"file_path": file_path},
        )

    video = video_streams[0]
    if video.width <= 0 or video.height <= 0:
        raise ProbeError(
            f"Video stream has invalid dimensions: {video.resolution}",
            {"file_path": file_path},
        )

    duration = _parse_float(fmt.get("duration"))
    if duration is None:
        duration = video.duration_seconds

    return VideoMetadata(
        duration_seconds=duration,
        width=video.width,
        height=video.height,
        bitrate=_parse_int(fmt.get("bit_rate")) or video.bit_rate,
        codec_name=video.codec_name,
        pix_fmt=video.pix_fmt,
        frame_rate=video.frame_rate or None,
        size_bytes=_parse_int(fmt.get("size")),
    )


def _parse_video_stream(stream: dict[str, Any]) -> VideoStream:
    """Parse video stream data."""
    width = _parse_int(stream.get("width")) or 0
    height = _parse_int(stream.get("height")) or 0

    # Phone footage stores portrait video as landscape plus a rotation
    rotation = _stream_rotation(stream)
    if rotation in (90, 270):
        width, height = height, width

    return VideoStream(
        codec_name=stream.get("codec_name", "unknown"),
        width=width,
        height=height,
        frame_rate=_parse_frame_rate(stream.get("avg_frame_rate") or stream.get("r_frame_rate", "0/1")),
        duration_seconds=_parse_float(stream.get("duration")),
        bit_rate=_parse_int(stream.get("bit_rate")),
        pix_fmt=stream.get("pix_fmt") or None,
    )


def _stream_rotation(stream: dict[str, Any]) -> int:
    """Read rotation from stream tags or display matrix side data."""
    rotate = _parse_int(stream.get("tags", {}).get("rotate"))
    if rotate is None:
        for side_data in stream.get("side_data_list", []):
            if "rotation" in side_data:
                rotate = _parse_int(side_data["rotation"])
                break
    return abs(rotate or 0) % 360


def _parse_frame_rate(rate_str: str) -> float:
    """Parse frame rate from ratio string (e.g., '30000/1001')."""
    try:
        if "/" in rate_str:
            num, den = rate_str.split("/")
            return float(num) / float(den)
        return float(rate_str)
    except (ValueError, ZeroDivisionError):
        return 0.0


def _parse_float(value: Any) -> float | None:
    if value is None or value == "N/A":
        return None
    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def _parse_int(value: Any) -> int | None:
    """Safely parse integer value."""
    if value is None:
        return None
    try:
        return int(value)
    except (ValueError, TypeError):
        return None
