"""Encode profiles for background video variants and posters.

Key concepts:
- CRF (constant quality) rather than constant bitrate for both codecs
- H.264 High@4.1 yuv420p for universal browser playback
- VP9 two-pass for ~30-50% smaller files on modern browsers
- Audio is always stripped: backgrounds autoplay muted
"""

import os
from pathlib import Path

from ..shared.exceptions import EncodeError
from ..shared.models import VideoMetadata
from .engine import MediaEngine
from .two_pass import TwoPassSession


# =============================================================================
# H.264 (AVC) - Broad Compatibility, single pass
# =============================================================================

H264_OUTPUT_OPTIONS: list[str] = [
    "-c:v", "libx264",
    "-crf", "23",
    "-preset", "medium",
    "-tune", "film",
    "-profile:v", "high",
    "-level:v", "4.1",
    "-pix_fmt", "yuv420p",
    "-g", "48",                 # ~1.6s keyframe interval at 30fps for seeking
    "-movflags", "+faststart",  # moov atom first so playback starts while downloading
]


# =============================================================================
# VP9 - Open format, two pass
# =============================================================================

VP9_OUTPUT_OPTIONS: list[str] = [
    "-c:v", "libvpx-vp9",
    "-crf", "30",
    "-b:v", "0",                # unconstrained bitrate, required for CRF mode
    "-tile-columns", "2",
    "-row-mt", "1",
    "-frame-parallel", "1",
    "-auto-alt-ref", "1",
    "-lag-in-frames", "25",
    "-g", "240",                # 8s GOP at 30fps
]

VP9_ANALYSIS_SPEED = 4
VP9_ENCODE_SPEED = 2


# =============================================================================
# Poster
# =============================================================================

POSTER_JPEG_QUALITY = 2  # 1-31, lower is better


def scale_to_height(width: int, height: int, target_height: int) -> tuple[int, int]:
    """Compute aspect-preserving output dimensions for a target height.

    Sources shorter than the target are never upscaled. Both dimensions are
    rounded to even values as required by yuv420p.

    Example:
        >>> scale_to_height(1920, 1080, 720)
        (1280, 720)
    """
    out_height = min(target_height, height)
    out_height -= out_height % 2
    out_height = max(out_height, 2)
    out_width = int(round(width * out_height / height / 2)) * 2
    return max(out_width, 2), out_height


def fit_even(width: int, height: int, max_width: int) -> tuple[int, int]:
    """Downscale to at most ``max_width`` and force even dimensions."""
    if width > max_width:
        height = int(round(height * max_width / width))
        width = max_width
    return max(width - width % 2, 2), max(height - height % 2, 2)


def encode_h264(
    engine: MediaEngine,
    source: Path,
    output: Path,
    metadata: VideoMetadata,
    target_height: int,
) -> tuple[int, int]:
    """Encode the broad-compatibility MP4 variant in a single pass.

    Returns:
        (width, height) of the output

    Raises:
        EncodeError: If FFmpeg fails or writes no output
    """
    width, height = scale_to_height(metadata.width, metadata.height, target_height)
    engine.run(
        [
            "-i", str(source),
            "-vf", f"scale={width}:{height}",
            "-an",
            *H264_OUTPUT_OPTIONS,
            str(output),
        ],
        label=f"{height}p MP4",
        duration_seconds=metadata.duration_seconds,
    )
    _require_output(output, f"{height}p MP4")
    return width, height


def _vp9_args(
    source: Path,
    dimensions: tuple[int, int],
    session: TwoPassSession,
    pass_number: int,
    speed: int,
) -> list[str]:
    width, height = dimensions
    return [
        "-i", str(source),
        "-vf", f"scale={width}:{height}",
        "-an",
        *VP9_OUTPUT_OPTIONS,
        "-pass", str(pass_number),
        "-passlogfile", str(session.log_prefix),
        "-speed", str(speed),
    ]


def run_vp9_analysis_pass(
    engine: MediaEngine,
    source: Path,
    metadata: VideoMetadata,
    target_height: int,
    session: TwoPassSession,
) -> tuple[int, int]:
    """Run VP9 pass 1: analyse the whole source, keep only the stats log.

    Returns:
        (width, height) both passes encode at

    Raises:
        EncodeError: If FFmpeg fails or no statistics log was written
    """
    dimensions = scale_to_height(metadata.width, metadata.height, target_height)
    args = _vp9_args(source, dimensions, session, 1, VP9_ANALYSIS_SPEED)
    # Video output of the analysis pass is discarded
    engine.run(
        [*args, "-f", "webm", os.devnull],
        label="VP9 pass 1",
        duration_seconds=metadata.duration_seconds,
    )
    session.mark_analysis_complete()
    return dimensions


def run_vp9_encode_pass(
    engine: MediaEngine,
    source: Path,
    output: Path,
    metadata: VideoMetadata,
    target_height: int,
    session: TwoPassSession,
) -> tuple[int, int]:
    """Run VP9 pass 2 using the statistics from pass 1.

    Returns:
        (width, height) of the output

    Raises:
        EncodeError: If pass 1 has not completed, FFmpeg fails, or no output was written
    """
    session.require_analysis()
    dimensions = scale_to_height(metadata.width, metadata.height, target_height)
    engine.run(
        [*_vp9_args(source, dimensions, session, 2, VP9_ENCODE_SPEED), str(output)],
        label="VP9 pass 2",
        duration_seconds=metadata.duration_seconds,
    )
    _require_output(output, "VP9 pass 2")
    return dimensions


def extract_poster(
    engine: MediaEngine,
    source: Path,
    output: Path,
    metadata: VideoMetadata,
    offset_seconds: float = 0.1,
    max_width: int = 1920,
) -> tuple[int, int]:
    """Extract one high-quality JPEG frame slightly after the start.

    Frame zero is skipped because it is often black or a partial frame.

    Returns:
        (width, height) of the poster

    Raises:
        EncodeError: If FFmpeg fails or writes no image
    """
    if metadata.duration_seconds:
        offset_seconds = min(offset_seconds, metadata.duration_seconds / 2)

    width, height = fit_even(metadata.width, metadata.height, max_width)
    engine.run(
        [
            "-ss", f"{offset_seconds:.3f}",
            "-i", str(source),
            "-frames:v", "1",
            "-q:v", str(POSTER_JPEG_QUALITY),
            "-vf", f"scale={width}:{height}",
            str(output),
        ],
        label="Poster",
    )
    _require_output(output, "Poster")
    return width, height


def _require_output(output: Path, label: str) -> None:
    if not output.is_file() or output.stat().st_size == 0:
        raise EncodeError(
            f"{label} produced no output",
            {"label": label, "output": str(output)},
        )
