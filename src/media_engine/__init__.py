"""FFmpeg/FFprobe integration for the video background processor.

This module wraps the external encoding engine:
- Metadata probing (FFprobe)
- FFmpeg runs with streamed progress events
- H.264, two-pass VP9 and poster encode profiles
"""

from .engine import MediaEngine, ProgressEvent, parse_progress
from .encoders import (
    encode_h264,
    extract_poster,
    run_vp9_analysis_pass,
    run_vp9_encode_pass,
    scale_to_height,
)
from .metrics import compute_compression_metrics, log_compression_metrics
from .two_pass import TwoPassSession, begin_two_pass

__all__ = [
    "MediaEngine",
    "ProgressEvent",
    "parse_progress",
    "encode_h264",
    "extract_poster",
    "run_vp9_analysis_pass",
    "run_vp9_encode_pass",
    "scale_to_height",
    "compute_compression_metrics",
    "log_compression_metrics",
    "TwoPassSession",
    "begin_two_pass",
]
