"""Video background processing module.

This module turns an uploaded background video into published variants:
- Trigger filtering (source namespace, video content type, no retriggers)
- Download, probe and duration check
- MP4 and two-pass WebM variants plus a poster frame
- Publishing to S3 and status updates on the video record
"""

from .lease import JobLease
from .pipeline import VideoPipeline, check_duration
from .publisher import Publisher, poster_key, variant_key
from .scratch import ScratchSpace
from .status_recorder import StatusRecorder, WriteOutcome
from .trigger_filter import TriggerDecision, evaluate_trigger

__all__ = [
    "JobLease",
    "VideoPipeline",
    "check_duration",
    "Publisher",
    "poster_key",
    "variant_key",
    "ScratchSpace",
    "StatusRecorder",
    "WriteOutcome",
    "TriggerDecision",
    "evaluate_trigger",
]
