"""Transcode-and-publish pipeline for one uploaded background video.

Stages run strictly in sequence, each consuming the previous stage's file:

    download -> probe -> duration check -> H.264 MP4 -> VP9 pass 1 ->
    VP9 pass 2 -> poster -> publish -> record completed

Any stage error is caught once at the top of the job and written to the
record as ``failed``. Scratch files are removed on every exit path by the
surrounding ScratchSpace before the failure is recorded. Partial uploads
are rolled back only after this job's failure write succeeds.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from aws_lambda_powertools import Logger

from ..media_engine.encoders import (
    encode_h264,
    extract_poster,
    run_vp9_analysis_pass,
    run_vp9_encode_pass,
)
from ..media_engine.engine import MediaEngine
from ..media_engine.metrics import log_compression_metrics
from ..media_engine.two_pass import begin_two_pass
from ..shared.config import Settings
from ..shared.exceptions import DurationLimitError, UnknownError, VideoPipelineError
from ..shared.models import (
    JobResult,
    JobState,
    ProcessingState,
    SourceVideo,
    VideoFormat,
    VideoMetadata,
    VideoQuality,
    VideoVariant,
)
from .ingest import download_source
from .publisher import Publisher
from .scratch import ScratchSpace
from .status_recorder import StatusRecorder, WriteOutcome, utc_now

logger = Logger(service="video-processor")


@dataclass
class JobContext:
    """Mutable state of one running job."""

    source: SourceVideo
    started_at: datetime
    state: JobState = JobState.PENDING
    history: list[JobState] = field(default_factory=lambda: [JobState.PENDING])

    @property
    def video_id(self) -> str:
        return self.source.video_id

    def advance(self, target: JobState) -> None:
        """Move to the next state, rejecting out-of-order transitions."""
        if not self.state.can_transition_to(target):
            raise UnknownError(
                f"Illegal job transition {self.state.value} -> {target.value}",
                details={"video_id": self.video_id},
            )
        logger.debug(
            "Job state transition",
            extra={"video_id": self.video_id, "from": self.state.value, "to": target.value},
        )
        self.state = target
        self.history.append(target)


def check_duration(metadata: VideoMetadata, limit_seconds: float) -> None:
    """Reject sources longer than the configured limit before any encode.

    Raises:
        DurationLimitError: If the probed duration exceeds the limit
    """
    if metadata.duration_seconds is None:
        logger.warning("Source reports no duration; skipping duration check")
        return
    if metadata.duration_seconds > limit_seconds:
        raise DurationLimitError(metadata.duration_seconds, limit_seconds)


class VideoPipeline:
    """Runs the full processing job for uploaded source videos.

    Args:
        settings: Application settings
        engine: Media engine running FFmpeg/FFprobe (injected so tests can fake it)
        recorder: Status recorder for the video table
        s3_client: S3 client shared by ingest and publishing
    """

    def __init__(
        self,
        settings: Settings,
        engine: MediaEngine,
        recorder: StatusRecorder | None = None,
        s3_client: Any | None = None,
    ) -> None:
        self.settings = settings
        self.engine = engine
        self.recorder = recorder or StatusRecorder(settings)
        self.s3_client = s3_client

    def process(self, source: SourceVideo) -> JobResult:
        """Process one source video end to end.

        Never raises for job failures; the outcome is returned and written
        to the video record.

        Returns:
            JobResult describing the terminal state
        """
        job = JobContext(source=source, started_at=utc_now())

        logger.info(
            f"Processing video: {job.video_id} ({source.path})",
            extra={"video_id": job.video_id, "content_type": source.content_type},
        )

        if self.recorder.mark_processing(job.video_id, job.started_at) == WriteOutcome.REJECTED:
            logger.info("Video already processed; skipping", extra={"video_id": job.video_id})
            return JobResult(
                video_id=job.video_id,
                status=None,
                final_state=job.state,
                skipped=True,
            )

        publisher = Publisher(self.settings, s3_client=self.s3_client)

        try:
            with ScratchSpace(self.settings.scratch_root, job.video_id) as scratch:
                return self._run(job, scratch, publisher)
        except VideoPipelineError as e:
            return self._fail(job, e, publisher)
        except Exception as e:
            logger.exception("Unexpected video processing error", extra={"video_id": job.video_id})
            return self._fail(job, UnknownError(str(e) or type(e).__name__, original_error=e), publisher)

    def _run(self, job: JobContext, scratch: ScratchSpace, publisher: Publisher) -> JobResult:
        settings = self.settings
        video_id = job.video_id

        job.advance(JobState.DOWNLOADING)
        source_path = download_source(settings.storage_bucket, job.source, scratch, self.s3_client)
        source_size = source_path.stat().st_size

        job.advance(JobState.PROBING)
        metadata = self.engine.probe(str(source_path))
        logger.info("Video metadata", extra={"video_id": video_id, **metadata.model_dump()})
        check_duration(metadata, settings.max_duration_seconds)
        duration = metadata.duration_seconds

        job.advance(JobState.ENCODING_A)
        mp4_path = scratch.path(f"{video_id}-720p.mp4")
        mp4_dims = encode_h264(self.engine, source_path, mp4_path, metadata, settings.target_height)
        log_compression_metrics("720p MP4", source_size, mp4_path.stat().st_size, duration)

        webm_path = scratch.path(f"{video_id}-720p.webm")
        with begin_two_pass(scratch.directory, video_id) as session:
            scratch.track(session.stats_log)

            job.advance(JobState.ENCODING_B_PASS1)
            run_vp9_analysis_pass(self.engine, source_path, metadata, settings.target_height, session)

            job.advance(JobState.ENCODING_B_PASS2)
            webm_dims = run_vp9_encode_pass(
                self.engine, source_path, webm_path, metadata, settings.target_height, session
            )
        log_compression_metrics("720p WebM", source_size, webm_path.stat().st_size, duration)

        job.advance(JobState.EXTRACTING_POSTER)
        poster_path = scratch.path(f"{video_id}-poster.jpg")
        extract_poster(
            self.engine,
            source_path,
            poster_path,
            metadata,
            offset_seconds=settings.poster_offset_seconds,
            max_width=settings.poster_max_width,
        )

        job.advance(JobState.PUBLISHING)
        variants: list[VideoVariant] = [
            publisher.publish_source(job.source, source_path, metadata),
            publisher.publish_variant(mp4_path, video_id, VideoQuality.Q720P, VideoFormat.MP4, mp4_dims),
            publisher.publish_variant(webm_path, video_id, VideoQuality.Q720P, VideoFormat.WEBM, webm_dims),
        ]
        poster_url, poster_storage_path = publisher.publish_poster(poster_path, video_id)

        self.recorder.mark_completed(
            video_id,
            started_at=job.started_at,
            variants=variants,
            poster_url=poster_url,
            poster_storage_path=poster_storage_path,
            duration=duration,
        )
        job.advance(JobState.COMPLETED)

        logger.info(
            f"Successfully processed video: {video_id}",
            extra={
                "video_id": video_id,
                "original_mb": round(source_size / 1024 / 1024, 2),
                "mp4_mb": round(variants[1].file_size_bytes / 1024 / 1024, 2),
                "webm_mb": round(variants[2].file_size_bytes / 1024 / 1024, 2),
            },
        )

        return JobResult(
            video_id=video_id,
            status=ProcessingState.COMPLETED,
            final_state=job.state,
            variants=variants,
            poster_url=poster_url,
            duration_seconds=duration,
        )

    def _fail(self, job: JobContext, error: VideoPipelineError, publisher: Publisher) -> JobResult:
        failed_stage = job.state
        job.advance(JobState.FAILED)

        logger.error(
            "Video processing error",
            extra={"video_id": job.video_id, "stage": failed_stage.value, **error.to_dict()},
        )

        outcome = self.recorder.mark_failed(job.video_id, job.started_at, error.status_message)

        if publisher.uploaded_keys and self.settings.rollback_partial_uploads:
            # Variant keys are shared by every job for this id; only the job
            # whose failure write landed may delete them.
            if outcome == WriteOutcome.WRITTEN:
                publisher.rollback()
            else:
                logger.warning(
                    "Skipping rollback; record not owned by this job",
                    extra={"video_id": job.video_id, "outcome": outcome.value, "keys": publisher.uploaded_keys},
                )

        return JobResult(
            video_id=job.video_id,
            status=ProcessingState.FAILED,
            final_state=job.state,
            error_code=error.error_code,
            error_message=error.status_message,
        )
