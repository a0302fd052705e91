"""Lambda handler for uploaded background videos.

This Lambda is triggered by S3 ObjectCreated events for the storage
bucket. For every record it:
1. Applies the trigger filter (path first, then content type via HeadObject)
2. Takes a per-video processing lease
3. Runs the transcode-and-publish pipeline
4. Releases the lease

Runs with a 540s timeout and 2GB of memory; scratch files live in /tmp.
"""

import json
from typing import Any

from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.data_classes import S3Event, event_source
from aws_lambda_powertools.utilities.typing import LambdaContext

from ..media_engine.engine import MediaEngine
from ..shared.aws_clients import AWS_ERRORS, get_s3_client
from ..shared.config import Settings, get_settings
from ..shared.exceptions import LeaseError
from ..shared.models import JobResult, JobState, ProcessingState, SourceVideo
from .lease import JobLease
from .pipeline import VideoPipeline
from .trigger_filter import evaluate_path, evaluate_trigger

# Initialize Powertools
logger = Logger(service="video-processor")
tracer = Tracer(service="video-processor")
metrics = Metrics(service="video-processor", namespace="VideoBackgrounds")


@logger.inject_lambda_context(log_event=True)
@tracer.capture_lambda_handler
@metrics.log_metrics(capture_cold_start_metric=True)
@event_source(data_class=S3Event)
def handler(event: S3Event, context: LambdaContext) -> dict[str, Any]:
    """Process S3 events for uploaded background videos.

    Args:
        event: S3 ObjectCreated event
        context: Lambda context

    Returns:
        Response summarizing each record's outcome

    Output structure:
        {
            "statusCode": 200,
            "body": "{\"message\": \"Processed 1 video(s)\", \"results\": [...]}"
        }
    """
    settings = get_settings()
    logger.setLevel(settings.log_level)
    logger.append_keys(environment=settings.environment)
    metrics.add_dimension(name="environment", value=settings.environment)

    s3_client = get_s3_client()
    engine = MediaEngine.from_settings(settings)
    pipeline = VideoPipeline(settings, engine, s3_client=s3_client)

    results = []

    for record in event.records:
        bucket = record.s3.bucket.name
        key = record.s3.get_object.key

        logger.info(
            "Processing upload",
            extra={
                "bucket": bucket,
                "key": key,
                "event_time": record.event_time,
                "event_name": record.event_name,
            },
        )

        source = _admit(bucket, key, settings, s3_client)
        if source is None:
            metrics.add_metric(name="TriggersSkipped", unit=MetricUnit.Count, value=1)
            continue

        result = _process_with_lease(pipeline, source, settings, context.aws_request_id)
        _emit_result_metrics(result)
        results.append(result.summary())

    return {
        "statusCode": 200,
        "body": json.dumps({
            "message": f"Processed {len(results)} video(s)",
            "results": results,
        }),
    }


@tracer.capture_method
def _admit(bucket: str, key: str, settings: Settings, s3_client: Any) -> SourceVideo | None:
    """Apply the trigger filter; returns the source video if admitted."""
    if bucket != settings.storage_bucket:
        logger.info("Skipping object from unexpected bucket", extra={"bucket": bucket, "key": key})
        return None

    path_decision = evaluate_path(key, settings)
    if not path_decision.accepted:
        logger.info(f"Skipping file: {key}", extra={"reason": path_decision.reason})
        return None

    try:
        head = s3_client.head_object(Bucket=bucket, Key=key)
    except AWS_ERRORS as e:
        # Object deleted between upload and trigger
        logger.warning("Could not read object metadata", extra={"key": key, "error": str(e)})
        return None

    content_type = head.get("ContentType")
    decision = evaluate_trigger(key, content_type, settings)
    if not decision.accepted:
        logger.info(f"Skipping non-video file: {key}", extra={"reason": decision.reason})
        return None

    return SourceVideo(
        path=key,
        content_type=content_type,
        size_bytes=head.get("ContentLength", 0),
    )


@tracer.capture_method
def _process_with_lease(
    pipeline: VideoPipeline,
    source: SourceVideo,
    settings: Settings,
    holder: str,
) -> JobResult:
    """Run the pipeline while holding the video's processing lease."""
    if not settings.lease_enabled:
        return pipeline.process(source)

    lease = JobLease(settings)
    try:
        acquired = lease.acquire(source.video_id, holder)
    except LeaseError as e:
        # Proceed without a lease rather than drop the upload
        logger.error("Processing lease unavailable", extra=e.to_dict())
        return pipeline.process(source)

    if not acquired:
        metrics.add_metric(name="DuplicateTriggersSkipped", unit=MetricUnit.Count, value=1)
        return JobResult(
            video_id=source.video_id,
            status=None,
            final_state=JobState.PENDING,
            skipped=True,
        )

    try:
        return pipeline.process(source)
    finally:
        lease.release(source.video_id, holder)


def _emit_result_metrics(result: JobResult) -> None:
    if result.status == ProcessingState.COMPLETED:
        metrics.add_metric(name="VideosProcessed", unit=MetricUnit.Count, value=1)
    elif result.status == ProcessingState.FAILED:
        metrics.add_metric(name="VideoProcessingFailures", unit=MetricUnit.Count, value=1)
        metrics.add_metadata(key=f"error_{result.video_id}", value=result.error_code)
