"""Status writes to the per-video DynamoDB record.

The pipeline is the only writer of ``processingStatus``, ``variants`` and
the poster fields. Writes are best effort: a failed write is logged and
never retried, because the job's outcome is already decided by then.

Every write is conditional on the record being absent, pending or
processing, so completed and failed records are never rewritten. A record
left in processing by a job the host killed can be picked up again.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from aws_lambda_powertools import Logger
from botocore.exceptions import ClientError

from ..shared.aws_clients import AWS_ERRORS, get_dynamodb_resource
from ..shared.config import Settings
from ..shared.models import (
    ProcessingState,
    ProcessingStatus,
    VideoRecord,
    VideoVariant,
    to_dynamo,
)

logger = Logger(service="status-recorder")

_OPEN_CONDITION = (
    "attribute_not_exists(processingStatus) "
    "OR processingStatus.#status IN (:pending, :processing)"
)


class WriteOutcome(str, Enum):
    """Result of a status write."""

    WRITTEN = "WRITTEN"
    REJECTED = "REJECTED"  # record already terminal
    FAILED = "FAILED"      # DynamoDB unavailable or erroring


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StatusRecorder:
    """Writes processing status transitions for video records."""

    def __init__(self, settings: Settings, table: Any | None = None) -> None:
        self.table = table or get_dynamodb_resource().Table(settings.video_table)

    def mark_processing(self, video_id: str, started_at: datetime) -> WriteOutcome:
        """Move the record to ``processing``."""
        status = ProcessingStatus(status=ProcessingState.PROCESSING, started_at=started_at)
        return self._write(
            video_id,
            status,
            update_expr="SET processingStatus = :ps, updatedAt = :updated_at",
            values={},
        )

    def mark_completed(
        self,
        video_id: str,
        started_at: datetime,
        variants: list[VideoVariant],
        poster_url: str,
        poster_storage_path: str,
        duration: float | None,
    ) -> WriteOutcome:
        """Atomically set ``completed`` with variants, poster and duration."""
        status = ProcessingStatus(
            status=ProcessingState.COMPLETED,
            started_at=started_at,
            completed_at=utc_now(),
        )
        update_expr = (
            "SET processingStatus = :ps, updatedAt = :updated_at, "
            "variants = :variants, posterURL = :poster_url, "
            "posterStoragePath = :poster_path"
        )
        values: dict[str, Any] = {
            ":variants": [v.to_document() for v in variants],
            ":poster_url": poster_url,
            ":poster_path": poster_storage_path,
        }
        if duration is not None:
            update_expr += ", #duration = :duration"
            values[":duration"] = duration

        return self._write(
            video_id,
            status,
            update_expr=update_expr,
            values=values,
            extra_names={"#duration": "duration"} if duration is not None else None,
        )

    def mark_failed(self, video_id: str, started_at: datetime | None, error: str) -> WriteOutcome:
        """Set ``failed`` with a readable error; variants are left untouched."""
        status = ProcessingStatus(
            status=ProcessingState.FAILED,
            started_at=started_at,
            completed_at=utc_now(),
            error=error,
        )
        return self._write(
            video_id,
            status,
            update_expr="SET processingStatus = :ps, updatedAt = :updated_at",
            values={},
        )

    def get_record(self, video_id: str) -> VideoRecord | None:
        """Read a record (used by tests and diagnostics)."""
        response = self.table.get_item(Key={"id": video_id}, ConsistentRead=True)
        item = response.get("Item")
        return VideoRecord.from_item(item) if item else None

    def _write(
        self,
        video_id: str,
        status: ProcessingStatus,
        update_expr: str,
        values: dict[str, Any],
        extra_names: dict[str, str] | None = None,
    ) -> WriteOutcome:
        expr_values = {
            ":ps": status.to_document(),
            ":updated_at": utc_now().isoformat(),
            ":pending": ProcessingState.PENDING.value,
            ":processing": ProcessingState.PROCESSING.value,
            **values,
        }
        expr_names = {"#status": "status", **(extra_names or {})}

        try:
            self.table.update_item(
                Key={"id": video_id},
                UpdateExpression=update_expr,
                ConditionExpression=_OPEN_CONDITION,
                ExpressionAttributeNames=expr_names,
                ExpressionAttributeValues=to_dynamo(expr_values),
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                logger.warning(
                    "Status write rejected: record already terminal",
                    extra={"video_id": video_id, "status": status.status.value},
                )
                return WriteOutcome.REJECTED
            logger.error(
                "Could not update processing status",
                extra={"video_id": video_id, "status": status.status.value, "error": str(e)},
            )
            return WriteOutcome.FAILED
        except AWS_ERRORS as e:
            logger.error(
                "Could not update processing status",
                extra={"video_id": video_id, "status": status.status.value, "error": str(e)},
            )
            return WriteOutcome.FAILED

        logger.info(
            "Updated processing status",
            extra={"video_id": video_id, "status": status.status.value},
        )
        return WriteOutcome.WRITTEN
