"""Per-video processing leases using DynamoDB.

Storage notifications are delivered at least once, so the same upload can
start two overlapping jobs. Before doing any work a job takes a lease on
its video id with a conditional write; a second delivery finds the lease
held and is skipped.

Leases expire after ``LEASE_TTL_SECONDS`` so a job killed by the host does
not block a later retry forever. The table's TTL attribute is
``expires_at`` so DynamoDB also removes stale items on its own.
"""

import time
from datetime import datetime, timezone
from typing import Any

from aws_lambda_powertools import Logger
from botocore.exceptions import ClientError

from ..shared.aws_clients import AWS_ERRORS, get_dynamodb_resource
from ..shared.config import Settings
from ..shared.exceptions import LeaseError

logger = Logger(service="job-lease")


class JobLease:
    """Acquire and release processing leases keyed by video id."""

    def __init__(self, settings: Settings, table: Any | None = None) -> None:
        self.ttl_seconds = settings.lease_ttl_seconds
        self.table = table or get_dynamodb_resource().Table(settings.lease_table)

    def acquire(self, video_id: str, holder: str) -> bool:
        """Take the lease for a video id.

        Args:
            video_id: Video being processed
            holder: Unique id of this invocation (e.g. the Lambda request id)

        Returns:
            True if the lease was taken, False if another job holds it

        Raises:
            LeaseError: If the lease table cannot be written
        """
        now = int(time.time())

        try:
            # Conditional put - only succeeds if no live lease exists
            self.table.put_item(
                Item={
                    "video_id": video_id,
                    "holder": holder,
                    "acquired_at": datetime.now(timezone.utc).isoformat(),
                    "expires_at": now + self.ttl_seconds,
                },
                ConditionExpression="attribute_not_exists(video_id) OR expires_at < :now",
                ExpressionAttributeValues={":now": now},
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                logger.warning(
                    "Processing lease already held",
                    extra={"video_id": video_id, "holder": holder},
                )
                return False
            raise LeaseError(
                f"Failed to acquire processing lease: {e}",
                {"video_id": video_id, "error": str(e)},
            )
        except AWS_ERRORS as e:
            raise LeaseError(
                f"Failed to acquire processing lease: {e}",
                {"video_id": video_id, "error": str(e)},
            )

        logger.info("Acquired processing lease", extra={"video_id": video_id, "holder": holder})
        return True

    def release(self, video_id: str, holder: str) -> bool:
        """Release a lease held by ``holder``.

        Returns:
            True if released, False if it was not ours or the delete failed
        """
        try:
            self.table.delete_item(
                Key={"video_id": video_id},
                ConditionExpression="holder = :holder",
                ExpressionAttributeValues={":holder": holder},
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                logger.warning(
                    "Processing lease no longer held by this job",
                    extra={"video_id": video_id, "holder": holder},
                )
                return False
            logger.error(
                "Failed to release processing lease",
                extra={"video_id": video_id, "error": str(e)},
            )
            return False
        except AWS_ERRORS as e:
            logger.error(
                "Failed to release processing lease",
                extra={"video_id": video_id, "error": str(e)},
            )
            return False

        logger.info("Released processing lease", extra={"video_id": video_id})
        return True
