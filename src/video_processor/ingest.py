"""Download of the triggering object into scratch space."""

from pathlib import Path
from typing import Any

from aws_lambda_powertools import Logger

from ..shared.aws_clients import AWS_ERRORS, get_error_code, get_s3_client
from ..shared.exceptions import IngestError
from ..shared.models import SourceVideo
from .scratch import ScratchSpace

logger = Logger(service="video-processor")


def download_source(
    bucket: str,
    source: SourceVideo,
    scratch: ScratchSpace,
    s3_client: Any | None = None,
) -> Path:
    """Stream the source object to a local scratch file.

    The destination is registered with the scratch manifest before the
    transfer starts, so a partially written file is cleaned up too.

    Args:
        bucket: S3 bucket holding the upload
        source: Uploaded object
        scratch: Job scratch space
        s3_client: S3 client (defaults to the shared cached client)

    Returns:
        Path to the downloaded file

    Raises:
        IngestError: If the object cannot be read or written locally
    """
    destination = scratch.path(source.file_name)
    s3_client = s3_client or get_s3_client()

    logger.info(
        "Downloading original video",
        extra={"bucket": bucket, "key": source.path, "size_bytes": source.size_bytes},
    )

    try:
        # download_file streams in ranged parts instead of buffering the object
        s3_client.download_file(bucket, source.path, str(destination))
    except AWS_ERRORS as e:
        raise IngestError(
            f"Could not download s3://{bucket}/{source.path}: {e}",
            {"bucket": bucket, "key": source.path, "aws_error_code": get_error_code(e)},
        )
    except OSError as e:
        raise IngestError(
            f"Could not write {destination}: {e}",
            {"bucket": bucket, "key": source.path},
        )

    logger.info(
        f"Downloaded to: {destination}",
        extra={"size_bytes": destination.stat().st_size},
    )
    return destination
