"""AWS client wrappers.

This module provides centralized AWS client management with:
- Automatic retry for transient errors (botocore adaptive mode)
- Consistent configuration across the Lambda and tests
- Cached clients that can be reset between moto-mocked tests
"""

from functools import lru_cache
from typing import Any

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import get_settings

# AWS service configuration with retry
AWS_CONFIG = Config(
    retries={
        "max_attempts": 3,
        "mode": "adaptive",
    },
    connect_timeout=5,
    read_timeout=60,
)

# Exceptions raised by boto3 for service and transport failures.
# The S3 transfer manager wraps upload ClientErrors in S3UploadFailedError.
AWS_ERRORS = (ClientError, BotoCoreError, S3UploadFailedError)


@lru_cache(maxsize=1)
def get_s3_client() -> Any:
    """Get cached S3 client.

    Returns:
        boto3 S3 client configured for the current environment
    """
    settings = get_settings()
    return boto3.client(
        "s3",
        region_name=settings.aws_region,
        config=AWS_CONFIG,
    )


@lru_cache(maxsize=1)
def get_dynamodb_resource() -> Any:
    """Get cached DynamoDB resource (higher-level API).

    Returns:
        boto3 DynamoDB resource for the video and lease tables
    """
    settings = get_settings()
    return boto3.resource(
        "dynamodb",
        region_name=settings.aws_region,
        config=AWS_CONFIG,
    )


def get_error_code(error: Exception) -> str:
    """Extract the service error code from a boto3 exception.

    Args:
        error: Any exception in AWS_ERRORS

    Returns:
        Error code string, or the exception class name for transport errors
    """
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code", "")
    return type(error).__name__


def clear_client_cache() -> None:
    """Clear all cached AWS clients.

    Useful for testing when mocking needs to be reset.
    """
    get_s3_client.cache_clear()
    get_dynamodb_resource.cache_clear()
