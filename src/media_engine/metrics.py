"""Compression metrics for encoded outputs.

Logged for monitoring only; never written to the video record.
"""

from aws_lambda_powertools import Logger

from ..shared.models import CompressionMetrics

logger = Logger(service="media-engine")


def compute_compression_metrics(
    source_size_bytes: int,
    output_size_bytes: int,
    duration_seconds: float | None,
) -> CompressionMetrics:
    """Compute compression ratio, output bitrate and size reduction.

    Args:
        source_size_bytes: Size of the uploaded source
        output_size_bytes: Size of the encoded output
        duration_seconds: Source duration (bitrate is 0 when unknown)

    Returns:
        CompressionMetrics
    """
    ratio = source_size_bytes / output_size_bytes if output_size_bytes else 0.0
    bitrate_kbps = (
        (output_size_bytes * 8) / (duration_seconds * 1000) if duration_seconds else 0.0
    )
    reduction = (
        (source_size_bytes - output_size_bytes) / source_size_bytes * 100
        if source_size_bytes
        else 0.0
    )
    return CompressionMetrics(
        compression_ratio=ratio,
        bitrate_kbps=bitrate_kbps,
        size_reduction_percent=reduction,
    )


def log_compression_metrics(
    label: str,
    source_size_bytes: int,
    output_size_bytes: int,
    duration_seconds: float | None,
) -> CompressionMetrics:
    """Compute and log compression metrics for one output."""
    result = compute_compression_metrics(source_size_bytes, output_size_bytes, duration_seconds)
    logger.info(
        f"{label} metrics",
        extra={
            "compression_ratio": round(result.compression_ratio, 2),
            "bitrate_kbps": round(result.bitrate_kbps),
            "size_reduction_percent": round(result.size_reduction_percent, 1),
            "source_size_bytes": source_size_bytes,
            "output_size_bytes": output_size_bytes,
        },
    )
    return result
