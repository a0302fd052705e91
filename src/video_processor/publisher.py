"""Publishing of encoded artifacts to S3.

Each artifact is uploaded with a one-year Cache-Control directive and
public read access, and resolved to a public URL. Keys uploaded by a job
are remembered so they can be rolled back if the job fails later.
"""

from pathlib import Path
from typing import Any

from aws_lambda_powertools import Logger

from ..shared.aws_clients import AWS_ERRORS, get_error_code, get_s3_client
from ..shared.config import Settings
from ..shared.exceptions import UploadError
from ..shared.models import (
    SourceVideo,
    VideoFormat,
    VideoMetadata,
    VideoQuality,
    VideoVariant,
)

logger = Logger(service="video-processor")


def variant_key(settings: Settings, video_id: str, quality: VideoQuality, fmt: VideoFormat) -> str:
    """Build the storage key for a video variant.

    Example:
        >>> variant_key(settings, "abc123", VideoQuality.Q720P, VideoFormat.WEBM)
        'video-backgrounds/variants/abc123-720p.webm'
    """
    return f"{settings.variants_prefix}/{video_id}-{quality.value}.{fmt.value}"


def poster_key(settings: Settings, video_id: str) -> str:
    """Build the storage key for a poster image."""
    return f"{settings.source_prefix}/{video_id}-poster.jpg"


class Publisher:
    """Uploads one job's artifacts and tracks what it uploaded."""

    def __init__(self, settings: Settings, s3_client: Any | None = None) -> None:
        self.settings = settings
        self.bucket = settings.storage_bucket
        self.s3_client = s3_client or get_s3_client()
        self.uploaded_keys: list[str] = []

    def public_url(self, key: str) -> str:
        """Resolve the public URL for an object key."""
        if self.settings.public_base_url:
            return f"{self.settings.public_base_url}/{key}"
        return f"https://{self.bucket}.s3.{self.settings.aws_region}.amazonaws.com/{key}"

    def publish_source(
        self,
        source: SourceVideo,
        local_path: Path,
        metadata: VideoMetadata,
    ) -> VideoVariant:
        """Expose the uploaded original as the 1080p variant.

        The original object is never re-uploaded or tracked for rollback.

        Raises:
            UploadError: If the object cannot be made public
        """
        if self.settings.public_read_acl:
            try:
                self.s3_client.put_object_acl(
                    Bucket=self.bucket,
                    Key=source.path,
                    ACL="public-read",
                )
            except AWS_ERRORS as e:
                raise UploadError(
                    f"Could not make original public: {e}",
                    {"key": source.path, "aws_error_code": get_error_code(e)},
                )

        return VideoVariant(
            quality=VideoQuality.Q1080P,
            format=VideoFormat.MP4,
            storage_path=source.path,
            download_url=self.public_url(source.path),
            file_size_bytes=local_path.stat().st_size,
            width=metadata.width,
            height=metadata.height,
        )

    def publish_file(self, local_path: Path, key: str, content_type: str) -> str:
        """Upload a local file and return its public URL.

        Args:
            local_path: Scratch file to upload
            key: Destination object key
            content_type: MIME type to store with the object

        Returns:
            Public URL of the uploaded object

        Raises:
            UploadError: If the upload fails
        """
        extra_args = {
            "ContentType": content_type,
            "CacheControl": self.settings.cache_control,
        }
        if self.settings.public_read_acl:
            extra_args["ACL"] = "public-read"

        try:
            # upload_file streams from disk (multipart for large files)
            self.s3_client.upload_file(str(local_path), self.bucket, key, ExtraArgs=extra_args)
        except AWS_ERRORS as e:
            raise UploadError(
                f"Could not upload {key}: {e}",
                {"key": key, "aws_error_code": get_error_code(e)},
            )
        except OSError as e:
            raise UploadError(
                f"Could not read {local_path} for upload: {e}",
                {"key": key},
            )

        self.uploaded_keys.append(key)
        logger.info("Uploaded artifact", extra={"key": key, "content_type": content_type})
        return self.public_url(key)

    def publish_variant(
        self,
        local_path: Path,
        video_id: str,
        quality: VideoQuality,
        fmt: VideoFormat,
        dimensions: tuple[int, int],
    ) -> VideoVariant:
        """Upload an encoded variant under the deterministic variant key."""
        key = variant_key(self.settings, video_id, quality, fmt)
        url = self.publish_file(local_path, key, fmt.content_type)
        width, height = dimensions
        return VideoVariant(
            quality=quality,
            format=fmt,
            storage_path=key,
            download_url=url,
            file_size_bytes=local_path.stat().st_size,
            width=width,
            height=height,
        )

    def publish_poster(self, local_path: Path, video_id: str) -> tuple[str, str]:
        """Upload the poster image.

        Returns:
            (public URL, storage key)
        """
        key = poster_key(self.settings, video_id)
        return self.publish_file(local_path, key, "image/jpeg"), key

    def rollback(self) -> list[str]:
        """Delete every object this publisher uploaded.

        Best effort: failures are logged and the remaining keys are returned.

        Returns:
            Keys that could not be deleted
        """
        if not self.uploaded_keys:
            return []

        keys = list(self.uploaded_keys)
        try:
            response = self.s3_client.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": k} for k in keys], "Quiet": True},
            )
        except AWS_ERRORS as e:
            logger.error(
                "Failed to roll back uploaded artifacts",
                extra={"keys": keys, "error": str(e)},
            )
            return keys

        failed = [err["Key"] for err in response.get("Errors", [])]
        self.uploaded_keys = failed
        logger.warning(
            "Rolled back uploaded artifacts",
            extra={"deleted": [k for k in keys if k not in failed], "failed": failed},
        )
        return failed
