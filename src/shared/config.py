"""Environment-aware configuration with validation.

This module provides centralized configuration management using Pydantic Settings.
All environment variables are validated at startup to fail fast on misconfigurations.
"""

import tempfile
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings are cached to avoid repeated parsing.

    Example:
        >>> settings = get_settings()
        >>> print(settings.source_prefix)
        'video-backgrounds'
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    environment: Literal["dev", "staging", "prod"] = Field(
        default="dev",
        description="Deployment environment",
    )
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_REGION",
        description="AWS region for all services",
    )

    # Storage
    storage_bucket: str = Field(
        default="",
        alias="STORAGE_BUCKET",
        description="S3 bucket holding uploaded sources and published variants",
    )
    source_prefix: str = Field(
        default="video-backgrounds",
        alias="SOURCE_PREFIX",
        description="Namespace uploads land under; variants and posters are published beneath it",
    )
    cache_control: str = Field(
        default="public, max-age=31536000",
        alias="CACHE_CONTROL",
        description="Cache-Control header applied to every published artifact",
    )
    public_base_url: str = Field(
        default="",
        alias="PUBLIC_BASE_URL",
        description="Base URL for public links (e.g. a CDN); defaults to the S3 virtual-hosted URL",
    )
    public_read_acl: bool = Field(
        default=True,
        alias="PUBLIC_READ_ACL",
        description="Mark published objects public-read; disable for buckets with ACLs blocked",
    )
    rollback_partial_uploads: bool = Field(
        default=True,
        alias="ROLLBACK_PARTIAL_UPLOADS",
        description="Delete artifacts already uploaded by a job that later fails",
    )

    # DynamoDB
    video_table: str = Field(
        default="video-backgrounds",
        alias="VIDEO_TABLE",
        description="DynamoDB table holding one record per video id",
    )
    lease_table: str = Field(
        default="",
        alias="LEASE_TABLE",
        description="DynamoDB table for per-video processing leases (empty disables leasing)",
    )
    lease_ttl_seconds: int = Field(
        default=600,
        ge=60,
        le=3600,
        alias="LEASE_TTL_SECONDS",
        description="Lease lifetime; must outlive the Lambda timeout",
    )

    # Processing limits
    max_duration_seconds: float = Field(
        default=20.0,
        gt=0,
        le=600,
        alias="MAX_DURATION_SECONDS",
        description="Longest source accepted for transcoding",
    )
    target_height: int = Field(
        default=720,
        ge=144,
        le=2160,
        alias="TARGET_HEIGHT",
        description="Output height of the transcoded variants",
    )
    poster_max_width: int = Field(
        default=1920,
        ge=160,
        le=3840,
        alias="POSTER_MAX_WIDTH",
        description="Poster images are downscaled to at most this width",
    )
    poster_offset_seconds: float = Field(
        default=0.1,
        ge=0.0,
        le=5.0,
        alias="POSTER_OFFSET_SECONDS",
        description="Timestamp the poster frame is sampled at",
    )

    # Media engine
    ffmpeg_path: str = Field(
        default="ffmpeg",
        alias="FFMPEG_PATH",
        description="Path to the ffmpeg binary",
    )
    ffprobe_path: str = Field(
        default="ffprobe",
        alias="FFPROBE_PATH",
        description="Path to the ffprobe binary",
    )
    ffprobe_timeout_seconds: float = Field(
        default=60.0,
        ge=1.0,
        le=300.0,
        alias="FFPROBE_TIMEOUT_SECONDS",
    )
    ffmpeg_timeout_seconds: float = Field(
        default=480.0,
        ge=10.0,
        le=900.0,
        alias="FFMPEG_TIMEOUT_SECONDS",
        description="Per-invocation encode timeout, kept under the Lambda budget",
    )
    scratch_root: str = Field(
        default_factory=tempfile.gettempdir,
        alias="SCRATCH_ROOT",
        description="Directory job scratch directories are created in",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    @field_validator("source_prefix", mode="before")
    @classmethod
    def validate_source_prefix(cls, v: str) -> str:
        """Ensure the source prefix is a bare namespace."""
        if not v or v.startswith("/") or v.endswith("/"):
            raise ValueError("Source prefix must be non-empty without leading or trailing '/'")
        return v

    @field_validator("public_base_url", mode="before")
    @classmethod
    def validate_public_base_url(cls, v: str) -> str:
        """Ensure the public base URL is an http(s) URL."""
        if v and not v.startswith(("https://", "http://")):
            raise ValueError("Public base URL must start with http:// or https://")
        return v.rstrip("/") if v else v

    @property
    def lease_enabled(self) -> bool:
        return bool(self.lease_table)

    @property
    def variants_prefix(self) -> str:
        """Namespace published video variants are written under."""
        return f"{self.source_prefix}/variants"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are loaded once and cached for the lifetime of the process.
    This is safe for Lambda because each invocation gets a fresh process
    or reuses a warm container with the same settings.

    Returns:
        Validated Settings instance

    Raises:
        ValidationError: If required environment variables are missing or invalid
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when environment variables change.
    """
    get_settings.cache_clear()
