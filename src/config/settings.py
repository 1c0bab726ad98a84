"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Exactly one storage backend is selected here per process.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Vaultstream API"
    api_version: str = "v1"

    # Authentication
    jwt_secret: str = Field(
        default="",
        description="Secret for validating bearer tokens. Also signs local asset URLs unless URL_SIGNING_SECRET is set."
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="Algorithm used to sign bearer tokens"
    )

    # Storage selection
    storage_backend: Literal["local", "s3"] = Field(
        default="local",
        description="Which storage backend this instance uses: 'local' disk or an 's3' compatible object store"
    )

    # Local storage
    assets_root: str = Field(
        default="./assets",
        description="Directory that holds files for the local backend"
    )
    assets_base_url: str = Field(
        default="http://localhost:8091/assets",
        description="URL prefix for signed local asset URLs. Must point at this service's /assets route."
    )
    url_signing_secret: str = Field(
        default="",
        description="HMAC key for signed local asset URLs. Falls back to JWT_SECRET."
    )

    # S3-compatible storage
    s3_bucket: str = Field(
        default="",
        description="Bucket for uploaded videos and thumbnails"
    )
    s3_region: str = Field(
        default="",
        description="Bucket region"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom endpoint for S3-compatible providers (R2, MinIO). Leave unset for AWS."
    )
    s3_access_key_id: str = Field(
        default="",
        description="Access key ID. Leave unset to use the default AWS credential chain."
    )
    s3_secret_access_key: str = Field(
        default="",
        description="Secret access key"
    )
    storage_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Upload attempts before an object store failure is surfaced"
    )
    storage_retry_base_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Base retry delay. Attempt n waits n times this before retrying."
    )
    presigned_url_ttl_seconds: int = Field(
        default=900,
        gt=0,
        description="Lifetime of signed/presigned URLs handed to clients (15 minutes)"
    )

    # Upload limits
    max_video_upload_bytes: int = Field(
        default=1 << 30,
        description="Maximum video upload size. Bounds how long staging can block a worker."
    )
    max_thumbnail_upload_bytes: int = Field(
        default=10 << 20,
        description="Maximum thumbnail upload size"
    )

    # Media tools
    ffprobe_path: str = Field(
        default="ffprobe",
        description="Path to ffprobe binary"
    )
    ffmpeg_path: str = Field(
        default="ffmpeg",
        description="Path to ffmpeg binary"
    )
    media_tool_timeout_seconds: float = Field(
        default=300,
        gt=0,
        description="Upper bound for a single ffmpeg run"
    )
    upload_temp_dir: Optional[str] = Field(
        default=None,
        description="Where uploads are staged. System temp dir when unset."
    )

    # Record layer
    database_path: str = Field(
        default="./vaultstream.db",
        description="SQLite database file for video records"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:8091",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def signing_secret(self) -> str:
        """Key for local signed URLs."""
        return self.url_signing_secret or self.jwt_secret

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set for the selected backend.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on which storage backend is active.
        """
        missing = []

        if not self.jwt_secret:
            missing.append("JWT_SECRET")

        if self.storage_backend == "s3":
            if not self.s3_bucket:
                missing.append("S3_BUCKET")
            if not self.s3_region:
                missing.append("S3_REGION")
        elif not self.signing_secret:
            missing.append("URL_SIGNING_SECRET or JWT_SECRET")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
