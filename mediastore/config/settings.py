"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (or a .env file) with
sensible defaults. Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

The storage_* fields are the adapter's *explicit* configuration. The
adapter-level environment overrides (GHOST_STORAGE_ADAPTER_S3_*,
AWS_DEFAULT_REGION) are applied on top of them by
`resolve_adapter_config`, see `get_adapter_config`.

Mock mode enables local development without a real bucket.
"""

import os
from functools import lru_cache
from typing import Any, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .adapter import AdapterConfig, resolve_adapter_config


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    """

    # API Configuration
    api_title: str = "mediastore"
    api_version: str = "v1"

    # Object Storage Configuration
    storage_access_key_id: str = Field(
        default="",
        description="Access key ID. Leave empty to use the default AWS provider chain."
    )
    storage_secret_access_key: str = Field(
        default="",
        description="Secret access key. Only used together with storage_access_key_id."
    )
    storage_region: str = Field(
        default="us-east-1",
        description="Bucket region. Also selects the default asset host."
    )
    storage_bucket: str = Field(
        default="",
        description="Bucket name. Required unless in mock mode."
    )
    storage_asset_host: Optional[str] = Field(
        default=None,
        description="Public base URL of stored objects. Derived from bucket/region if not set."
    )
    storage_path_prefix: str = Field(
        default="",
        description="Key prefix for every stored object, e.g. 'content/images'."
    )
    storage_endpoint: Optional[str] = Field(
        default=None,
        description="Custom endpoint for S3-compatible services (MinIO, R2, Spaces)."
    )
    storage_force_path_style: bool = Field(
        default=False,
        description="Address objects as host/bucket/key instead of bucket.host/key."
    )
    storage_acl: str = Field(
        default="public-read",
        description="Canned ACL applied to every uploaded object."
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use an in-memory store instead of S3. Enables local dev without a bucket."
    )

    # Serving
    serve_mount: str = Field(
        default="/content/images",
        description="URL path under which stored objects are served."
    )
    max_upload_size_mb: int = Field(
        default=20,
        description="Maximum upload size in MB."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    def explicit_storage_config(self) -> dict[str, Any]:
        """Explicit adapter values, before environment overrides."""
        return {
            "access_key_id": self.storage_access_key_id,
            "secret_access_key": self.storage_secret_access_key,
            "region": self.storage_region,
            "bucket": self.storage_bucket or ("mock-bucket" if self.storage_mock_mode else ""),
            "asset_host": self.storage_asset_host,
            "path_prefix": self.storage_path_prefix,
            "endpoint": self.storage_endpoint,
            "force_path_style": self.storage_force_path_style,
            "acl": self.storage_acl,
        }

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields. The bucket may also come
        from GHOST_STORAGE_ADAPTER_S3_PATH_BUCKET, so this only reports
        what Settings itself knows about.
        """
        missing = []

        if not self.storage_mock_mode and not self.storage_bucket:
            missing.append("STORAGE_BUCKET")

        if bool(self.storage_access_key_id) != bool(self.storage_secret_access_key):
            missing.append("STORAGE_ACCESS_KEY_ID and STORAGE_SECRET_ACCESS_KEY must be set together")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()


def get_adapter_config(settings: Settings) -> AdapterConfig:
    """Resolve the adapter config from settings plus the process environment."""
    return resolve_adapter_config(settings.explicit_storage_config(), dict(os.environ))
