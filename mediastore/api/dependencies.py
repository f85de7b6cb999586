"""
FastAPI dependency injection.

Dependencies provide the settings and the storage adapter to route
handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- The adapter can be swapped for one over an in-memory store in tests
- Configuration is centralized

The adapter is built once by the application factory and kept on
app.state; it holds no per-request state, so sharing it is safe.
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from ..config.settings import Settings, get_adapter_config, get_settings
from ..storage.adapter import StorageAdapter, create_storage_adapter

logger = logging.getLogger(__name__)


def build_storage_adapter(settings: Settings) -> StorageAdapter:
    """
    Create the storage adapter for this process.

    Returns an adapter over S3, or over the in-memory store when
    storage_mock_mode is set. Raises ConfigError if no bucket is
    configured.
    """
    config = get_adapter_config(settings)
    adapter = create_storage_adapter(config, mock_mode=settings.storage_mock_mode)

    logger.info(
        "Created storage adapter",
        extra={
            "bucket": config.bucket,
            "asset_host": config.asset_host,
            "path_prefix": config.path_prefix,
            "mock_mode": settings.storage_mock_mode,
        }
    )
    return adapter


def get_storage_adapter(request: Request) -> StorageAdapter:
    """Provide the application's storage adapter."""
    adapter = getattr(request.app.state, "storage_adapter", None)
    if adapter is None:
        logger.error("Storage adapter requested before application startup")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage is not configured",
        )
    return adapter


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

StorageAdapterDep = Annotated[StorageAdapter, Depends(get_storage_adapter)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
