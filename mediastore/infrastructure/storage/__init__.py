"""
Object storage integration for uploaded media.

Supports AWS S3 and S3-compatible services via boto3.
Includes mock mode for local development without credentials.
"""

from .client import (
    MockObjectStoreClient,
    ObjectStoreClient,
    S3ObjectStoreClient,
    create_object_store_client,
)

__all__ = [
    "MockObjectStoreClient",
    "ObjectStoreClient",
    "S3ObjectStoreClient",
    "create_object_store_client",
]
