"""
Core storage logic.

This package is framework-agnostic: it doesn't import boto3, Pillow or
FastAPI. Key derivation, the error taxonomy and variant planning can be
tested in isolation and reused behind any object store.
"""

from .errors import (
    ConfigError,
    DomainMismatchError,
    ObjectNotFoundError,
    StorageError,
    StorageErrorKind,
    StoreTransportError,
    UniqueNameExhaustedError,
    VariantGenerationError,
)
from .models import (
    CannedACL,
    ObjectMetadata,
    StoredObject,
    UploadRequest,
    Variant,
    VariantResult,
    VariantTarget,
)
from .variants import ImageResizer, VariantGenerator

__all__ = [
    "CannedACL",
    "ConfigError",
    "DomainMismatchError",
    "ImageResizer",
    "ObjectMetadata",
    "ObjectNotFoundError",
    "StorageError",
    "StorageErrorKind",
    "StoreTransportError",
    "StoredObject",
    "UniqueNameExhaustedError",
    "UploadRequest",
    "Variant",
    "VariantGenerationError",
    "VariantGenerator",
    "VariantResult",
    "VariantTarget",
]
