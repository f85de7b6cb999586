"""
Error taxonomy for the storage adapter.

Every failure the adapter can report belongs to one StorageErrorKind.
The host's error layer switches on the exception class (or on `kind`)
instead of inspecting ad hoc attributes on third-party errors.
"""

from enum import Enum
from typing import Optional


class StorageErrorKind(Enum):
    """Closed set of failure kinds."""
    CONFIG = "config"
    NOT_FOUND = "not_found"
    DOMAIN_MISMATCH = "domain_mismatch"
    TRANSPORT = "transport"
    VARIANT_GENERATION = "variant_generation"
    CAPACITY = "capacity"


class StorageError(Exception):
    """Raised when storage operations fail."""

    kind: StorageErrorKind = StorageErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.key = key
        self.cause = cause

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r}, key={self.key!r})"


class ConfigError(StorageError):
    """Adapter configuration is unusable (missing bucket, unknown ACL)."""
    kind = StorageErrorKind.CONFIG


class ObjectNotFoundError(StorageError):
    """The requested key does not exist in the bucket."""
    kind = StorageErrorKind.NOT_FOUND


class DomainMismatchError(StorageError):
    """A URL or path was handed to an adapter that does not own it."""
    kind = StorageErrorKind.DOMAIN_MISMATCH


class StoreTransportError(StorageError):
    """Network, auth or service failure reported by the object store."""
    kind = StorageErrorKind.TRANSPORT


class VariantGenerationError(StorageError):
    """Resizing or uploading a single variant width failed."""
    kind = StorageErrorKind.VARIANT_GENERATION

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        cause: Optional[BaseException] = None,
        width: Optional[int] = None,
    ) -> None:
        super().__init__(message, key=key, cause=cause)
        self.width = width


class UniqueNameExhaustedError(StorageError):
    """No free filename was found within the allowed number of probes."""
    kind = StorageErrorKind.CAPACITY
