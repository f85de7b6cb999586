"""
Media storage adapter.

StorageAdapter is the composition root: it combines the object store
client, the variant generator and key derivation into save/exists/
delete/read/serve.
"""

from .adapter import StorageAdapter, create_storage_adapter
from .relay import RelayResponse, StreamRelay, headers_from_metadata

__all__ = [
    "RelayResponse",
    "StorageAdapter",
    "StreamRelay",
    "create_storage_adapter",
    "headers_from_metadata",
]
