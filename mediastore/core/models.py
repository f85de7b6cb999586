"""
Domain models for stored media.

These models describe uploads, stored objects and image variants. They
have no dependency on boto3, Pillow or FastAPI, so the path and variant
logic can be exercised without any of them installed.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, Optional, Protocol, Union


class CannedACL(Enum):
    """Canned ACLs accepted by S3-compatible stores."""
    PRIVATE = "private"
    PUBLIC_READ = "public-read"
    PUBLIC_READ_WRITE = "public-read-write"
    AUTHENTICATED_READ = "authenticated-read"
    AWS_EXEC_READ = "aws-exec-read"
    BUCKET_OWNER_READ = "bucket-owner-read"
    BUCKET_OWNER_FULL_CONTROL = "bucket-owner-full-control"


@dataclass
class UploadRequest:
    """
    A single upload handed over by the host.

    Either `path` (a local file the host already spooled) or `data`
    (bytes in memory) must be set, never both.
    """
    name: str
    content_type: str
    path: Optional[Union[str, Path]] = None
    data: Optional[bytes] = None

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Upload name cannot be empty")
        if (self.path is None) == (self.data is None):
            raise ValueError("Exactly one of path or data must be provided")

    async def load(self) -> bytes:
        """Return the upload's bytes, reading the local file off the event loop."""
        if self.data is not None:
            return self.data
        return await asyncio.to_thread(Path(self.path).read_bytes)


@dataclass(frozen=True)
class ObjectMetadata:
    """Content and caching metadata reported by the store on a get."""
    accept_ranges: Optional[str] = None
    cache_control: Optional[str] = None
    content_disposition: Optional[str] = None
    content_encoding: Optional[str] = None
    content_language: Optional[str] = None
    content_length: Optional[int] = None
    content_range: Optional[str] = None
    content_type: Optional[str] = None
    etag: Optional[str] = None


class ObjectBody(Protocol):
    """Byte stream of a fetched object. Must be released with aclose()."""

    def __aiter__(self) -> AsyncIterator[bytes]:
        ...

    async def aclose(self) -> None:
        ...


@dataclass
class StoredObject:
    """
    An object fetched from the store.

    The body holds an open upstream connection until it is exhausted or
    closed, so use it as an async context manager or call aclose().
    """
    key: str
    metadata: ObjectMetadata
    body: ObjectBody

    async def aclose(self) -> None:
        await self.body.aclose()

    async def __aenter__(self) -> "StoredObject":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def read_all(self) -> bytes:
        """Buffer the whole body in memory."""
        chunks: list[bytes] = []
        async for chunk in self.body:
            chunks.append(chunk)
        return b"".join(chunks)


@dataclass(frozen=True)
class VariantTarget:
    """Where one width of the ladder will be stored."""
    width: int
    key: str


@dataclass(frozen=True)
class Variant:
    """A rendered derivative ready for upload."""
    width: int
    key: str
    data: bytes = field(repr=False)
    content_type: str = "image/webp"


@dataclass(frozen=True)
class VariantResult:
    """Outcome of rendering one width; exactly one of variant/error is set."""
    target: VariantTarget
    variant: Optional[Variant] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None
