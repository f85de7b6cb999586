"""
Object storage client for uploaded media.

Supports AWS S3 and S3-compatible services (MinIO, R2, Spaces) via boto3,
with a mock mode for local development.

Mock mode stores objects in memory, enabling API testing without
provisioning an actual bucket.
"""

import asyncio
import logging
from typing import Optional, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from ...config.adapter import AdapterConfig
from ...core.errors import ObjectNotFoundError, StoreTransportError
from ...core.models import CannedACL, ObjectMetadata, StoredObject

logger = logging.getLogger(__name__)

# Bytes pulled from the store per read while streaming a body
CHUNK_SIZE = 64 * 1024

_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}


class ObjectStoreClient(Protocol):
    """
    Protocol for object storage operations.

    Using a protocol means tests can provide mocks and we can
    swap storage backends without changing the adapter.
    """

    async def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_control: str,
        acl: CannedACL,
    ) -> None:
        """Store bytes under key, overwriting any existing object."""
        ...

    async def get_object(self, key: str) -> StoredObject:
        """Open an object for streaming. Raises ObjectNotFoundError if absent."""
        ...

    async def delete_object(self, key: str) -> None:
        """Delete key. Deleting a missing key is not an error."""
        ...

    async def close(self) -> None:
        ...


class S3ObjectBody:
    """Async view over a botocore StreamingBody, read chunk by chunk off the loop."""

    def __init__(self, key: str, stream, chunk_size: int = CHUNK_SIZE) -> None:
        self._key = key
        self._stream = stream
        self._chunk_size = chunk_size
        self._closed = False

    def __aiter__(self) -> "S3ObjectBody":
        return self

    async def __anext__(self) -> bytes:
        if self._closed:
            raise StopAsyncIteration
        try:
            chunk = await asyncio.to_thread(self._stream.read, self._chunk_size)
        except Exception as e:
            await self.aclose()
            raise StoreTransportError(f"Reading {self._key} failed: {e}", key=self._key, cause=e) from e
        if not chunk:
            await self.aclose()
            raise StopAsyncIteration
        return chunk

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stream.close()


def _close_abandoned_response(request: "asyncio.Future[dict]") -> None:
    """Close the body of a GetObject response nobody is waiting for anymore."""
    if request.cancelled() or request.exception() is not None:
        return
    body = request.result().get("Body")
    if body is not None:
        body.close()
        logger.debug("Closed body of cancelled download")


class S3ObjectStoreClient:
    """
    S3 object storage client.

    boto3 is synchronous, so every call runs on a worker thread via
    asyncio.to_thread and the event loop is never blocked on the network.
    Retries and timeouts are left to botocore's transport configuration.
    """

    def __init__(self, config: AdapterConfig) -> None:
        """
        Initialize the S3 client with boto3.

        Credentials are passed only when both halves are configured;
        otherwise boto3's default provider chain (env, shared config,
        instance/IRSA roles) is used.
        """
        import boto3
        from botocore.config import Config

        self._config = config

        boto_config = Config(
            signature_version="s3v4",
            s3={"addressing_style": "path" if config.force_path_style else "auto"},
        )

        options = {
            "region_name": config.region,
            "config": boto_config,
        }
        if config.has_credentials:
            options["aws_access_key_id"] = config.access_key_id
            options["aws_secret_access_key"] = config.secret_access_key
        if config.endpoint:
            options["endpoint_url"] = config.endpoint

        self._s3_client = boto3.client("s3", **options)

        logger.info(
            "Initialized S3 storage client",
            extra={
                "bucket": config.bucket,
                "region": config.region,
                "endpoint": config.endpoint,
                "force_path_style": config.force_path_style,
            }
        )

    def _translate(self, error: Exception, key: str, action: str) -> Exception:
        if isinstance(error, ClientError):
            code = str(error.response.get("Error", {}).get("Code", ""))
            status_code = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            if code in _NOT_FOUND_CODES or status_code == 404:
                return ObjectNotFoundError("File not found", key=key, cause=error)

        logger.error(
            f"Failed to {action} object",
            extra={"bucket": self._config.bucket, "key": key, "error": str(error)}
        )
        return StoreTransportError(f"{action.capitalize()} failed: {error}", key=key, cause=error)

    async def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_control: str,
        acl: CannedACL,
    ) -> None:
        try:
            await asyncio.to_thread(
                self._s3_client.put_object,
                Bucket=self._config.bucket,
                Key=key,
                Body=data,
                ACL=acl.value,
                CacheControl=cache_control,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, key, "upload") from e

        logger.debug(
            "Uploaded object",
            extra={"key": key, "content_type": content_type, "size_bytes": len(data)}
        )

    async def get_object(self, key: str) -> StoredObject:
        request = asyncio.ensure_future(asyncio.to_thread(
            self._s3_client.get_object,
            Bucket=self._config.bucket,
            Key=key,
        ))
        try:
            response = await asyncio.shield(request)
        except asyncio.CancelledError:
            # The worker thread cannot be interrupted; close what it returns
            request.add_done_callback(_close_abandoned_response)
            raise
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, key, "download") from e

        metadata = ObjectMetadata(
            accept_ranges=response.get("AcceptRanges"),
            cache_control=response.get("CacheControl"),
            content_disposition=response.get("ContentDisposition"),
            content_encoding=response.get("ContentEncoding"),
            content_language=response.get("ContentLanguage"),
            content_length=response.get("ContentLength"),
            content_range=response.get("ContentRange"),
            content_type=response.get("ContentType"),
            etag=response.get("ETag"),
        )
        return StoredObject(key=key, metadata=metadata, body=S3ObjectBody(key, response["Body"]))

    async def delete_object(self, key: str) -> None:
        try:
            await asyncio.to_thread(
                self._s3_client.delete_object,
                Bucket=self._config.bucket,
                Key=key,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, key, "delete") from e

        logger.debug("Deleted object", extra={"key": key})

    async def close(self) -> None:
        await asyncio.to_thread(self._s3_client.close)


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MemoryObjectBody:
    """Chunked async iterator over an in-memory payload."""

    def __init__(self, data: bytes, chunk_size: int = CHUNK_SIZE) -> None:
        self._data = data
        self._chunk_size = chunk_size
        self._offset = 0
        self.closed = False

    def __aiter__(self) -> "MemoryObjectBody":
        return self

    async def __anext__(self) -> bytes:
        if self.closed or self._offset >= len(self._data):
            self.closed = True
            raise StopAsyncIteration
        chunk = self._data[self._offset:self._offset + self._chunk_size]
        self._offset += len(chunk)
        await asyncio.sleep(0)
        return chunk

    async def aclose(self) -> None:
        self.closed = True


class MockObjectStoreClient:
    """
    In-memory object store for local development and tests.

    Objects live in a dictionary keyed by object key. Every call is
    recorded in `requests` as (operation, key) so tests can assert on
    store traffic.

    Not suitable for production.
    """

    def __init__(self, chunk_size: int = CHUNK_SIZE) -> None:
        self._objects: dict[str, tuple[bytes, ObjectMetadata]] = {}
        self._chunk_size = chunk_size
        self.requests: list[tuple[str, str]] = []
        logger.info("Initialized mock storage client (in-memory)")

    def __contains__(self, key: str) -> bool:
        return key in self._objects

    def keys(self) -> list[str]:
        return sorted(self._objects)

    def data(self, key: str) -> bytes:
        return self._objects[key][0]

    def metadata(self, key: str) -> ObjectMetadata:
        return self._objects[key][1]

    async def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_control: str,
        acl: CannedACL,
    ) -> None:
        self.requests.append(("put", key))
        metadata = ObjectMetadata(
            accept_ranges="bytes",
            cache_control=cache_control,
            content_length=len(data),
            content_type=content_type,
            etag=f'"{len(self._objects):08x}{len(data):08x}"',
        )
        self._objects[key] = (bytes(data), metadata)

        logger.debug(
            "Stored object in mock storage",
            extra={"key": key, "size_bytes": len(data), "acl": acl.value}
        )

    async def get_object(self, key: str) -> StoredObject:
        self.requests.append(("get", key))
        if key not in self._objects:
            raise ObjectNotFoundError("File not found", key=key)

        data, metadata = self._objects[key]
        return StoredObject(key=key, metadata=metadata, body=MemoryObjectBody(data, self._chunk_size))

    async def delete_object(self, key: str) -> None:
        self.requests.append(("delete", key))
        self._objects.pop(key, None)

    async def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_object_store_client(
    config: Optional[AdapterConfig] = None,
    mock_mode: bool = False,
) -> ObjectStoreClient:
    """
    Create storage client based on configuration.

    Args:
        config: Adapter configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        ObjectStoreClient implementation (S3 or Mock)
    """
    if mock_mode:
        return MockObjectStoreClient()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3ObjectStoreClient(config)
