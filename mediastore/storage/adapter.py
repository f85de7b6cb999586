"""
Storage adapter: the public face of the media store.

The host's upload pipeline calls save/exists/delete/read, and its HTTP
router mounts the handler returned by serve(). Everything else (key
derivation, store access, variant rendering) is delegated to the
collaborators the adapter is built from.

Upload flow:
1. Pick the directory (explicit, or <prefix>/<YYYY>/<MM>)
2. Probe the store for a free filename (name.jpg, name-1.jpg, ...)
3. Upload the original and, at the same time, render and upload the
   WebP size ladder
4. Return the public URL of the original

Only step 3's primary upload decides whether save() succeeds. Variant
failures are logged as warnings and never reach the caller.
"""

import asyncio
import logging
import re
from typing import Awaitable, Callable, Optional

from starlette.requests import Request
from starlette.responses import Response

from ..config.adapter import AdapterConfig
from ..core import paths
from ..core.errors import (
    DomainMismatchError,
    ObjectNotFoundError,
    StorageError,
    StoreTransportError,
)
from ..core.models import StoredObject, UploadRequest, Variant
from ..core.variants import VariantGenerator, is_resizable
from ..infrastructure.imaging.resizer import PillowImageResizer
from ..infrastructure.storage.client import ObjectStoreClient, create_object_store_client
from .relay import RelayResponse, StreamRelay

logger = logging.getLogger(__name__)

ServeHandler = Callable[[Request], Awaitable[Response]]

_TRAILING_SEPARATOR = re.compile(r"[/\\]$")


class StorageAdapter:
    """
    Single-bucket media storage.

    All fields are fixed at construction, so one instance can serve any
    number of concurrent requests without locking.
    """

    def __init__(
        self,
        config: AdapterConfig,
        client: ObjectStoreClient,
        variants: VariantGenerator,
    ) -> None:
        self._config = config
        self._client = client
        self._variants = variants

    @property
    def config(self) -> AdapterConfig:
        return self._config

    @property
    def asset_host(self) -> str:
        return self._config.asset_host

    def url_for(self, key: str) -> str:
        """Public URL of a stored key."""
        return f"{self._config.asset_host}/{paths.normalize_key(key)}"

    def default_target_dir(self) -> str:
        return paths.target_dir(self._config.path_prefix)

    # -----------------------------------------------------------------------
    # Upload
    # -----------------------------------------------------------------------

    async def save(self, upload: UploadRequest, target_dir: Optional[str] = None) -> str:
        """
        Store an upload and return its public URL.

        The primary upload and the variant pipeline run concurrently. If
        the primary upload fails its StorageError propagates; the variant
        pipeline keeps running detached and only logs its own outcome.
        """
        directory = target_dir or self.default_target_dir()
        key = await paths.unique_filename(upload.name, directory, self._probe)
        data = await upload.load()

        await asyncio.gather(
            self._client.put_object(
                key,
                data,
                content_type=upload.content_type,
                cache_control=self._config.cache_control,
                acl=self._config.acl,
            ),
            self._save_variants(data, key, upload.content_type),
        )

        url = self.url_for(key)
        logger.info(
            "Saved upload",
            extra={"key": key, "content_type": upload.content_type, "size_bytes": len(data)}
        )
        return url

    async def _save_variants(self, data: bytes, key: str, content_type: str) -> list[str]:
        """
        Render and upload every width of the ladder.

        Never raises (cancellation aside): each width renders and uploads
        in its own task, and failures are logged one by one.
        """
        if not self._config.image_sizes or not is_resizable(content_type):
            logger.debug(
                "Skipping image variants",
                extra={"key": key, "content_type": content_type}
            )
            return []

        directory, base_name = self._variants.split_key(key)
        try:
            results = await self._variants.generate(
                data,
                base_name,
                directory,
                self._config.image_sizes,
                publish=self._put_variant,
            )
        except Exception as e:
            logger.warning("Error saving image variants", extra={"key": key, "error": str(e)})
            return []

        urls: list[str] = []
        for result in results:
            if result.ok:
                urls.append(self.url_for(result.variant.key))
            else:
                logger.warning(
                    "Error saving image variant",
                    extra={"key": result.target.key, "width": result.target.width, "error": str(result.error)}
                )

        if len(urls) < len(results):
            logger.warning(
                "Some image variants were not saved",
                extra={"key": key, "saved": len(urls), "failed": len(results) - len(urls)}
            )
        return urls

    async def _put_variant(self, variant: Variant) -> None:
        await self._client.put_object(
            variant.key,
            variant.data,
            content_type=variant.content_type,
            cache_control=self._config.cache_control,
            acl=self._config.acl,
        )

    # -----------------------------------------------------------------------
    # Existence and deletion
    # -----------------------------------------------------------------------

    async def _probe(self, key: str) -> bool:
        """True if key exists; only a not-found answer counts as free."""
        try:
            stored = await self._fetch(key)
        except ObjectNotFoundError:
            return False
        await stored.aclose()
        return True

    async def exists(self, file_name: str, target_dir: Optional[str] = None) -> bool:
        """
        Whether an object exists. Any failure reads as False.

        This issues a full GET (the body is released right away), so it
        costs a request round trip on every call.
        """
        key = paths.join_key(target_dir, file_name) if target_dir else paths.normalize_key(file_name)
        try:
            return await self._probe(key)
        except Exception as e:
            logger.debug("Existence probe failed", extra={"key": key, "error": str(e)})
            return False

    async def delete(self, file_name: str, target_dir: Optional[str] = None) -> bool:
        """Best-effort delete. Returns False instead of raising on any failure."""
        directory = target_dir or self.default_target_dir()
        key = paths.join_key(directory, file_name)
        try:
            await self._client.delete_object(key)
        except Exception as e:
            logger.warning("Delete failed", extra={"key": key, "error": str(e)})
            return False

        logger.info("Deleted object", extra={"key": key})
        return True

    # -----------------------------------------------------------------------
    # Read and serve
    # -----------------------------------------------------------------------

    async def _fetch(self, key: str) -> StoredObject:
        try:
            return await self._client.get_object(key)
        except StorageError:
            raise
        except Exception as e:
            raise StoreTransportError(f"Download failed: {e}", key=key, cause=e) from e

    def key_for_url(self, url: str) -> str:
        """Bucket key behind one of our public URLs; DomainMismatchError otherwise."""
        path = _TRAILING_SEPARATOR.sub("", url or "")
        host = self._config.asset_host
        remainder = path[len(host):]
        if not path.startswith(host) or (remainder and not remainder.startswith("/")):
            raise DomainMismatchError(f"{path} is not stored in this bucket", key=path)
        return paths.normalize_key(remainder)

    async def read(self, path: str) -> bytes:
        """
        Fetch one of our objects by public URL and return all of its bytes.

        The whole object is buffered in memory; use serve() for large files.
        """
        key = self.key_for_url(path)
        stored = await self._fetch(key)
        async with stored:
            data = await stored.read_all()

        logger.debug("Read object", extra={"key": key, "size_bytes": len(data)})
        return data

    def serve(self) -> ServeHandler:
        """
        Request handler that streams stored objects.

        The key is `<path_prefix><request path>`, where the request path is
        relative to the mount point. The object is fetched before the
        response exists, so a missing key raises ObjectNotFoundError (any
        other store failure StoreTransportError) without a single header or
        byte sent; the host's exception handlers render those.
        """
        prefix = paths.strip_trailing_slash(self._config.path_prefix)

        async def serve_object(request: Request) -> Response:
            relative = request.path_params.get("path")
            request_path = f"/{relative}" if relative is not None else request.url.path
            key = paths.normalize_key(prefix + request_path)

            stored = await self._fetch(key)
            logger.debug("Serving object", extra={"key": key})
            return RelayResponse(StreamRelay(stored))

        return serve_object

    async def close(self) -> None:
        await self._client.close()


def create_storage_adapter(config: AdapterConfig, mock_mode: bool = False) -> StorageAdapter:
    """
    Build an adapter with the default collaborators.

    Args:
        config: Resolved adapter configuration
        mock_mode: If True, store objects in memory instead of S3
    """
    client = create_object_store_client(config=config, mock_mode=mock_mode)
    variants = VariantGenerator(PillowImageResizer())
    return StorageAdapter(config, client, variants)
