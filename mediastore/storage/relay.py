"""
Streaming relay from the object store to an HTTP response.

The relay forwards a fetched object chunk by chunk. Each chunk is handed
to the sink and the next one is only pulled from the store after the sink
has accepted it, so a slow client slows the upstream read instead of
filling memory.

The upstream body is a scoped resource: it is released when the stream
ends, when the sink fails, and when the response is torn down early
(client disconnect, task cancellation).
"""

import logging
from typing import AsyncIterator, Awaitable, Callable

from starlette.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from ..core.models import ObjectMetadata, StoredObject

logger = logging.getLogger(__name__)

_HEADER_FIELDS = (
    ("accept-ranges", "accept_ranges"),
    ("cache-control", "cache_control"),
    ("content-disposition", "content_disposition"),
    ("content-encoding", "content_encoding"),
    ("content-language", "content_language"),
    ("content-length", "content_length"),
    ("content-range", "content_range"),
    ("content-type", "content_type"),
    ("etag", "etag"),
)


def headers_from_metadata(metadata: ObjectMetadata) -> dict[str, str]:
    """Response headers for every metadata field the store reported."""
    headers: dict[str, str] = {}
    for header, attribute in _HEADER_FIELDS:
        value = getattr(metadata, attribute)
        if value:
            headers[header] = str(value)
    return headers


class StreamRelay:
    """Copies one stored object's body to a sink."""

    def __init__(self, stored: StoredObject) -> None:
        self._stored = stored
        self._closed = False
        self.bytes_sent = 0

    @property
    def key(self) -> str:
        return self._stored.key

    @property
    def headers(self) -> dict[str, str]:
        return headers_from_metadata(self._stored.metadata)

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._stored.body:
                self.bytes_sent += len(chunk)
                yield chunk
        finally:
            await self.aclose()

    async def pipe(self, sink: Callable[[bytes], Awaitable[None]]) -> int:
        """Await `sink(chunk)` for every chunk; returns the number of bytes sent."""
        try:
            async for chunk in self._stored.body:
                await sink(chunk)
                self.bytes_sent += len(chunk)
        finally:
            await self.aclose()
        return self.bytes_sent

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._stored.aclose()
        logger.debug(
            "Released object stream",
            extra={"key": self._stored.key, "bytes_sent": self.bytes_sent},
        )


class RelayResponse(StreamingResponse):
    """
    StreamingResponse over a StreamRelay.

    The relay is closed once the ASGI call returns or raises, which also
    covers a disconnect before the first chunk was pulled.
    """

    def __init__(self, relay: StreamRelay, status_code: int = 200) -> None:
        super().__init__(relay, status_code=status_code, headers=relay.headers)
        self.relay = relay

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.relay.aclose()
