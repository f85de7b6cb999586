"""
Resized derivatives of uploaded images.

For every width in the size ladder we produce one WebP rendition stored
next to the original:

    2024/05/photo.jpg  ->  2024/05/size/w960/photo.webp

Widths are independent units of work. One width failing (corrupt source,
unsupported format, codec error) is reported in its own VariantResult and
never stops the remaining widths.
"""

import asyncio
import logging
import posixpath
from typing import Awaitable, Callable, Optional, Protocol, Sequence

from .errors import VariantGenerationError
from .models import Variant, VariantResult, VariantTarget
from .paths import join_key

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_SIZES = (1920, 1440, 960, 480, 240)
VARIANT_EXTENSION = "webp"
VARIANT_CONTENT_TYPE = "image/webp"

# Called with each rendered variant, e.g. to upload it
VariantPublisher = Callable[[Variant], Awaitable[None]]

# Formats we do not try to rasterize into WebP derivatives
_NON_RESIZABLE_TYPES = {"image/svg+xml", "image/gif", "image/x-icon", "image/vnd.microsoft.icon"}


class ImageResizer(Protocol):
    """
    Interface for the image codec.

    Given encoded bytes and a target width, return the image re-encoded
    as WebP at that width. Implementations must not share buffers between
    calls.
    """

    async def resize(self, data: bytes, width: int) -> bytes:
        ...


def is_resizable(content_type: str) -> bool:
    """Whether an upload of this content type gets variants."""
    content_type = (content_type or "").split(";")[0].strip().lower()
    return content_type.startswith("image/") and content_type not in _NON_RESIZABLE_TYPES


class VariantGenerator:
    """Plans and renders the derivative ladder for one original."""

    def __init__(self, resizer: ImageResizer) -> None:
        self._resizer = resizer

    @staticmethod
    def variant_key(directory: str, base_name: str, width: int) -> str:
        return join_key(directory, f"size/w{width}/{base_name}.{VARIANT_EXTENSION}")

    @staticmethod
    def split_key(original_key: str) -> tuple[str, str]:
        """(directory, base name without extension) of an original's key."""
        directory = posixpath.dirname(original_key)
        base_name, _ = posixpath.splitext(posixpath.basename(original_key))
        return directory, base_name

    def targets(self, directory: str, base_name: str, widths: Sequence[int]) -> list[VariantTarget]:
        return [
            VariantTarget(width=width, key=self.variant_key(directory, base_name, width))
            for width in widths
        ]

    def plan(self, original_key: str, widths: Sequence[int]) -> list[VariantTarget]:
        """Destination keys for every width, derived from the original's key."""
        directory, base_name = self.split_key(original_key)
        return self.targets(directory, base_name, widths)

    async def render(self, original: bytes, target: VariantTarget) -> Variant:
        """Resize and re-encode one width."""
        try:
            data = await self._resizer.resize(original, target.width)
        except Exception as e:
            raise VariantGenerationError(
                f"Resizing to w{target.width} failed: {e}",
                key=target.key,
                cause=e,
                width=target.width,
            ) from e

        logger.debug(
            "Rendered variant",
            extra={"key": target.key, "width": target.width, "size_bytes": len(data)},
        )
        return Variant(
            width=target.width,
            key=target.key,
            data=data,
            content_type=VARIANT_CONTENT_TYPE,
        )

    async def _produce(
        self,
        original: bytes,
        target: VariantTarget,
        publish: Optional[VariantPublisher],
    ) -> Variant:
        variant = await self.render(original, target)
        if publish is None:
            return variant

        try:
            await publish(variant)
        except Exception as e:
            raise VariantGenerationError(
                f"Publishing w{target.width} failed: {e}",
                key=target.key,
                cause=e,
                width=target.width,
            ) from e
        return variant

    async def generate(
        self,
        original: bytes,
        base_name: str,
        directory: str,
        widths: Sequence[int] = DEFAULT_IMAGE_SIZES,
        publish: Optional[VariantPublisher] = None,
    ) -> list[VariantResult]:
        """
        Render every width concurrently.

        When `publish` is given it is awaited with each rendered variant
        inside that width's own task, so a slow or failing upload of one
        width never holds back another. Results come back in ladder order.
        A failed width (render or publish) carries its
        VariantGenerationError in `error`; nothing is raised.
        """
        targets = self.targets(directory, base_name, widths)
        outcomes = await asyncio.gather(
            *(self._produce(original, target, publish) for target in targets),
            return_exceptions=True,
        )

        results: list[VariantResult] = []
        for target, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                results.append(VariantResult(target=target, error=outcome))
            else:
                results.append(VariantResult(target=target, variant=outcome))
        return results
