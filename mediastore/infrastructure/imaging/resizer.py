"""
Image resizing service using Pillow.

Each call decodes the source from its own buffer, resizes it to the
requested width (aspect ratio preserved) and encodes it as WebP. Nothing
is shared between calls, so any number of widths and uploads can be
resized at the same time.

Decoding and encoding are CPU-bound and run on a worker thread via
asyncio.to_thread; Pillow releases the GIL for most of that work.
"""

import asyncio
import io
import logging

from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

DEFAULT_WEBP_QUALITY = 80


class PillowImageResizer:
    """Resize-and-reencode capability backed by Pillow."""

    def __init__(self, quality: int = DEFAULT_WEBP_QUALITY) -> None:
        self._quality = quality

    async def resize(self, data: bytes, width: int) -> bytes:
        return await asyncio.to_thread(self._resize_sync, data, width)

    def _resize_sync(self, data: bytes, width: int) -> bytes:
        if width <= 0:
            raise ValueError(f"Width must be positive, got {width}")

        with Image.open(io.BytesIO(data)) as source:
            image = ImageOps.exif_transpose(source)
            if image.mode not in ("RGB", "RGBA"):
                has_alpha = image.mode in ("LA", "PA") or "transparency" in image.info
                image = image.convert("RGBA" if has_alpha else "RGB")

            height = max(1, round(image.height * width / image.width))
            resized = image.resize((width, height), Image.Resampling.LANCZOS)

            output = io.BytesIO()
            resized.save(output, format="WEBP", quality=self._quality)

        logger.debug(
            "Resized image",
            extra={"width": width, "height": height, "size_bytes": output.tell()},
        )
        return output.getvalue()
