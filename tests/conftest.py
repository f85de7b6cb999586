"""
Shared fixtures for the test suite.

Everything here runs against the in-memory object store; no test needs
AWS credentials or network access.
"""

import io
from datetime import datetime, timezone

import pytest
from PIL import Image

from mediastore.config.adapter import AdapterConfig
from mediastore.core.variants import VariantGenerator
from mediastore.infrastructure.imaging.resizer import PillowImageResizer
from mediastore.infrastructure.storage.client import MockObjectStoreClient
from mediastore.storage.adapter import StorageAdapter


def make_image_bytes(width: int = 64, height: int = 48, fmt: str = "PNG", mode: str = "RGB") -> bytes:
    """Encode a solid-colour test image."""
    color = (200, 40, 40, 128) if mode == "RGBA" else (200, 40, 40)
    image = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


class ScriptedResizer:
    """Resizer that fails for chosen widths and returns tagged bytes otherwise."""

    def __init__(self, failing_widths=()) -> None:
        self.failing_widths = set(failing_widths)
        self.calls: list[int] = []

    async def resize(self, data: bytes, width: int) -> bytes:
        self.calls.append(width)
        if width in self.failing_widths:
            raise ValueError(f"cannot resize to {width}")
        return f"webp-{width}".encode()


@pytest.fixture
def make_image():
    return make_image_bytes


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes()


@pytest.fixture
def adapter_config() -> AdapterConfig:
    return AdapterConfig(bucket="media-bucket", region="eu-west-1", path_prefix="content/images")


@pytest.fixture
def store() -> MockObjectStoreClient:
    return MockObjectStoreClient(chunk_size=16)


@pytest.fixture
def resizer() -> ScriptedResizer:
    return ScriptedResizer()


@pytest.fixture
def adapter(adapter_config, store, resizer) -> StorageAdapter:
    return StorageAdapter(adapter_config, store, VariantGenerator(resizer))


@pytest.fixture
def pillow_adapter(adapter_config, store) -> StorageAdapter:
    return StorageAdapter(adapter_config, store, VariantGenerator(PillowImageResizer()))


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 5, 17, 12, 0, tzinfo=timezone.utc)
