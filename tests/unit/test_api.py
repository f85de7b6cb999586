"""
HTTP surface tests.

The application is built in storage mock mode and driven through
httpx's ASGI transport, so uploads, serving and error translation are
exercised end to end without a bucket.
"""

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport

from mediastore.config.adapter import (
    ENV_ACL,
    ENV_ASSET_HOST,
    ENV_BUCKET,
    ENV_ENDPOINT,
    ENV_FORCE_PATH_STYLE,
    ENV_PATH_PREFIX,
    ENV_REGION,
)
from mediastore.config.settings import Settings
from mediastore.main import create_app

HOST = "https://media.s3.amazonaws.com"
DIRECTORY = "content/images/2024/05"


@pytest.fixture
def app(monkeypatch):
    for name in (ENV_REGION, ENV_BUCKET, ENV_ASSET_HOST, ENV_PATH_PREFIX, ENV_ENDPOINT, ENV_FORCE_PATH_STYLE, ENV_ACL):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(
        _env_file=None,
        storage_mock_mode=True,
        storage_bucket="media",
        storage_region="us-east-1",
        storage_path_prefix="content/images",
        max_upload_size_mb=1,
    )
    return create_app(settings)


@pytest_asyncio.fixture
async def client(app):
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


async def upload(client, png_bytes, name="photo.png"):
    return await client.post(
        "/api/v1/media",
        files={"file": (name, png_bytes, "image/png")},
        data={"target_dir": DIRECTORY},
    )


@pytest.mark.asyncio
async def test_upload_returns_public_url(client, png_bytes):
    response = await upload(client, png_bytes)

    assert response.status_code == 201
    assert response.json() == {"url": f"{HOST}/{DIRECTORY}/photo.png"}


@pytest.mark.asyncio
async def test_uploaded_original_is_served_with_store_headers(client, png_bytes):
    await upload(client, png_bytes)

    response = await client.get("/content/images/2024/05/photo.png")

    assert response.status_code == 200
    assert response.content == png_bytes
    assert response.headers["content-type"] == "image/png"
    assert response.headers["cache-control"] == "max-age=2592000"
    assert response.headers["content-length"] == str(len(png_bytes))
    assert "etag" in response.headers


@pytest.mark.asyncio
async def test_variants_are_served_as_webp(client, png_bytes):
    await upload(client, png_bytes)

    response = await client.get("/content/images/2024/05/size/w240/photo.webp")

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/webp"
    assert response.content[:4] == b"RIFF"


@pytest.mark.asyncio
async def test_missing_object_is_404(client):
    response = await client.get("/content/images/2024/05/nope.png")

    assert response.status_code == 404
    assert response.json()["code"] == "STATIC_FILE_NOT_FOUND"


@pytest.mark.asyncio
async def test_second_upload_with_same_name_gets_new_url(client, png_bytes):
    first = await upload(client, png_bytes)
    second = await upload(client, png_bytes)

    assert first.json()["url"].endswith("/photo.png")
    assert second.json()["url"].endswith("/photo-1.png")


@pytest.mark.asyncio
async def test_exists_and_delete(client, png_bytes):
    await upload(client, png_bytes)
    params = {"file_name": "photo.png", "target_dir": DIRECTORY}

    assert (await client.get("/api/v1/media/exists", params=params)).json() == {"exists": True}
    assert (await client.delete("/api/v1/media", params=params)).json() == {"deleted": True}
    assert (await client.get("/api/v1/media/exists", params=params)).json() == {"exists": False}
    assert (await client.get("/content/images/2024/05/photo.png")).status_code == 404


@pytest.mark.asyncio
async def test_oversized_upload_is_rejected(client):
    response = await client.post(
        "/api/v1/media",
        files={"file": ("big.png", b"x" * (1024 * 1024 + 1), "image/png")},
    )

    assert response.status_code == 413


@pytest.mark.asyncio
async def test_empty_upload_is_rejected(client):
    response = await client.post(
        "/api/v1/media",
        files={"file": ("empty.png", b"", "image/png")},
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_health_endpoints(client):
    health = await client.get("/health")
    ready = await client.get("/health/ready")

    assert health.status_code == 200
    assert health.json()["details"]["mock_mode"]["storage"] is True
    assert ready.status_code == 200
    assert ready.json()["status"] == "ready"
