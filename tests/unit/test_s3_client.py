"""
Unit tests for the boto3-backed object store client.

boto3.client is replaced by a fake, so these tests check how we call
boto3 and how botocore errors are translated, without any network.
"""

import asyncio
import io
import threading

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from mediastore.config.adapter import AdapterConfig
from mediastore.core.errors import ObjectNotFoundError, StoreTransportError
from mediastore.core.models import CannedACL
from mediastore.infrastructure.storage.client import (
    MockObjectStoreClient,
    S3ObjectBody,
    S3ObjectStoreClient,
    create_object_store_client,
)


def client_error(code: str, status: int, operation: str = "GetObject") -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


class FakeS3:
    """Stands in for a boto3 S3 client."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []
        self.objects: dict[str, bytes] = {}
        self.raise_on: dict[str, Exception] = {}
        self.closed = False
        self.bodies: list[io.BytesIO] = []
        self.get_gate: threading.Event | None = None
        self.get_entered = threading.Event()

    def _maybe_raise(self, operation: str) -> None:
        if operation in self.raise_on:
            raise self.raise_on[operation]

    def put_object(self, **kwargs):
        self.calls.append(("put_object", kwargs))
        self._maybe_raise("put_object")
        self.objects[kwargs["Key"]] = kwargs["Body"]
        return {}

    def get_object(self, **kwargs):
        self.calls.append(("get_object", kwargs))
        self._maybe_raise("get_object")
        if self.get_gate is not None:
            self.get_entered.set()
            self.get_gate.wait(5)
        if kwargs["Key"] not in self.objects:
            raise client_error("NoSuchKey", 404)
        data = self.objects[kwargs["Key"]]
        body = io.BytesIO(data)
        self.bodies.append(body)
        return {
            "Body": body,
            "ContentLength": len(data),
            "ContentType": "image/png",
            "ETag": '"etag"',
            "AcceptRanges": "bytes",
        }

    def delete_object(self, **kwargs):
        self.calls.append(("delete_object", kwargs))
        self._maybe_raise("delete_object")
        self.objects.pop(kwargs["Key"], None)
        return {}

    def close(self):
        self.closed = True


@pytest.fixture
def boto_calls(monkeypatch):
    """Capture boto3.client(...) arguments and hand back a FakeS3."""
    captured = {}
    fake = FakeS3()

    def fake_client(service, **kwargs):
        captured["service"] = service
        captured.update(kwargs)
        return fake

    monkeypatch.setattr("boto3.client", fake_client)
    captured["fake"] = fake
    return captured


class TestClientConstruction:

    def test_explicit_credentials_and_endpoint(self, boto_calls):
        S3ObjectStoreClient(AdapterConfig(
            bucket="b",
            region="eu-central-1",
            access_key_id="AKIA",
            secret_access_key="secret",
            endpoint="http://minio:9000",
            force_path_style=True,
        ))

        assert boto_calls["service"] == "s3"
        assert boto_calls["region_name"] == "eu-central-1"
        assert boto_calls["aws_access_key_id"] == "AKIA"
        assert boto_calls["aws_secret_access_key"] == "secret"
        assert boto_calls["endpoint_url"] == "http://minio:9000"
        assert boto_calls["config"].s3 == {"addressing_style": "path"}

    def test_without_credentials_uses_provider_chain(self, boto_calls):
        S3ObjectStoreClient(AdapterConfig(bucket="b", access_key_id="AKIA"))

        assert "aws_access_key_id" not in boto_calls
        assert "aws_secret_access_key" not in boto_calls
        assert "endpoint_url" not in boto_calls
        assert boto_calls["config"].s3 == {"addressing_style": "auto"}


class TestOperations:

    @pytest.mark.asyncio
    async def test_put_passes_object_metadata(self, boto_calls):
        client = S3ObjectStoreClient(AdapterConfig(bucket="b"))

        await client.put_object("a/b.png", b"data", "image/png", "max-age=10", CannedACL.PUBLIC_READ)

        name, kwargs = boto_calls["fake"].calls[0]
        assert name == "put_object"
        assert kwargs == {
            "Bucket": "b",
            "Key": "a/b.png",
            "Body": b"data",
            "ACL": "public-read",
            "CacheControl": "max-age=10",
            "ContentType": "image/png",
        }

    @pytest.mark.asyncio
    async def test_get_streams_body_in_chunks(self, boto_calls):
        boto_calls["fake"].objects["k"] = b"x" * 100
        client = S3ObjectStoreClient(AdapterConfig(bucket="b"))

        stored = await client.get_object("k")
        async with stored:
            data = await stored.read_all()

        assert data == b"x" * 100
        assert stored.metadata.content_length == 100
        assert stored.metadata.content_type == "image/png"
        assert stored.metadata.cache_control is None

    @pytest.mark.asyncio
    async def test_missing_key_is_not_found(self, boto_calls):
        client = S3ObjectStoreClient(AdapterConfig(bucket="b"))

        with pytest.raises(ObjectNotFoundError) as excinfo:
            await client.get_object("missing")

        assert excinfo.value.key == "missing"

    @pytest.mark.asyncio
    async def test_head_style_404_is_not_found(self, boto_calls):
        boto_calls["fake"].raise_on["get_object"] = client_error("404", 404)
        client = S3ObjectStoreClient(AdapterConfig(bucket="b"))

        with pytest.raises(ObjectNotFoundError):
            await client.get_object("k")

    @pytest.mark.asyncio
    async def test_access_denied_is_transport_error(self, boto_calls):
        boto_calls["fake"].raise_on["get_object"] = client_error("AccessDenied", 403)
        client = S3ObjectStoreClient(AdapterConfig(bucket="b"))

        with pytest.raises(StoreTransportError) as excinfo:
            await client.get_object("k")

        assert isinstance(excinfo.value.cause, ClientError)

    @pytest.mark.asyncio
    async def test_connection_failure_is_transport_error(self, boto_calls):
        boto_calls["fake"].raise_on["put_object"] = EndpointConnectionError(endpoint_url="http://minio:9000")
        client = S3ObjectStoreClient(AdapterConfig(bucket="b"))

        with pytest.raises(StoreTransportError):
            await client.put_object("k", b"", "text/plain", "max-age=1", CannedACL.PRIVATE)

    @pytest.mark.asyncio
    async def test_delete_and_close(self, boto_calls):
        client = S3ObjectStoreClient(AdapterConfig(bucket="b"))

        await client.delete_object("k")
        await client.close()

        assert boto_calls["fake"].calls == [("delete_object", {"Bucket": "b", "Key": "k"})]
        assert boto_calls["fake"].closed


class BrokenStream:
    """StreamingBody stand-in whose reads fail mid-download."""

    def __init__(self) -> None:
        self.closed = False

    def read(self, size):
        raise OSError("connection reset by peer")

    def close(self):
        self.closed = True


class TestStreamRelease:
    """The upstream body is closed on every way out."""

    @pytest.mark.asyncio
    async def test_cancelled_download_closes_body_once_thread_returns(self, boto_calls):
        fake = boto_calls["fake"]
        fake.objects["k"] = b"x" * 10
        fake.get_gate = threading.Event()
        client = S3ObjectStoreClient(AdapterConfig(bucket="b"))

        task = asyncio.create_task(client.get_object("k"))
        assert await asyncio.to_thread(fake.get_entered.wait, 5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        fake.get_gate.set()
        for _ in range(200):
            if fake.bodies and fake.bodies[0].closed:
                break
            await asyncio.sleep(0.01)

        assert fake.bodies[0].closed

    @pytest.mark.asyncio
    async def test_cancelled_download_that_fails_leaves_nothing_to_close(self, boto_calls):
        fake = boto_calls["fake"]
        fake.get_gate = threading.Event()
        client = S3ObjectStoreClient(AdapterConfig(bucket="b"))

        task = asyncio.create_task(client.get_object("missing"))
        assert await asyncio.to_thread(fake.get_entered.wait, 5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        fake.get_gate.set()
        await asyncio.sleep(0.05)
        assert fake.bodies == []

    @pytest.mark.asyncio
    async def test_read_failure_becomes_transport_error_and_closes(self):
        stream = BrokenStream()
        body = S3ObjectBody("k", stream)

        with pytest.raises(StoreTransportError) as excinfo:
            await body.__anext__()

        assert excinfo.value.key == "k"
        assert isinstance(excinfo.value.cause, OSError)
        assert stream.closed

    @pytest.mark.asyncio
    async def test_exhausted_body_closes_stream(self):
        stream = io.BytesIO(b"abc")
        body = S3ObjectBody("k", stream, chunk_size=2)

        chunks = [chunk async for chunk in body]

        assert chunks == [b"ab", b"c"]
        assert stream.closed


class TestFactory:

    def test_mock_mode(self):
        assert isinstance(create_object_store_client(mock_mode=True), MockObjectStoreClient)

    def test_config_required_outside_mock_mode(self):
        with pytest.raises(ValueError):
            create_object_store_client()
