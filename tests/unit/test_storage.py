"""
Unit tests for the storage backends.

The local backend runs against a pytest tmp_path. The S3 backend runs
against a small fake client, so retry behavior can be observed without
a network.
"""

import io
from urllib.parse import parse_qs, urlsplit

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from src.core.media.errors import InvalidReference, IOFailure, NotFound, RemoteFailure
from src.core.media.ports import SignatureVerifier
from src.core.media.signing import SignedURLCodec
from src.infrastructure.storage import (
    LocalStorageBackend,
    S3StorageBackend,
    StorageConfig,
    create_storage_backend,
)


NOW = 1_700_000_000
BASE_URL = "http://localhost:8091/assets"


# ---------------------------------------------------------------------------
# Fixtures and Fakes
# ---------------------------------------------------------------------------

@pytest.fixture
def local_storage(tmp_path):
    return LocalStorageBackend(
        root=str(tmp_path),
        base_url=BASE_URL,
        codec=SignedURLCodec("test-secret", clock=lambda: NOW),
    )


class FakeS3Client:
    """
    Records put_object calls; fails the first `failures` of them.

    Each recorded call notes the body position when the call was made.
    """

    def __init__(self, failures=0, error=None):
        self.failures = failures
        self.error = error or EndpointConnectionError(endpoint_url="https://s3.example.com")
        self.put_calls = []
        self.deleted = []
        self.delete_error = None
        self.head_error = None

    def put_object(self, Bucket, Key, Body, ContentType):
        self.put_calls.append({
            "bucket": Bucket,
            "key": Key,
            "position": Body.tell() if getattr(Body, "seekable", lambda: True)() else None,
            "content_type": ContentType,
        })
        if len(self.put_calls) <= self.failures:
            Body.read()
            raise self.error
        Body.read()
        return {}

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        return (
            f"https://{Params['Bucket']}.s3.example.com/{Params['Key']}"
            f"?op={operation}&X-Amz-Expires={ExpiresIn}"
        )

    def delete_object(self, Bucket, Key):
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append((Bucket, Key))
        return {}

    def head_bucket(self, Bucket):
        if self.head_error is not None:
            raise self.head_error
        return {}


class NonSeekableStream(io.RawIOBase):
    def __init__(self, data):
        self._inner = io.BytesIO(data)

    def readable(self):
        return True

    def seekable(self):
        return False

    def readinto(self, buffer):
        chunk = self._inner.read(len(buffer))
        buffer[:len(chunk)] = chunk
        return len(chunk)


class SeekWithoutSeekableStream:
    """Like SpooledTemporaryFile before 3.11: seek and tell, but no seekable()."""

    def __init__(self, data):
        self._inner = io.BytesIO(data)

    def read(self, size=-1):
        return self._inner.read(size)

    def seek(self, offset, whence=0):
        return self._inner.seek(offset, whence)

    def tell(self):
        return self._inner.tell()


def make_s3(client, sleeps=None, max_attempts=3):
    return S3StorageBackend(
        client=client,
        bucket_name="media-bucket",
        max_attempts=max_attempts,
        retry_base_seconds=1.0,
        sleep=(sleeps.append if sleeps is not None else lambda _: None),
    )


# ---------------------------------------------------------------------------
# Local Backend Tests
# ---------------------------------------------------------------------------

class TestLocalStorageBackend:

    def test_save_writes_file_and_returns_local_reference(self, local_storage, tmp_path):
        ref = local_storage.save("landscape/a.mp4", io.BytesIO(b"video-bytes"), "video/mp4")

        assert ref == "local,landscape/a.mp4"
        assert (tmp_path / "landscape" / "a.mp4").read_bytes() == b"video-bytes"

    def test_save_rejects_traversal(self, local_storage):
        with pytest.raises(InvalidReference):
            local_storage.save("../escape.mp4", io.BytesIO(b"x"), "video/mp4")

    def test_save_surfaces_io_failure(self, tmp_path):
        # a regular file where the root directory should be
        blocker = tmp_path / "root"
        blocker.write_bytes(b"")
        storage = LocalStorageBackend(str(blocker), BASE_URL, SignedURLCodec("s"))

        with pytest.raises(IOFailure):
            storage.save("landscape/a.mp4", io.BytesIO(b"x"), "video/mp4")

    def test_presigned_url_format(self, local_storage):
        url = local_storage.generate_presigned_url("local,portrait/b.mp4", 900)

        parts = urlsplit(url)
        query = parse_qs(parts.query)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == f"{BASE_URL}/portrait/b.mp4"
        assert query["expires"] == [str(NOW + 900)]
        assert len(query["signature"][0]) == 64

    def test_presigned_url_verifies(self, local_storage):
        url = local_storage.generate_presigned_url("local,portrait/b.mp4", 900)
        query = parse_qs(urlsplit(url).query)

        assert local_storage.verify_presigned_url(
            "portrait/b.mp4", query["expires"][0], query["signature"][0]
        )
        assert not local_storage.verify_presigned_url(
            "portrait/c.mp4", query["expires"][0], query["signature"][0]
        )

    def test_presigned_url_rejects_object_store_reference(self, local_storage):
        with pytest.raises(InvalidReference):
            local_storage.generate_presigned_url("media-bucket,portrait/b.mp4", 900)

    def test_delete_removes_file(self, local_storage, tmp_path):
        ref = local_storage.save("other/c.mp4", io.BytesIO(b"x"), "video/mp4")

        local_storage.delete(ref)

        assert not (tmp_path / "other" / "c.mp4").exists()

    def test_delete_missing_file_is_not_found(self, local_storage):
        with pytest.raises(NotFound):
            local_storage.delete("local,other/missing.mp4")

    def test_is_a_signature_verifier(self, local_storage):
        assert isinstance(local_storage, SignatureVerifier)

    def test_ready_when_root_is_writable(self, local_storage):
        local_storage.check_ready()

    def test_not_ready_when_root_is_a_file(self, tmp_path):
        root = tmp_path / "assets"
        root.write_bytes(b"")
        storage = LocalStorageBackend(root=str(root), base_url=BASE_URL, codec=SignedURLCodec("k"))

        with pytest.raises(IOFailure):
            storage.check_ready()


# ---------------------------------------------------------------------------
# S3 Backend Tests
# ---------------------------------------------------------------------------

class TestS3StorageBackend:

    def test_save_returns_bucket_reference(self):
        client = FakeS3Client()
        storage = make_s3(client)

        ref = storage.save("landscape/a.mp4", io.BytesIO(b"data"), "video/mp4")

        assert ref == "media-bucket,landscape/a.mp4"
        assert client.put_calls[0]["content_type"] == "video/mp4"

    def test_retries_transient_failures_with_linear_backoff(self):
        """Two failures then success: 3 attempts, sleeps of 1s then 2s."""
        client = FakeS3Client(failures=2)
        sleeps = []
        storage = make_s3(client, sleeps)

        ref = storage.save("landscape/a.mp4", io.BytesIO(b"data"), "video/mp4")

        assert ref == "media-bucket,landscape/a.mp4"
        assert len(client.put_calls) == 3
        assert sleeps == [1.0, 2.0]

    def test_body_rewound_before_every_attempt(self):
        client = FakeS3Client(failures=2)
        stream = io.BytesIO(b"data")
        stream.seek(2)

        make_s3(client).save("landscape/a.mp4", stream, "video/mp4")

        assert [call["position"] for call in client.put_calls] == [0, 0, 0]

    def test_exhausted_retries_raise_remote_failure_with_cause(self):
        client = FakeS3Client(failures=5)
        sleeps = []
        storage = make_s3(client, sleeps)

        with pytest.raises(RemoteFailure) as exc_info:
            storage.save("landscape/a.mp4", io.BytesIO(b"data"), "video/mp4")

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.__cause__, EndpointConnectionError)
        assert len(client.put_calls) == 3
        assert sleeps == [1.0, 2.0]

    def test_client_errors_are_retried(self):
        error = ClientError({"Error": {"Code": "SlowDown", "Message": "slow"}}, "PutObject")
        client = FakeS3Client(failures=1, error=error)

        make_s3(client).save("landscape/a.mp4", io.BytesIO(b"data"), "video/mp4")

        assert len(client.put_calls) == 2

    def test_non_seekable_body_gets_single_attempt(self):
        client = FakeS3Client(failures=1)
        sleeps = []
        storage = make_s3(client, sleeps)

        with pytest.raises(RemoteFailure) as exc_info:
            storage.save("landscape/a.mp4", NonSeekableStream(b"data"), "video/mp4")

        assert exc_info.value.attempts == 1
        assert len(client.put_calls) == 1
        assert sleeps == []

    def test_body_without_seekable_method_is_still_retried(self):
        client = FakeS3Client(failures=2)
        sleeps = []

        make_s3(client, sleeps).save(
            "landscape/a.mp4", SeekWithoutSeekableStream(b"data"), "video/mp4"
        )

        assert [c["position"] for c in client.put_calls] == [0, 0, 0]
        assert sleeps == [1.0, 2.0]

    def test_presigned_url_delegates_to_provider(self):
        storage = make_s3(FakeS3Client())

        url = storage.generate_presigned_url("media-bucket,portrait/b.mp4", 900)

        assert url.startswith("https://media-bucket.s3.example.com/portrait/b.mp4")
        assert "op=get_object" in url
        assert "X-Amz-Expires=900" in url

    def test_presigned_url_uses_referenced_bucket(self):
        """References keep working after the configured bucket changes."""
        storage = make_s3(FakeS3Client())

        url = storage.generate_presigned_url("old-bucket,portrait/b.mp4", 60)

        assert url.startswith("https://old-bucket.")

    def test_rejects_local_reference(self):
        storage = make_s3(FakeS3Client())

        with pytest.raises(InvalidReference):
            storage.generate_presigned_url("local,portrait/b.mp4", 60)

    def test_delete(self):
        client = FakeS3Client()
        make_s3(client).delete("media-bucket,other/c.mp4")

        assert client.deleted == [("media-bucket", "other/c.mp4")]

    def test_delete_missing_object_is_not_found(self):
        client = FakeS3Client()
        client.delete_error = ClientError(
            {"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "DeleteObject"
        )

        with pytest.raises(NotFound):
            make_s3(client).delete("media-bucket,other/c.mp4")

    def test_delete_other_error_is_remote_failure(self):
        client = FakeS3Client()
        client.delete_error = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "no"}}, "DeleteObject"
        )

        with pytest.raises(RemoteFailure):
            make_s3(client).delete("media-bucket,other/c.mp4")

    def test_is_not_a_signature_verifier(self):
        assert not isinstance(make_s3(FakeS3Client()), SignatureVerifier)

    def test_ready_when_bucket_answers(self):
        make_s3(FakeS3Client()).check_ready()

    def test_unreachable_bucket_is_remote_failure(self):
        client = FakeS3Client()
        client.head_error = ClientError(
            {"Error": {"Code": "403", "Message": "Forbidden"}}, "HeadBucket"
        )

        with pytest.raises(RemoteFailure, match="Bucket not reachable"):
            make_s3(client).check_ready()


# ---------------------------------------------------------------------------
# Factory Tests
# ---------------------------------------------------------------------------

class TestFactory:

    def test_creates_local_backend(self, tmp_path):
        storage = create_storage_backend(
            "local",
            assets_root=str(tmp_path),
            assets_base_url=BASE_URL,
            signing_secret="secret",
        )
        assert isinstance(storage, LocalStorageBackend)

    def test_local_requires_secret(self, tmp_path):
        with pytest.raises(ValueError):
            create_storage_backend("local", assets_root=str(tmp_path), assets_base_url=BASE_URL)

    def test_s3_requires_config(self):
        with pytest.raises(ValueError):
            create_storage_backend("s3")

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unsupported"):
            create_storage_backend("ftp")

    @pytest.mark.parametrize("bucket", ["", "local", "a,b"])
    def test_config_rejects_unusable_bucket_names(self, bucket):
        with pytest.raises(ValueError):
            StorageConfig(bucket_name=bucket, region="us-east-1")
