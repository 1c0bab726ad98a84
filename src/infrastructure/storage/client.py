"""
Storage backends for uploaded videos and thumbnails.

Two interchangeable implementations of the StorageBackend protocol:
- LocalStorageBackend: files under a root directory, URLs signed with
  our own HMAC so the asset endpoint can check them
- S3StorageBackend: any S3-compatible object store via boto3, using the
  provider's native presigned URLs

Both hand back storage references ("local,<key>" or "<bucket>,<key>")
that the record layer persists as opaque strings.
"""

import logging
import os
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ...core.media.errors import InvalidReference, IOFailure, NotFound, RemoteFailure
from ...core.media.models import LOCAL_BACKEND, StorageReference, is_safe_key
from ...core.media.ports import StorageBackend
from ...core.media.signing import SignedURLCodec

logger = logging.getLogger(__name__)


@dataclass
class StorageConfig:
    """
    Configuration for S3-compatible storage.

    endpoint_url is only needed for non-AWS providers (R2, MinIO).
    """
    bucket_name: str
    region: str
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    endpoint_url: Optional[str] = None
    max_attempts: int = 3
    retry_base_seconds: float = 1.0

    def __post_init__(self) -> None:
        if not self.bucket_name:
            raise ValueError("bucket_name is required")
        if "," in self.bucket_name or self.bucket_name == LOCAL_BACKEND:
            raise ValueError(f"bucket_name cannot be used in references: {self.bucket_name!r}")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be positive")


# ---------------------------------------------------------------------------
# Local Disk
# ---------------------------------------------------------------------------

class LocalStorageBackend:
    """
    Stores files under a fixed root directory.

    Keys may contain subdirectories ("landscape/<id>.mp4"); missing parents
    are created on save. Signed URLs point at our own /assets endpoint,
    which checks them through verify_presigned_url.
    """

    def __init__(self, root: str, base_url: str, codec: SignedURLCodec) -> None:
        self._root = Path(root)
        self._base_url = base_url.rstrip("/")
        self._codec = codec

        logger.info(
            "Initialized local storage backend",
            extra={"root": str(self._root), "base_url": self._base_url}
        )

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        """Absolute location of key under the root. Rejects traversal."""
        if not is_safe_key(key):
            raise InvalidReference(f"unsafe storage key: {key!r}")
        return self._root / key

    def save(self, key: str, stream: BinaryIO, content_type: str) -> str:
        file_path = self.path_for(key)

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, "wb") as f:
                shutil.copyfileobj(stream, f)
        except OSError as e:
            logger.error(
                "Failed to save file",
                extra={"key": key, "error": str(e)}
            )
            raise IOFailure(f"Couldn't save file: {e}") from e

        reference = str(StorageReference(LOCAL_BACKEND, key))

        logger.debug(
            "Saved file to local storage",
            extra={"key": key, "content_type": content_type}
        )

        return reference

    def generate_presigned_url(self, reference: str, ttl_seconds: int) -> str:
        """
        Build "<base_url>/<key>?expires=<unix>&signature=<hex>".

        Mirrors S3 presigning: anyone holding the URL can read the file
        until it expires, without re-authenticating.
        """
        key = self._local_key(reference)
        expires = self._codec.now() + int(ttl_seconds)
        signature = self._codec.sign_key(key, expires)
        return f"{self._base_url}/{key}?expires={expires}&signature={signature}"

    def verify_presigned_url(
        self,
        key: str,
        expires: Optional[str],
        signature: Optional[str],
    ) -> bool:
        return self._codec.verify(key, expires, signature)

    def delete(self, reference: str) -> None:
        key = self._local_key(reference)
        file_path = self.path_for(key)

        try:
            os.remove(file_path)
        except FileNotFoundError:
            raise NotFound(f"File not found: {key}")
        except OSError as e:
            raise IOFailure(f"Couldn't delete file: {e}") from e

        logger.info("Deleted file from local storage", extra={"key": key})

    def check_ready(self) -> None:
        if not self._root.is_dir() or not os.access(self._root, os.W_OK):
            raise IOFailure(f"Assets root not writable: {self._root}")

    def _local_key(self, reference: str) -> str:
        ref = StorageReference.parse(reference)
        if not ref.is_local:
            raise InvalidReference(f"not a local storage reference: {reference!r}")
        return ref.key


# ---------------------------------------------------------------------------
# S3-Compatible Object Store
# ---------------------------------------------------------------------------

class S3StorageBackend:
    """
    S3-compatible object storage.

    Uploads are retried on transport failure with a linearly growing
    delay (1x, 2x the base interval). The body is rewound before every
    attempt; a body that can't seek is sent once with no retry, since a
    second attempt would resend from the wrong offset.
    """

    def __init__(
        self,
        client,
        bucket_name: str,
        max_attempts: int = 3,
        retry_base_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._s3_client = client
        self._bucket = bucket_name
        self._max_attempts = max_attempts
        self._retry_base_seconds = retry_base_seconds
        self._sleep = sleep

        logger.info(
            "Initialized S3 storage backend",
            extra={"bucket": bucket_name, "max_attempts": max_attempts}
        )

    @property
    def bucket_name(self) -> str:
        return self._bucket

    def save(self, key: str, stream: BinaryIO, content_type: str) -> str:
        seekable = _is_seekable(stream)
        attempts = self._max_attempts if seekable else 1
        if not seekable:
            logger.warning(
                "Upload body is not seekable, sending without retry",
                extra={"key": key}
            )

        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            if seekable:
                try:
                    stream.seek(0)
                except OSError as e:
                    raise IOFailure(f"Couldn't seek to beginning: {e}") from e

            try:
                self._s3_client.put_object(
                    Bucket=self._bucket,
                    Key=key,
                    Body=stream,
                    ContentType=content_type,
                )
            except (BotoCoreError, ClientError) as e:
                last_error = e
                logger.warning(
                    "Object upload attempt failed",
                    extra={
                        "key": key,
                        "attempt": attempt,
                        "max_attempts": attempts,
                        "error": str(e),
                    }
                )
                if attempt < attempts:
                    self._sleep(self._retry_base_seconds * attempt)
                continue

            logger.info(
                "Uploaded object",
                extra={"bucket": self._bucket, "key": key, "attempt": attempt}
            )
            return str(StorageReference(self._bucket, key))

        raise RemoteFailure(
            f"Object upload failed after {attempts} attempts: {last_error}",
            attempts=attempts,
        ) from last_error

    def generate_presigned_url(self, reference: str, ttl_seconds: int) -> str:
        """Delegate to the provider's presigning for the referenced bucket/key."""
        ref = self._object_ref(reference)
        try:
            return self._s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": ref.backend, "Key": ref.key},
                ExpiresIn=int(ttl_seconds),
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "Failed to generate presigned URL",
                extra={"reference": reference, "error": str(e)}
            )
            raise RemoteFailure(f"Presigned URL generation failed: {e}") from e

    def delete(self, reference: str) -> None:
        ref = self._object_ref(reference)
        try:
            self._s3_client.delete_object(Bucket=ref.backend, Key=ref.key)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in ("NoSuchKey", "404", "NotFound"):
                raise NotFound(f"Object not found: {ref.key}") from e
            raise RemoteFailure(f"Delete failed: {e}") from e
        except BotoCoreError as e:
            raise RemoteFailure(f"Delete failed: {e}") from e

        logger.info("Deleted object", extra={"bucket": ref.backend, "key": ref.key})

    def check_ready(self) -> None:
        """One HEAD on the bucket; no retry."""
        try:
            self._s3_client.head_bucket(Bucket=self._bucket)
        except (BotoCoreError, ClientError) as e:
            raise RemoteFailure(f"Bucket not reachable: {e}") from e

    def _object_ref(self, reference: str) -> StorageReference:
        ref = StorageReference.parse(reference)
        if ref.is_local:
            raise InvalidReference(f"not an object store reference: {reference!r}")
        return ref


def _is_seekable(stream: BinaryIO) -> bool:
    # SpooledTemporaryFile has no seekable() before 3.11
    seekable = getattr(stream, "seekable", None)
    try:
        if seekable is not None:
            return bool(seekable())
        stream.seek(stream.tell())
    except (AttributeError, OSError, ValueError):
        return False
    return True


# ---------------------------------------------------------------------------
# Factory Functions
# ---------------------------------------------------------------------------

def create_s3_client(config: StorageConfig):
    """
    Build a boto3 S3 client.

    Credentials fall back to the default AWS chain (env, profile, role)
    when not given explicitly.
    """
    import boto3
    from botocore.config import Config

    client_kwargs: dict = {
        "region_name": config.region,
        "config": Config(signature_version="s3v4"),
    }
    if config.endpoint_url:
        client_kwargs["endpoint_url"] = config.endpoint_url
    if config.access_key_id and config.secret_access_key:
        client_kwargs["aws_access_key_id"] = config.access_key_id
        client_kwargs["aws_secret_access_key"] = config.secret_access_key

    return boto3.client("s3", **client_kwargs)


def create_storage_backend(
    backend: str,
    config: Optional[StorageConfig] = None,
    assets_root: Optional[str] = None,
    assets_base_url: Optional[str] = None,
    signing_secret: Optional[str] = None,
) -> StorageBackend:
    """
    Create the one storage backend this process will use.

    Called once at startup; the result is passed explicitly to whatever
    needs it.

    Args:
        backend: "local" or "s3"
        config: Object store configuration (required for "s3")
        assets_root: Root directory (required for "local")
        assets_base_url: URL prefix for signed local URLs
        signing_secret: HMAC key for signed local URLs
    """
    if backend == "local":
        if not assets_root or not assets_base_url or not signing_secret:
            raise ValueError("assets_root, assets_base_url and signing_secret are required for local storage")
        return LocalStorageBackend(
            root=assets_root,
            base_url=assets_base_url,
            codec=SignedURLCodec(signing_secret),
        )

    if backend == "s3":
        if config is None:
            raise ValueError("config is required for s3 storage")
        return S3StorageBackend(
            client=create_s3_client(config),
            bucket_name=config.bucket_name,
            max_attempts=config.max_attempts,
            retry_base_seconds=config.retry_base_seconds,
        )

    raise ValueError(f"Unsupported storage backend: {backend}")
