"""
Interfaces the ingestion core depends on.

Using protocols means the pipeline and routes never see a concrete
backend or tool wrapper, and tests can hand in plain fakes.
"""

from typing import BinaryIO, Protocol, runtime_checkable
from uuid import UUID

from .models import AspectClass, VideoRecord


class StorageBackend(Protocol):
    """Uniform storage capability. Exactly one is active per process."""

    def save(self, key: str, stream: BinaryIO, content_type: str) -> str:
        """Store the stream under key and return a storage reference."""
        ...

    def generate_presigned_url(self, reference: str, ttl_seconds: int) -> str:
        """Return a time-limited URL for a stored reference."""
        ...

    def delete(self, reference: str) -> None:
        """Remove the referenced object. Callers treat failure as non-fatal."""
        ...

    def check_ready(self) -> None:
        """Raise a MediaStorageError if the backend can't accept writes."""
        ...


@runtime_checkable
class SignatureVerifier(Protocol):
    """Optional capability of backends that mint their own signed URLs."""

    def verify_presigned_url(self, key: str, expires: str | None, signature: str | None) -> bool:
        ...


class MediaProbe(Protocol):
    def classify(self, path: str) -> AspectClass:
        ...


class Repackager(Protocol):
    def repackage(self, input_path: str) -> str:
        ...


class VideoRecordStore(Protocol):
    """The record layer as the upload flow sees it."""

    def get_video(self, video_id: UUID) -> VideoRecord:
        ...

    def update_video(self, video: VideoRecord) -> None:
        ...
