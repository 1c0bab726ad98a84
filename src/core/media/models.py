"""
Domain models for stored media.

These are plain values. The storage reference format is owned here so
that both backends and the tests agree on it, but callers outside the
storage layer treat references as opaque strings.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from .errors import InvalidReference


LOCAL_BACKEND = "local"


class AspectClass(Enum):
    """Coarse width/height bucket used to pick a storage key prefix."""
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"
    OTHER = "other"

    @property
    def key_prefix(self) -> str:
        return self.name.lower()

    @classmethod
    def from_dimensions(cls, width: int, height: int) -> "AspectClass":
        """
        Classify by exact integer cross-multiplication.

        A stream without usable geometry (audio-only, zero or missing
        dimensions) is OTHER, never an accidental 0 == 0 match.
        """
        if width <= 0 or height <= 0:
            return cls.OTHER
        if width * 9 == height * 16:
            return cls.LANDSCAPE
        if width * 16 == height * 9:
            return cls.PORTRAIT
        return cls.OTHER


@dataclass(frozen=True)
class StorageReference:
    """
    Where a stored file's bytes live: "<backend>,<key>".

    The backend is the bucket name or the literal "local". Only the first
    comma separates, so keys may contain commas and backends may not.
    """
    backend: str
    key: str

    def __post_init__(self) -> None:
        if not self.backend or "," in self.backend:
            raise InvalidReference(f"invalid storage backend identifier: {self.backend!r}")
        if not self.key:
            raise InvalidReference("storage key cannot be empty")

    @classmethod
    def parse(cls, raw: str) -> "StorageReference":
        backend, sep, key = (raw or "").partition(",")
        if not sep:
            raise InvalidReference(f"invalid storage reference: {raw!r}")
        return cls(backend=backend, key=key)

    @property
    def is_local(self) -> bool:
        return self.backend == LOCAL_BACKEND

    def __str__(self) -> str:
        return f"{self.backend},{self.key}"


def is_safe_key(key: str) -> bool:
    """True if key is a relative path with no parent-directory segments."""
    if not key or key.startswith("/") or "\\" in key:
        return False
    return ".." not in key.split("/")


class PipelineState(Enum):
    """Upload pipeline states. COMMITTED and FAILED are terminal."""
    RECEIVED = "received"
    STAGED = "staged"
    PROBED = "probed"
    REPACKAGED = "repackaged"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadResult:
    """What a committed upload hands back to the record layer."""
    reference: str
    key: str
    aspect: AspectClass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class VideoRecord:
    """
    A video as the record layer persists it.

    thumbnail_ref and video_ref hold storage references, never URLs.
    """
    user_id: str
    title: str
    id: UUID = field(default_factory=uuid4)
    description: str = ""
    thumbnail_ref: Optional[str] = None
    video_ref: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not self.title.strip():
            raise ValueError("Video title cannot be empty")

    def touch(self) -> None:
        self.updated_at = _utcnow()
