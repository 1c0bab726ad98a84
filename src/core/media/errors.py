"""
Error taxonomy for storage and media ingestion.

Every failure the pipeline or a storage backend can surface is one of
these. The API layer maps them to status codes; nothing here knows
about HTTP.
"""

from typing import Optional


class MediaStorageError(Exception):
    """Base class for storage and ingestion failures."""
    pass


class IOFailure(MediaStorageError):
    """Local read/write failed (temp staging, local disk backend)."""
    pass


class RemoteFailure(MediaStorageError):
    """
    Object store call failed after exhausting retries.

    The last underlying error is chained as __cause__.
    """

    def __init__(self, message: str, attempts: int = 1) -> None:
        super().__init__(message)
        self.attempts = attempts


class ProbeFailure(MediaStorageError):
    """The inspection tool could not be run or its output was unreadable."""
    pass


class RepackageFailure(MediaStorageError):
    """The remux tool exited non-zero or could not be run."""

    def __init__(self, message: str, returncode: Optional[int] = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class EmptyUpload(MediaStorageError):
    """Zero-byte upload. Client error."""
    pass


class InvalidReference(MediaStorageError):
    """A stored reference could not be parsed into backend and key."""
    pass


class NotFound(MediaStorageError):
    """The referenced object does not exist."""
    pass
