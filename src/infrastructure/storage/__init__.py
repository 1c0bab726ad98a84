"""
Object storage integration for videos and thumbnails.

Supports local disk (self-signed URLs) and S3-compatible object stores
(provider presigned URLs) behind one StorageBackend interface.
"""

from .client import (
    LocalStorageBackend,
    S3StorageBackend,
    StorageConfig,
    create_storage_backend,
)

__all__ = [
    "LocalStorageBackend",
    "S3StorageBackend",
    "StorageConfig",
    "create_storage_backend",
]
