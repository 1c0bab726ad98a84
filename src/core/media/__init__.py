"""
Media storage and ingestion.

Contains the storage reference model, the signed URL codec, the
interfaces backends and tools implement, and the upload pipeline.
"""

from .errors import (
    EmptyUpload,
    InvalidReference,
    IOFailure,
    MediaStorageError,
    NotFound,
    ProbeFailure,
    RemoteFailure,
    RepackageFailure,
)
from .models import (
    AspectClass,
    PipelineState,
    StorageReference,
    UploadResult,
    VideoRecord,
    is_safe_key,
)
from .pipeline import UploadPipeline, build_thumbnail_key, build_video_key
from .signing import SignedURLCodec

__all__ = [
    "AspectClass",
    "EmptyUpload",
    "InvalidReference",
    "IOFailure",
    "MediaStorageError",
    "NotFound",
    "PipelineState",
    "ProbeFailure",
    "RemoteFailure",
    "RepackageFailure",
    "SignedURLCodec",
    "StorageReference",
    "UploadPipeline",
    "UploadResult",
    "VideoRecord",
    "build_thumbnail_key",
    "build_video_key",
    "is_safe_key",
]
