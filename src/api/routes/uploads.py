"""
Video and thumbnail upload endpoints.

Video uploads go through the UploadPipeline (stage, probe, fast-start
remux, commit). The pipeline blocks on disk, ffmpeg and the network, so
it runs in a worker thread; one run per request, sharing nothing.

The record is only updated after a successful commit. A failed upload
leaves the previously stored reference untouched.
"""

import asyncio
import logging
import sqlite3
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, File, HTTPException, UploadFile, status

from ...core.media.errors import EmptyUpload, MediaStorageError
from ...core.media.models import VideoRecord
from ...core.media.pipeline import (
    THUMBNAIL_EXTENSIONS,
    VIDEO_CONTENT_TYPE,
    build_thumbnail_key,
)
from ...core.media.ports import VideoRecordStore
from ..dependencies import (
    CurrentUserId,
    SettingsDep,
    StorageDep,
    UploadPipelineDep,
    VideoRepositoryDep,
    get_owned_video,
)
from .videos import VideoResponse, build_video_response

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def parse_media_type(content_type: str | None) -> str:
    """Strip parameters: "video/mp4; codecs=avc1" -> "video/mp4"."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def check_upload_size(upload: UploadFile, max_bytes: int) -> None:
    if upload.size is not None and upload.size > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size: {max_bytes} bytes",
        )


def save_record(repository: VideoRecordStore, video: VideoRecord) -> None:
    try:
        repository.update_video(video)
    except sqlite3.Error as e:
        logger.error(
            "Failed to persist storage reference",
            extra={"video_id": str(video.id), "error": str(e)}
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Couldn't update video metadata in database",
        )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/video_upload/{video_id}",
    response_model=VideoResponse,
    summary="Upload the video file",
    description="Upload an MP4, remux it for progressive playback and store it",
)
async def upload_video(
    video_id: UUID,
    video: Annotated[UploadFile, File(description="MP4 video")],
    user_id: CurrentUserId,
    repository: VideoRepositoryDep,
    pipeline: UploadPipelineDep,
    storage: StorageDep,
    settings: SettingsDep,
) -> VideoResponse:
    record = get_owned_video(video_id, user_id, repository)

    media_type = parse_media_type(video.content_type)
    if media_type != VIDEO_CONTENT_TYPE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unsupported media type. Upload an MP4 video.",
        )
    check_upload_size(video, settings.max_video_upload_bytes)

    logger.info(
        "Video upload started",
        extra={
            "video_id": str(record.id),
            "user_id": user_id,
            "video_filename": video.filename,
        }
    )

    try:
        result = await asyncio.to_thread(pipeline.run, video.file, record.id, media_type)
    except EmptyUpload:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file is empty",
        )
    except MediaStorageError:
        # details are already logged by the pipeline
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Couldn't upload video",
        )

    record.video_ref = result.reference
    save_record(repository, record)

    return build_video_response(record, storage, settings.presigned_url_ttl_seconds)


@router.post(
    "/thumbnail_upload/{video_id}",
    response_model=VideoResponse,
    summary="Upload the thumbnail",
    description="Upload a JPEG or PNG thumbnail for a video",
)
async def upload_thumbnail(
    video_id: UUID,
    thumbnail: Annotated[UploadFile, File(description="JPEG or PNG image")],
    user_id: CurrentUserId,
    repository: VideoRepositoryDep,
    storage: StorageDep,
    settings: SettingsDep,
) -> VideoResponse:
    record = get_owned_video(video_id, user_id, repository)

    media_type = parse_media_type(thumbnail.content_type)
    if media_type not in THUMBNAIL_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unsupported media type. Upload a JPEG or PNG image.",
        )
    check_upload_size(thumbnail, settings.max_thumbnail_upload_bytes)

    key = build_thumbnail_key(record.id, media_type)

    try:
        reference = await asyncio.to_thread(storage.save, key, thumbnail.file, media_type)
    except MediaStorageError as e:
        logger.error(
            "Failed to save thumbnail",
            extra={"video_id": str(record.id), "error": str(e)}
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Couldn't save thumbnail",
        )

    logger.info("Thumbnail stored", extra={"video_id": str(record.id), "key": key})

    record.thumbnail_ref = reference
    save_record(repository, record)

    return build_video_response(record, storage, settings.presigned_url_ttl_seconds)
