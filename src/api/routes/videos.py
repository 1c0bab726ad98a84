"""
Video record endpoints.

Records hold storage references, never URLs. Every response swaps each
reference for a short-lived signed URL so clients can stream directly
from storage without re-authenticating.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from ...core.media.errors import MediaStorageError, NotFound
from ...core.media.models import VideoRecord
from ...core.media.ports import StorageBackend
from ..dependencies import (
    CurrentUserId,
    SettingsDep,
    StorageDep,
    VideoRepositoryDep,
    get_owned_video,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CreateVideoRequest(BaseModel):
    """Metadata for a new video, before any file is uploaded."""
    title: str = Field(min_length=1, description="Video title")
    description: str = Field(default="", description="Free-form description")


class VideoResponse(BaseModel):
    """A video record with signed, time-limited media URLs."""
    id: UUID
    user_id: str
    title: str
    description: str
    thumbnail_url: Optional[str] = Field(None, description="Signed thumbnail URL, if uploaded")
    video_url: Optional[str] = Field(None, description="Signed video URL, if uploaded")
    created_at: datetime
    updated_at: datetime


class UpdateVideoRequest(BaseModel):
    """Partial metadata update. Omitted fields are left unchanged."""
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def build_video_response(
    video: VideoRecord,
    storage: StorageBackend,
    ttl_seconds: int,
) -> VideoResponse:
    """Replace stored references with signed URLs."""
    def sign(reference: Optional[str]) -> Optional[str]:
        if not reference:
            return None
        return storage.generate_presigned_url(reference, ttl_seconds)

    try:
        thumbnail_url = sign(video.thumbnail_ref)
        video_url = sign(video.video_ref)
    except MediaStorageError as e:
        logger.error(
            "Failed to sign video URLs",
            extra={"video_id": str(video.id), "error": str(e)}
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Couldn't generate presigned URL",
        )

    return VideoResponse(
        id=video.id,
        user_id=video.user_id,
        title=video.title,
        description=video.description,
        thumbnail_url=thumbnail_url,
        video_url=video_url,
        created_at=video.created_at,
        updated_at=video.updated_at,
    )


def discard_stored_file(storage: StorageBackend, reference: str, video_id: UUID) -> None:
    """
    Best-effort delete of a stored file.

    The bytes may already be gone; the caller clears the reference
    regardless.
    """
    try:
        storage.delete(reference)
    except NotFound:
        logger.info("Stored file already absent", extra={"video_id": str(video_id)})
    except MediaStorageError as e:
        logger.warning(
            "Failed to delete stored file",
            extra={"video_id": str(video_id), "error": str(e)}
        )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=VideoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a video record",
)
async def create_video(
    request: CreateVideoRequest,
    user_id: CurrentUserId,
    repository: VideoRepositoryDep,
    storage: StorageDep,
    settings: SettingsDep,
) -> VideoResponse:
    video = VideoRecord(
        user_id=user_id,
        title=request.title,
        description=request.description,
    )
    repository.create_video(video)

    logger.info("Video record created", extra={"video_id": str(video.id), "user_id": user_id})

    return build_video_response(video, storage, settings.presigned_url_ttl_seconds)


@router.get(
    "",
    response_model=list[VideoResponse],
    summary="List my videos",
)
async def list_videos(
    user_id: CurrentUserId,
    repository: VideoRepositoryDep,
    storage: StorageDep,
    settings: SettingsDep,
) -> list[VideoResponse]:
    videos = repository.list_videos_for_user(user_id)
    return [
        build_video_response(video, storage, settings.presigned_url_ttl_seconds)
        for video in videos
    ]


@router.get(
    "/{video_id}",
    response_model=VideoResponse,
    summary="Get a video with signed URLs",
)
async def get_video(
    video_id: UUID,
    user_id: CurrentUserId,
    repository: VideoRepositoryDep,
    storage: StorageDep,
    settings: SettingsDep,
) -> VideoResponse:
    video = get_owned_video(video_id, user_id, repository)
    return build_video_response(video, storage, settings.presigned_url_ttl_seconds)


@router.put(
    "/{video_id}",
    response_model=VideoResponse,
    summary="Update title or description",
)
async def update_video(
    video_id: UUID,
    request: UpdateVideoRequest,
    user_id: CurrentUserId,
    repository: VideoRepositoryDep,
    storage: StorageDep,
    settings: SettingsDep,
) -> VideoResponse:
    video = get_owned_video(video_id, user_id, repository)

    if request.title is not None:
        video.title = request.title
    if request.description is not None:
        video.description = request.description
    repository.update_video(video)

    return build_video_response(video, storage, settings.presigned_url_ttl_seconds)


@router.delete(
    "/{video_id}",
    response_model=MessageResponse,
    summary="Delete a video and its stored files",
)
async def delete_video(
    video_id: UUID,
    user_id: CurrentUserId,
    repository: VideoRepositoryDep,
    storage: StorageDep,
) -> MessageResponse:
    video = get_owned_video(video_id, user_id, repository)

    for reference in (video.thumbnail_ref, video.video_ref):
        if reference:
            discard_stored_file(storage, reference, video.id)

    repository.delete_video(video.id)

    logger.info("Video deleted", extra={"video_id": str(video.id), "user_id": user_id})

    return MessageResponse(message="Video deleted successfully")


@router.delete(
    "/{video_id}/thumbnail",
    response_model=MessageResponse,
    summary="Delete only the thumbnail",
)
async def delete_thumbnail(
    video_id: UUID,
    user_id: CurrentUserId,
    repository: VideoRepositoryDep,
    storage: StorageDep,
) -> MessageResponse:
    video = get_owned_video(video_id, user_id, repository)

    if video.thumbnail_ref:
        discard_stored_file(storage, video.thumbnail_ref, video.id)

    video.thumbnail_ref = None
    repository.update_video(video)

    return MessageResponse(message="Thumbnail deleted successfully")


@router.delete(
    "/{video_id}/video-file",
    response_model=MessageResponse,
    summary="Delete only the video file",
    description="Removes the stored video but keeps the record and thumbnail",
)
async def delete_video_file(
    video_id: UUID,
    user_id: CurrentUserId,
    repository: VideoRepositoryDep,
    storage: StorageDep,
) -> MessageResponse:
    video = get_owned_video(video_id, user_id, repository)

    if video.video_ref:
        discard_stored_file(storage, video.video_ref, video.id)

    video.video_ref = None
    repository.update_video(video)

    return MessageResponse(message="Video file deleted successfully")
