"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be overridden in tests
- Configuration is centralized

The storage backend and media tools are built once at startup (see
build_storage_backend and main.lifespan) and kept on app.state; the
dependencies here only hand them out.
"""

import logging
from typing import Annotated, Generator
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config.settings import Settings, get_settings
from ..core.media.models import VideoRecord
from ..core.media.pipeline import UploadPipeline
from ..core.media.ports import StorageBackend, VideoRecordStore
from ..infrastructure.database import (
    VideoNotFoundError,
    VideoRepository,
    create_sqlite_connection,
)
from ..infrastructure.storage.client import StorageConfig, create_storage_backend

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Startup Construction
# ---------------------------------------------------------------------------

def build_storage_backend(settings: Settings) -> StorageBackend:
    """Create the single storage backend selected by settings."""
    if settings.storage_backend == "s3":
        config = StorageConfig(
            bucket_name=settings.s3_bucket,
            region=settings.s3_region,
            access_key_id=settings.s3_access_key_id or None,
            secret_access_key=settings.s3_secret_access_key or None,
            endpoint_url=settings.s3_endpoint_url,
            max_attempts=settings.storage_max_attempts,
            retry_base_seconds=settings.storage_retry_base_seconds,
        )
        return create_storage_backend("s3", config=config)

    return create_storage_backend(
        "local",
        assets_root=settings.assets_root,
        assets_base_url=settings.assets_base_url,
        signing_secret=settings.signing_secret,
    )


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def get_current_user_id(
    settings: Annotated[Settings, Depends(get_settings)],
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> str:
    """
    Resolve the caller from an "Authorization: Bearer <JWT>" header.

    The token's "sub" claim is the user id. Token issuance lives
    elsewhere; this only validates.

    Raises 401 if the token is missing, invalid or expired.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Couldn't find JWT",
        )

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.PyJWTError as e:
        logger.warning("Rejected bearer token", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Couldn't validate JWT",
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Couldn't validate JWT",
        )

    return str(user_id)


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_storage(request: Request) -> StorageBackend:
    """The process-wide storage backend created at startup."""
    return request.app.state.storage


def get_upload_pipeline(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> UploadPipeline:
    """
    Provide an UploadPipeline wired to the startup services.

    The pipeline keeps no per-run state, so building one per request
    is cheap.
    """
    state = request.app.state
    return UploadPipeline(
        storage=state.storage,
        probe=state.media_probe,
        repackager=state.repackager,
        temp_dir=settings.upload_temp_dir,
    )


def get_video_repository(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[VideoRepository, None, None]:
    """
    Provide VideoRepository with a database connection.

    This is a generator function so the connection is closed after the
    request, whatever happened in the handler.
    """
    with create_sqlite_connection(settings.database_path) as conn:
        yield VideoRepository(conn)


def get_owned_video(
    video_id: UUID,
    user_id: str,
    repository: VideoRecordStore,
) -> VideoRecord:
    """
    Load a video and check the caller owns it.

    Raises 404 if missing, 403 if owned by someone else.
    """
    try:
        video = repository.get_video(video_id)
    except VideoNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Video not found",
        )

    if video.user_id != user_id:
        logger.warning(
            "Ownership check failed",
            extra={"video_id": str(video_id), "user_id": user_id}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You don't own this video",
        )

    return video


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
CurrentUserId = Annotated[str, Depends(get_current_user_id)]
StorageDep = Annotated[StorageBackend, Depends(get_storage)]
UploadPipelineDep = Annotated[UploadPipeline, Depends(get_upload_pipeline)]
VideoRepositoryDep = Annotated[VideoRepository, Depends(get_video_repository)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
