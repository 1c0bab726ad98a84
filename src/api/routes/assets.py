"""
Signed asset delivery for the local storage backend.

URLs handed out by LocalStorageBackend point here:
    /assets/<key>?expires=<unix seconds>&signature=<hex>

Nothing else is required; possession of an unexpired URL is the
authorization. Object store deployments never route clients here, so the
endpoint answers 404 when the active backend can't verify signatures.
"""

import logging
import mimetypes
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import FileResponse

from ...core.media.models import is_safe_key
from ...core.media.ports import SignatureVerifier
from ..dependencies import SettingsDep, StorageDep

logger = logging.getLogger(__name__)

router = APIRouter()

NO_CACHE_HEADERS = {"Cache-Control": "no-cache, no-store, must-revalidate"}


@router.get(
    "/{key:path}",
    summary="Serve a stored file through a signed URL",
    response_class=FileResponse,
)
async def serve_asset(
    key: str,
    storage: StorageDep,
    settings: SettingsDep,
    expires: Optional[str] = Query(None, description="Expiry as unix seconds"),
    signature: Optional[str] = Query(None, description="Hex HMAC-SHA256 of '<key>:<expires>'"),
) -> FileResponse:
    if not is_safe_key(key):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid asset path",
        )

    if not isinstance(storage, SignatureVerifier):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Not found",
        )

    if not storage.verify_presigned_url(key, expires, signature):
        logger.info("Rejected asset request", extra={"key": key})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired signature",
        )

    file_path = Path(settings.assets_root) / key
    if not file_path.exists():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found",
        )
    if not file_path.is_file():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid asset path",
        )

    media_type, _ = mimetypes.guess_type(file_path.name)

    # FileResponse handles Range requests, so players can seek
    return FileResponse(
        file_path,
        media_type=media_type or "application/octet-stream",
        headers=NO_CACHE_HEADERS,
    )
