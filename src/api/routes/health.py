"""
Health check endpoints.

We provide two endpoints:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (can we serve traffic?)

The distinction matters in orchestration systems like Kubernetes
where liveness and readiness have different behaviors.
"""

import asyncio
import logging
from typing import Any, Optional

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel

from ... import __version__
from ...core.media.errors import MediaStorageError
from ...core.media.ports import StorageBackend
from ...infrastructure.video import verify_media_tools
from ..dependencies import SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


def check_configuration(settings) -> ReadinessCheck:
    missing_fields = settings.validate_required_fields()
    if missing_fields:
        return ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Missing required fields: {', '.join(missing_fields)}"
        )
    return ReadinessCheck(name="configuration", status="ok")


def check_media_tools(settings) -> ReadinessCheck:
    try:
        verify_media_tools(settings.ffprobe_path, settings.ffmpeg_path)
    except RuntimeError as e:
        return ReadinessCheck(name="media_tools", status="error", error=str(e))
    return ReadinessCheck(name="media_tools", status="ok")


def check_storage(storage: Optional[StorageBackend]) -> ReadinessCheck:
    if storage is None:
        return ReadinessCheck(name="storage", status="error", error="Storage backend not initialized")

    try:
        storage.check_ready()
    except MediaStorageError as e:
        return ReadinessCheck(name="storage", status="error", error=str(e))

    return ReadinessCheck(name="storage", status="ok")


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """
    Liveness check - is the process alive?

    This endpoint should be very fast and not check external dependencies.
    """
    return HealthResponse(
        status="ok",
        version=__version__,
        details={"storage_backend": settings.storage_backend},
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if the service can handle traffic. Checks configuration, media tools and storage.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(
    request: Request,
    response: Response,
    settings: SettingsDep,
) -> ReadinessResponse:
    """
    Readiness check - can we serve traffic?

    Returns 503 if any check fails, which tells load balancers not
    to route traffic here.
    """
    storage = getattr(request.app.state, "storage", None)
    # both checks block on subprocesses or the network
    media_tools, storage_check = await asyncio.gather(
        asyncio.to_thread(check_media_tools, settings),
        asyncio.to_thread(check_storage, storage),
    )
    checks = [check_configuration(settings), media_tools, storage_check]
    all_ok = all(check.status == "ok" for check in checks)

    if not all_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    return ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        checks=checks,
    )
