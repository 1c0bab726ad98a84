"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order

For local development:
    uvicorn src.main:app --reload --port 8091

For production:
    gunicorn src.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.dependencies import build_storage_backend
from .api.routes import assets, health, uploads, videos
from .config.settings import get_settings
from .infrastructure.video import create_media_tools

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level.upper(),
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the one storage backend and the media tools for this process
    and keeps them on app.state. A missing ffprobe/ffmpeg aborts startup.
    """
    settings = get_settings()

    logger.info(
        "Vaultstream API starting",
        extra={
            "version": settings.api_version,
            "storage_backend": settings.storage_backend,
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )
        raise RuntimeError(f"Missing required configuration: {', '.join(missing_fields)}")

    if settings.storage_backend == "local":
        Path(settings.assets_root).mkdir(parents=True, exist_ok=True)

    app.state.storage = build_storage_backend(settings)
    app.state.media_probe, app.state.repackager = create_media_tools(
        ffprobe_path=settings.ffprobe_path,
        ffmpeg_path=settings.ffmpeg_path,
        timeout_seconds=settings.media_tool_timeout_seconds,
    )

    yield

    logger.info("Vaultstream API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    This function is called once at startup (in production) or
    multiple times (in tests with different configurations).
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Video storage and delivery.

        ## Workflow

        1. **Create a record**: `POST /api/videos`
        2. **Upload the video**: `POST /api/video_upload/{video_id}`
           - MP4 only, remuxed for fast start and filed by aspect ratio
        3. **Upload a thumbnail**: `POST /api/thumbnail_upload/{video_id}`
        4. **Watch**: `GET /api/videos/{video_id}`
           - Returns short-lived signed URLs for the video and thumbnail

        ## Authentication

        All `/api` endpoints require `Authorization: Bearer <JWT>`.
        Signed asset URLs need no other credentials until they expire.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Configure allowed origins via CORS_ORIGINS environment variable
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        videos.router,
        prefix="/api/videos",
        tags=["Videos"],
    )

    app.include_router(
        uploads.router,
        prefix="/api",
        tags=["Uploads"],
    )

    app.include_router(
        assets.router,
        prefix="/assets",
        tags=["Assets"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "Vaultstream API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        We log the full error server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8091,
        reload=True,
        log_level=settings.log_level.lower(),
    )
