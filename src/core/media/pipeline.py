"""
Video upload pipeline.

Takes a raw upload through stage -> probe -> repackage -> commit:
1. Copy the inbound stream to a private temp file
2. Reject empty uploads, then classify aspect ratio
3. Remux for fast start into a sibling ".processing" file
4. Hand the remuxed file to the storage backend

Each run owns its temp files and removes them exactly once on every exit
path. Stages are plain sequential calls; every one of them blocks on disk,
an external tool or the network, so callers run the whole thing in a
worker thread.
"""

import logging
import os
import shutil
import tempfile
from typing import BinaryIO, Optional, Union
from uuid import UUID

from .errors import EmptyUpload, IOFailure
from .models import AspectClass, PipelineState, UploadResult
from .ports import MediaProbe, Repackager, StorageBackend

logger = logging.getLogger(__name__)

VIDEO_CONTENT_TYPE = "video/mp4"
THUMBNAIL_EXTENSIONS = {
    "image/jpeg": "jpeg",
    "image/png": "png",
}


def build_video_key(aspect: AspectClass, video_id: Union[UUID, str]) -> str:
    """Storage key for a video: "<aspect prefix>/<id>.mp4"."""
    return f"{aspect.key_prefix}/{video_id}.mp4"


def build_thumbnail_key(video_id: Union[UUID, str], media_type: str) -> str:
    """Storage key for a thumbnail: "thumbnails/<id>.<ext>"."""
    try:
        extension = THUMBNAIL_EXTENSIONS[media_type]
    except KeyError:
        raise ValueError(f"Unsupported thumbnail type: {media_type}")
    return f"thumbnails/{video_id}.{extension}"


def _remove_file(path: str) -> None:
    """Delete a temp file; log, never raise."""
    try:
        os.remove(path)
        logger.debug("Removed temp file", extra={"path": path})
    except FileNotFoundError:
        logger.debug("Temp file already gone", extra={"path": path})
    except OSError as e:
        logger.warning(
            "Failed to remove temp file",
            extra={"path": path, "error": str(e)}
        )


class UploadJob:
    """
    State of a single pipeline run.

    Owns the staged upload and the repackaged artifact. cleanup() forgets
    each path as it removes it, so a second call is a no-op.
    """

    def __init__(self, video_id: str, content_type: str) -> None:
        self.video_id = video_id
        self.content_type = content_type
        self.state = PipelineState.RECEIVED
        self.staged_path: Optional[str] = None
        self.processed_path: Optional[str] = None
        self.size_bytes = 0
        self.aspect: Optional[AspectClass] = None
        self.key: Optional[str] = None
        self.reference: Optional[str] = None

    def advance(self, state: PipelineState) -> None:
        logger.debug(
            "Upload state change",
            extra={
                "video_id": self.video_id,
                "from": self.state.value,
                "to": state.value,
            }
        )
        self.state = state

    def cleanup(self) -> None:
        processed, self.processed_path = self.processed_path, None
        staged, self.staged_path = self.staged_path, None
        for path in (processed, staged):
            if path is not None:
                _remove_file(path)


class UploadPipeline:
    """
    Orchestrates staging, probing, repackaging and the storage commit.

    The backend, probe and repackager are injected; the pipeline holds no
    per-run state, so one instance can serve concurrent requests.
    """

    def __init__(
        self,
        storage: StorageBackend,
        probe: MediaProbe,
        repackager: Repackager,
        temp_dir: Optional[str] = None,
    ) -> None:
        self._storage = storage
        self._probe = probe
        self._repackager = repackager
        self._temp_dir = temp_dir

    def run(
        self,
        stream: BinaryIO,
        video_id: Union[UUID, str],
        content_type: str = VIDEO_CONTENT_TYPE,
    ) -> UploadResult:
        """
        Take one upload to a terminal state.

        Returns the committed reference, or raises the failing stage's
        error after the job has been marked FAILED and cleaned up. Callers
        must not touch the persisted record on failure.
        """
        job = UploadJob(str(video_id), content_type)
        try:
            self._stage(job, stream)
            self._classify(job)
            self._repackage(job)
            self._commit(job)
        except Exception as e:
            failed_in = job.state
            job.advance(PipelineState.FAILED)
            logger.error(
                "Video upload failed",
                extra={
                    "video_id": job.video_id,
                    "stage": failed_in.value,
                    "error_type": type(e).__name__,
                    "error": str(e),
                }
            )
            raise
        finally:
            job.cleanup()

        logger.info(
            "Video upload committed",
            extra={
                "video_id": job.video_id,
                "key": job.key,
                "aspect": job.aspect.value,
                "size_bytes": job.size_bytes,
            }
        )
        return UploadResult(reference=job.reference, key=job.key, aspect=job.aspect)

    def _stage(self, job: UploadJob, stream: BinaryIO) -> None:
        try:
            fd, path = tempfile.mkstemp(
                prefix="vaultstream-upload-",
                suffix=".mp4",
                dir=self._temp_dir,
            )
        except OSError as e:
            raise IOFailure(f"Couldn't create temp file: {e}") from e

        job.staged_path = path
        try:
            with os.fdopen(fd, "w+b") as staged:
                shutil.copyfileobj(stream, staged)
                job.size_bytes = staged.tell()
                staged.seek(0)
        except OSError as e:
            raise IOFailure(f"Couldn't stage upload: {e}") from e

        job.advance(PipelineState.STAGED)

    def _classify(self, job: UploadJob) -> None:
        if job.size_bytes == 0:
            raise EmptyUpload("Uploaded file is empty")

        job.aspect = self._probe.classify(job.staged_path)
        job.advance(PipelineState.PROBED)

    def _repackage(self, job: UploadJob) -> None:
        job.processed_path = self._repackager.repackage(job.staged_path)
        job.advance(PipelineState.REPACKAGED)

    def _commit(self, job: UploadJob) -> None:
        job.key = build_video_key(job.aspect, job.video_id)
        try:
            processed = open(job.processed_path, "rb")
        except OSError as e:
            raise IOFailure(f"Couldn't open processed video: {e}") from e

        with processed:
            job.reference = self._storage.save(job.key, processed, job.content_type)

        job.advance(PipelineState.COMMITTED)
