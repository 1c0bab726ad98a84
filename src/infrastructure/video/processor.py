"""
Video inspection and fast-start remuxing using FFmpeg.

Two small wrappers around external tools:
1. FFprobeMediaProbe - read stream geometry and classify aspect ratio
2. FFmpegRepackager - move the moov atom to the front without re-encoding

Why fast start: an MP4 written by most cameras keeps its index at the end,
so a browser has to download the whole file before playback begins.
Remuxing with -movflags faststart lets playback start on the first bytes.

Both tools are process-boundary calls, not libraries. Their absence is a
startup failure (see verify_media_tools), not something to route around.
"""

import json
import logging
import os
import subprocess
from typing import Optional

from ...core.media.errors import ProbeFailure, RepackageFailure
from ...core.media.models import AspectClass

logger = logging.getLogger(__name__)

PROCESSING_SUFFIX = ".processing"


def verify_media_tools(ffprobe_path: str = "ffprobe", ffmpeg_path: str = "ffmpeg") -> None:
    """
    Check that ffprobe and ffmpeg can be run.

    Raises RuntimeError if either is missing or broken.
    """
    for tool in (ffprobe_path, ffmpeg_path):
        try:
            result = subprocess.run(
                [tool, "-version"],
                capture_output=True,
                text=True,
                timeout=5,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            raise RuntimeError(
                f"{tool} not available ({e}). Install with: apt-get install ffmpeg"
            )
        if result.returncode != 0:
            raise RuntimeError(f"{tool} not working properly")

    logger.info(
        "FFmpeg media tools available",
        extra={"ffprobe": ffprobe_path, "ffmpeg": ffmpeg_path}
    )


class FFprobeMediaProbe:
    """
    Aspect ratio classification via FFprobe.

    Only the first reported stream is inspected. A file with no streams
    is classified OTHER rather than rejected, so odd but valid uploads
    can still be stored.
    """

    def __init__(self, ffprobe_path: str = "ffprobe", timeout_seconds: float = 30) -> None:
        self._ffprobe = ffprobe_path
        self._timeout = timeout_seconds

    def classify(self, path: str) -> AspectClass:
        width, height = self.get_dimensions(path)
        aspect = AspectClass.from_dimensions(width, height)

        logger.info(
            "Video classified",
            extra={"resolution": f"{width}x{height}", "aspect": aspect.value}
        )

        return aspect

    def get_dimensions(self, path: str) -> tuple[int, int]:
        """Width and height of the first stream, (0, 0) if there is none."""
        cmd = [
            self._ffprobe,
            "-v", "error",
            "-print_format", "json",
            "-show_streams",
            path,
        ]

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ProbeFailure(f"Couldn't run ffprobe: {e}") from e

        if result.returncode != 0:
            logger.warning(
                "FFprobe exited with an error",
                extra={"returncode": result.returncode, "stderr": result.stderr[-500:]}
            )
            raise ProbeFailure(f"ffprobe exited with status {result.returncode}")

        try:
            info = json.loads(result.stdout)
            streams = info.get("streams") or []
            if not isinstance(streams, list):
                raise ValueError(f"streams is {type(streams).__name__}, expected list")
            if not streams:
                return 0, 0
            first = streams[0]
            if not isinstance(first, dict):
                raise ValueError(f"stream is {type(first).__name__}, expected object")
            return int(first.get("width") or 0), int(first.get("height") or 0)
        except (ValueError, TypeError, AttributeError) as e:
            raise ProbeFailure(f"Couldn't parse ffprobe output: {e}") from e


class FFmpegRepackager:
    """
    Fast-start remux via FFmpeg.

    Streams are copied as-is (-c copy); the input file is never modified.
    Output goes to "<input>.processing".
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout_seconds: float = 300) -> None:
        self._ffmpeg = ffmpeg_path
        self._timeout = timeout_seconds

    def repackage(self, input_path: str) -> str:
        output_path = input_path + PROCESSING_SUFFIX

        cmd = [
            self._ffmpeg,
            "-y",
            "-v", "error",
            "-i", input_path,
            "-c", "copy",
            "-movflags", "faststart",
            "-f", "mp4",
            output_path,
        ]

        returncode: Optional[int] = None
        try:
            result = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
            returncode = result.returncode
            error = result.stderr[-500:]
        except (OSError, subprocess.TimeoutExpired) as e:
            error = str(e)

        if returncode != 0:
            # a failed run can leave a truncated output behind
            _discard(output_path)
            logger.warning(
                "FFmpeg fast-start remux failed",
                extra={"returncode": returncode, "stderr": error}
            )
            raise RepackageFailure(
                f"ffmpeg fast-start remux failed (status {returncode})",
                returncode=returncode,
            )

        logger.debug("Remuxed video for fast start", extra={"output": output_path})

        return output_path


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(
            "Couldn't remove partial remux output",
            extra={"output": path, "error": str(e)}
        )


def create_media_tools(
    ffprobe_path: str = "ffprobe",
    ffmpeg_path: str = "ffmpeg",
    timeout_seconds: float = 300,
    verify: bool = True,
) -> tuple[FFprobeMediaProbe, FFmpegRepackager]:
    """
    Factory for the probe and repackager.

    Args:
        ffprobe_path: Path to ffprobe binary (default assumes it's in PATH)
        ffmpeg_path: Path to ffmpeg binary
        timeout_seconds: Upper bound for a single remux
        verify: Check both binaries run before returning
    """
    if verify:
        verify_media_tools(ffprobe_path, ffmpeg_path)

    probe = FFprobeMediaProbe(ffprobe_path, timeout_seconds=min(timeout_seconds, 30))
    repackager = FFmpegRepackager(ffmpeg_path, timeout_seconds=timeout_seconds)
    return probe, repackager
