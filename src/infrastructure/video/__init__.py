"""
Video processing infrastructure.

Wraps the FFmpeg command line tools:
- Stream geometry inspection (ffprobe) for aspect classification
- Fast-start remuxing (ffmpeg) for progressive playback
"""

from .processor import (
    FFmpegRepackager,
    FFprobeMediaProbe,
    create_media_tools,
    verify_media_tools,
)

__all__ = [
    "FFmpegRepackager",
    "FFprobeMediaProbe",
    "create_media_tools",
    "verify_media_tools",
]
