"""
Unit tests for the FFprobe/FFmpeg wrappers.

subprocess.run is replaced with canned results, so these run without
ffmpeg installed.
"""

import json
import subprocess

import pytest

from src.core.media.errors import ProbeFailure, RepackageFailure
from src.core.media.models import AspectClass
from src.infrastructure.video import processor
from src.infrastructure.video.processor import (
    PROCESSING_SUFFIX,
    FFmpegRepackager,
    FFprobeMediaProbe,
    verify_media_tools,
)


def completed(cmd, returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def fake_run(monkeypatch):
    """Install a fake subprocess.run; tests set .handler to shape the result."""
    calls = []
    kwargs_seen = []

    class FakeRun:
        handler = staticmethod(lambda cmd: completed(cmd))

        def __call__(self, cmd, **kwargs):
            calls.append(cmd)
            kwargs_seen.append(kwargs)
            return self.handler(cmd)

    fake = FakeRun()
    fake.calls = calls
    fake.kwargs_seen = kwargs_seen
    monkeypatch.setattr(processor.subprocess, "run", fake)
    return fake


def probe_output(*streams):
    return json.dumps({"streams": list(streams)})


# ---------------------------------------------------------------------------
# Probe Tests
# ---------------------------------------------------------------------------

class TestFFprobeMediaProbe:

    def test_classifies_landscape(self, fake_run):
        fake_run.handler = lambda cmd: completed(
            cmd, stdout=probe_output({"codec_type": "video", "width": 1920, "height": 1080})
        )

        assert FFprobeMediaProbe().classify("/tmp/in.mp4") is AspectClass.LANDSCAPE

    def test_classifies_portrait(self, fake_run):
        fake_run.handler = lambda cmd: completed(
            cmd, stdout=probe_output({"width": 720, "height": 1280})
        )

        assert FFprobeMediaProbe().classify("/tmp/in.mp4") is AspectClass.PORTRAIT

    def test_uses_first_stream_only(self, fake_run):
        fake_run.handler = lambda cmd: completed(
            cmd, stdout=probe_output({"codec_type": "audio"}, {"width": 1920, "height": 1080})
        )

        assert FFprobeMediaProbe().classify("/tmp/in.mp4") is AspectClass.OTHER

    def test_no_streams_is_other(self, fake_run):
        fake_run.handler = lambda cmd: completed(cmd, stdout=probe_output())

        assert FFprobeMediaProbe().classify("/tmp/in.mp4") is AspectClass.OTHER

    def test_invokes_ffprobe_with_json_output(self, fake_run):
        fake_run.handler = lambda cmd: completed(cmd, stdout=probe_output())

        FFprobeMediaProbe("/opt/ffprobe").classify("/tmp/in.mp4")

        cmd = fake_run.calls[0]
        assert cmd[0] == "/opt/ffprobe"
        assert "-show_streams" in cmd
        assert cmd[cmd.index("-print_format") + 1] == "json"
        assert cmd[-1] == "/tmp/in.mp4"

    def test_bad_json_is_probe_failure(self, fake_run):
        fake_run.handler = lambda cmd: completed(cmd, stdout="not json")

        with pytest.raises(ProbeFailure):
            FFprobeMediaProbe().classify("/tmp/in.mp4")

    @pytest.mark.parametrize("stdout", [
        '{"streams": {"width": 1}}',
        '{"streams": ["not-a-stream"]}',
        '["streams"]',
    ])
    def test_unexpected_json_shape_is_rejected(self, fake_run, stdout):
        fake_run.handler = lambda cmd: completed(cmd, stdout=stdout)

        with pytest.raises(ProbeFailure):
            FFprobeMediaProbe().classify("/tmp/in.mp4")

    def test_non_zero_exit_is_probe_failure(self, fake_run):
        fake_run.handler = lambda cmd: completed(cmd, returncode=1, stderr="Invalid data")

        with pytest.raises(ProbeFailure):
            FFprobeMediaProbe().classify("/tmp/in.mp4")

    def test_missing_binary_is_probe_failure(self, fake_run):
        def handler(cmd):
            raise FileNotFoundError(cmd[0])

        fake_run.handler = handler

        with pytest.raises(ProbeFailure):
            FFprobeMediaProbe().classify("/tmp/in.mp4")


# ---------------------------------------------------------------------------
# Repackager Tests
# ---------------------------------------------------------------------------

class TestFFmpegRepackager:

    def test_returns_processing_sibling(self, fake_run, tmp_path):
        source = tmp_path / "in.mp4"
        source.write_bytes(b"raw")

        def handler(cmd):
            with open(cmd[-1], "wb") as f:
                f.write(b"remuxed")
            return completed(cmd)

        fake_run.handler = handler

        output = FFmpegRepackager().repackage(str(source))

        assert output == str(source) + PROCESSING_SUFFIX
        assert source.read_bytes() == b"raw"

    def test_copies_streams_with_faststart(self, fake_run, tmp_path):
        source = tmp_path / "in.mp4"

        FFmpegRepackager().repackage(str(source))

        cmd = fake_run.calls[0]
        assert cmd[cmd.index("-c") + 1] == "copy"
        assert cmd[cmd.index("-movflags") + 1] == "faststart"
        assert cmd[cmd.index("-f") + 1] == "mp4"
        assert cmd[cmd.index("-i") + 1] == str(source)

    def test_overwrites_stale_output_without_prompting(self, fake_run, tmp_path):
        source = tmp_path / "in.mp4"
        (tmp_path / ("in.mp4" + PROCESSING_SUFFIX)).write_bytes(b"stale")

        FFmpegRepackager().repackage(str(source))

        assert "-y" in fake_run.calls[0]
        assert fake_run.kwargs_seen[0]["stdin"] is subprocess.DEVNULL

    def test_failure_removes_partial_output(self, fake_run, tmp_path):
        source = tmp_path / "in.mp4"
        source.write_bytes(b"raw")

        def handler(cmd):
            with open(cmd[-1], "wb") as f:
                f.write(b"trunc")
            return completed(cmd, returncode=1, stderr="moov atom not found")

        fake_run.handler = handler

        with pytest.raises(RepackageFailure) as exc_info:
            FFmpegRepackager().repackage(str(source))

        assert exc_info.value.returncode == 1
        assert not (tmp_path / ("in.mp4" + PROCESSING_SUFFIX)).exists()

    def test_timeout_is_repackage_failure(self, fake_run, tmp_path):
        def handler(cmd):
            raise subprocess.TimeoutExpired(cmd, 300)

        fake_run.handler = handler

        with pytest.raises(RepackageFailure) as exc_info:
            FFmpegRepackager().repackage(str(tmp_path / "in.mp4"))

        assert exc_info.value.returncode is None


# ---------------------------------------------------------------------------
# Tool Verification Tests
# ---------------------------------------------------------------------------

class TestVerifyMediaTools:

    def test_passes_when_both_tools_run(self, fake_run):
        verify_media_tools("ffprobe", "ffmpeg")

        assert [cmd[0] for cmd in fake_run.calls] == ["ffprobe", "ffmpeg"]

    def test_missing_tool_raises(self, fake_run):
        def handler(cmd):
            raise FileNotFoundError(cmd[0])

        fake_run.handler = handler

        with pytest.raises(RuntimeError, match="not available"):
            verify_media_tools()
