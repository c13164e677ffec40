from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from conftest import image_bytes, open_image
from media_transformer.errors import TranscodeFailed
from media_transformer.transcoding.ffmpeg import FFmpegTranscoder, run_tool


class RecordingRun:
    def __init__(self, returncode: int = 0, stdout: bytes = b"", write_target: bytes | None = None) -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.write_target = write_target
        self.args: list[str] = []
        self.staged: dict[str, bytes] = {}

    def __call__(self, args, **kwargs):
        self.args = list(args)
        for index, value in enumerate(self.args[:-1]):
            if value == "-i":
                path = Path(self.args[index + 1])
                self.staged[path.name] = path.read_bytes()
        if self.write_target is not None:
            Path(self.args[-1]).write_bytes(self.write_target)
        return subprocess.CompletedProcess(self.args, self.returncode, self.stdout, b"some diagnostics")


@pytest.fixture
def transcoder(tmp_path: Path) -> FFmpegTranscoder:
    return FFmpegTranscoder(binary="/opt/bin/ffmpeg", temp_dir=tmp_path)


def test_extract_frame_reads_and_removes_temp_file(
    monkeypatch: pytest.MonkeyPatch, transcoder: FFmpegTranscoder, tmp_path: Path
) -> None:
    png = image_bytes((8, 8))
    fake = RecordingRun(write_target=png)
    monkeypatch.setattr(subprocess, "run", fake)

    assert transcoder.extract_frame(b"video-bytes") == png
    assert fake.args[0] == "/opt/bin/ffmpeg"
    assert fake.args[fake.args.index("-vf") + 1] == "thumbnail"
    assert fake.args[fake.args.index("-frames:v") + 1] == "1"
    assert fake.staged == {"input": b"video-bytes"}
    assert list(tmp_path.iterdir()) == []


@pytest.mark.parametrize("container, codec", [("webm", "libvpx"), ("mp4", "libx264")])
def test_overlay_streams_stdout(
    monkeypatch: pytest.MonkeyPatch, transcoder: FFmpegTranscoder, tmp_path: Path, container: str, codec: str
) -> None:
    fake = RecordingRun(stdout=b"composited")
    monkeypatch.setattr(subprocess, "run", fake)

    assert transcoder.overlay(b"base", b"logo", container) == b"composited"
    assert fake.args[fake.args.index("-filter_complex") + 1] == "[0:v][1:v]overlay"
    assert fake.args[fake.args.index("-c:v") + 1] == codec
    assert fake.args[fake.args.index("-f") + 1] == container
    assert fake.args[-1] == "pipe:1"
    assert ("-movflags" in fake.args) is (container == "mp4")
    assert fake.staged == {"base": b"base", "overlay": b"logo"}
    assert list(tmp_path.iterdir()) == []


def test_overlay_rejects_unknown_container(transcoder: FFmpegTranscoder) -> None:
    with pytest.raises(ValueError):
        transcoder.overlay(b"a", b"b", "avi")


def test_transcode_to_mp4(monkeypatch: pytest.MonkeyPatch, transcoder: FFmpegTranscoder) -> None:
    fake = RecordingRun(stdout=b"mp4-bytes")
    monkeypatch.setattr(subprocess, "run", fake)

    assert transcoder.transcode_to_mp4(b"webm") == b"mp4-bytes"
    assert fake.args[fake.args.index("-f") + 1] == "mp4"
    assert fake.args[-1] == "pipe:1"


def test_non_zero_exit_raises_and_cleans_up(
    monkeypatch: pytest.MonkeyPatch, transcoder: FFmpegTranscoder, tmp_path: Path
) -> None:
    monkeypatch.setattr(subprocess, "run", RecordingRun(returncode=1))

    with pytest.raises(TranscodeFailed) as excinfo:
        transcoder.extract_frame(b"broken")
    assert excinfo.value.exit_code == 1
    assert excinfo.value.status_code == 500
    assert list(tmp_path.iterdir()) == []


def test_spawn_failure_raises_transcode_failed(monkeypatch: pytest.MonkeyPatch) -> None:
    def missing(*args, **kwargs):
        raise FileNotFoundError("ffmpeg")

    monkeypatch.setattr(subprocess, "run", missing)
    with pytest.raises(TranscodeFailed) as excinfo:
        run_tool(["ffmpeg", "-version"])
    assert excinfo.value.exit_code is None


@pytest.mark.skipif(shutil.which("ffmpeg") is None, reason="ffmpeg not installed")
def test_real_ffmpeg_round_trip(tmp_path: Path) -> None:
    generated = run_tool(
        ["ffmpeg", "-hide_banner", "-f", "lavfi", "-i", "testsrc=size=64x48:rate=5", "-t", "1",
         "-c:v", "libvpx", "-f", "webm", "pipe:1"]
    )
    if generated.exit_code != 0:
        pytest.skip("ffmpeg build cannot encode webm")

    transcoder = FFmpegTranscoder(temp_dir=tmp_path)
    frame = open_image(transcoder.extract_frame(generated.stdout))
    assert frame.format == "PNG"
    assert frame.size == (64, 48)
    assert len(transcoder.overlay(generated.stdout, generated.stdout, "webm")) > 0
    assert list(tmp_path.iterdir()) == []


def test_clean_exit_without_frame_raises_and_cleans_up(
    monkeypatch: pytest.MonkeyPatch, transcoder: FFmpegTranscoder, tmp_path: Path
) -> None:
    monkeypatch.setattr(subprocess, "run", RecordingRun(returncode=0))

    with pytest.raises(TranscodeFailed) as excinfo:
        transcoder.extract_frame(b"zero-frame-video")
    assert excinfo.value.exit_code == 0
    assert excinfo.value.message == "FFmpeg produced no frame"
    assert list(tmp_path.iterdir()) == []


@pytest.mark.parametrize("action", ["extract_frame", "transcode_to_mp4"])
def test_missing_temp_dir_raises_transcode_failed(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, action: str
) -> None:
    fake = RecordingRun(stdout=b"unused")
    monkeypatch.setattr(subprocess, "run", fake)
    transcoder = FFmpegTranscoder(temp_dir=tmp_path / "missing")

    with pytest.raises(TranscodeFailed) as excinfo:
        getattr(transcoder, action)(b"video")
    assert isinstance(excinfo.value.__cause__, OSError)
    assert fake.args == []
