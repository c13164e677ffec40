from __future__ import annotations

from concurrent.futures import Future
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from media_transformer.transcoding.ffmpeg import FFmpegTranscoder


def image_bytes(size: tuple[int, int] = (200, 100), color: str = "red", fmt: str = "PNG", **params) -> bytes:
    buffer = BytesIO()
    mode = "RGBA" if fmt == "PNG" and params.pop("alpha", False) else "RGB"
    Image.new(mode, size, color).save(buffer, format=fmt, **params)
    return buffer.getvalue()


def open_image(data: bytes) -> Image.Image:
    image = Image.open(BytesIO(data))
    image.load()
    return image


class FakeTranscoder(FFmpegTranscoder):
    """Records calls instead of spawning ffmpeg."""

    def __init__(self, frame: bytes | None = None) -> None:
        super().__init__()
        self.frame = frame if frame is not None else image_bytes((64, 32), "green")
        self.calls: list[tuple] = []

    def extract_frame(self, video: bytes) -> bytes:
        self.calls.append(("extract_frame", video))
        return self.frame

    def overlay(self, base: bytes, overlay: bytes, container: str) -> bytes:
        self.calls.append(("overlay", base, overlay, container))
        return b"overlaid-" + container.encode() + b":" + base

    def transcode_to_mp4(self, video: bytes) -> bytes:
        self.calls.append(("transcode_to_mp4", video))
        return b"mp4:" + video

    @property
    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]


class ImmediateExecutor:
    """Runs submitted work inline so call ordering is deterministic."""

    def submit(self, fn, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:  # pragma: no cover - surfaced through result()
            future.set_exception(exc)
        return future


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    root = tmp_path / "storage"
    for bucket in ("originals", "assets", "transformed"):
        (root / bucket).mkdir(parents=True)
    return root


def put(root: Path, bucket: str, key: str, data: bytes) -> Path:
    path = root / bucket / key
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path
