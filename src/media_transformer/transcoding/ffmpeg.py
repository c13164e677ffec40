from __future__ import annotations

import logging
import subprocess
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Sequence

from ..errors import TranscodeFailed

logger = logging.getLogger(__name__)

# mp4 written to a pipe cannot seek back to store the moov atom.
_PIPE_MP4_FLAGS: tuple[str, ...] = ("-movflags", "frag_keyframe+empty_moov")
_CODECS = {"webm": "libvpx", "mp4": "libx264"}


@dataclass(frozen=True, slots=True)
class ToolResult:
    exit_code: int
    stdout: bytes
    stderr: bytes


def run_tool(args: Sequence[str]) -> ToolResult:
    """Run an external tool to completion and capture both output streams.

    Returns only when the process has exited and stdout/stderr are fully
    drained. A process that cannot be spawned raises ``TranscodeFailed``
    with no exit code; a non-zero exit is reported to the caller as-is.
    """
    logger.debug("Running %s", " ".join(args))
    try:
        completed = subprocess.run(
            list(args),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=False,
        )
    except OSError as exc:
        logger.error("Could not start %s: %s", args[0], exc)
        raise TranscodeFailed(f"Could not start {args[0]}") from exc
    if completed.stderr:
        logger.debug("%s stderr: %s", args[0], completed.stderr.decode("utf-8", errors="replace"))
    return ToolResult(completed.returncode, completed.stdout or b"", completed.stderr or b"")


class FFmpegTranscoder:
    """Frame extraction, overlay compositing and mp4 transcoding through ffmpeg.

    Each call spawns a fresh process. Inputs are staged in a private
    temporary directory which is removed on every exit path.
    """

    def __init__(self, binary: str = "ffmpeg", temp_dir: Optional[Path] = None) -> None:
        self.binary = binary
        self.temp_dir = temp_dir

    def extract_frame(self, video: bytes) -> bytes:
        """Return one representative frame of ``video`` as PNG bytes."""
        with self._workdir() as workdir:
            source = self._stage(workdir, "input", video)
            target = workdir / "frame.png"
            self._run(
                [
                    "-y",
                    "-i", str(source),
                    "-vf", "thumbnail",
                    "-frames:v", "1",
                    "-q:v", "2",
                    str(target),
                ],
                action="frame extraction",
            )
            if not target.is_file():
                logger.error("FFmpeg frame extraction exited cleanly but wrote no frame")
                raise TranscodeFailed("FFmpeg produced no frame", exit_code=0)
            try:
                return target.read_bytes()
            except OSError as exc:
                raise TranscodeFailed("Could not read extracted frame", exit_code=0) from exc

    def overlay(self, base: bytes, overlay: bytes, container: str) -> bytes:
        """Draw ``overlay`` over ``base`` and return a ``webm`` or ``mp4`` container."""
        if container not in _CODECS:
            raise ValueError(f"Unsupported container {container!r}")
        with self._workdir() as workdir:
            first = self._stage(workdir, "base", base)
            second = self._stage(workdir, "overlay", overlay)
            args = [
                "-i", str(first),
                "-i", str(second),
                "-filter_complex", "[0:v][1:v]overlay",
                "-c:v", _CODECS[container],
                "-f", container,
            ]
            if container == "mp4":
                args.extend(_PIPE_MP4_FLAGS)
            args.append("pipe:1")
            return self._run(args, action="overlay").stdout

    def transcode_to_mp4(self, video: bytes) -> bytes:
        with self._workdir() as workdir:
            source = self._stage(workdir, "input", video)
            args = ["-i", str(source), "-f", "mp4", *_PIPE_MP4_FLAGS, "pipe:1"]
            return self._run(args, action="mp4 transcode").stdout

    @contextmanager
    def _workdir(self) -> Iterator[Path]:
        try:
            workspace = tempfile.TemporaryDirectory(prefix="media-transformer-", dir=self.temp_dir)
        except OSError as exc:
            logger.error("Could not create a work directory under %s: %s", self.temp_dir, exc)
            raise TranscodeFailed("Could not prepare transcoder workspace") from exc
        with workspace as name:
            yield Path(name)

    @staticmethod
    def _stage(workdir: Path, name: str, data: bytes) -> Path:
        path = workdir / name
        try:
            path.write_bytes(data)
        except OSError as exc:
            logger.error("Could not stage %s for ffmpeg: %s", path, exc)
            raise TranscodeFailed("Could not prepare transcoder input") from exc
        return path

    def _run(self, args: list[str], *, action: str) -> ToolResult:
        result = run_tool([self.binary, "-hide_banner", *args])
        if result.exit_code != 0:
            logger.error("FFmpeg %s exited with code %s", action, result.exit_code)
            raise TranscodeFailed(
                f"FFmpeg process exited with code {result.exit_code}",
                exit_code=result.exit_code,
            )
        return result
