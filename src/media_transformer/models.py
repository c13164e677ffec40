from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Optional, Tuple

VIDEO_CONTENT_TYPES: tuple[str, ...] = ("video/webm", "video/mp4")


class OutputFormat(str, Enum):
    WEBP = "webp"
    PNG = "png"
    GIF = "gif"
    WEBM = "webm"
    MP4 = "mp4"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str) -> "OutputFormat":
        try:
            return cls(value.lower())
        except ValueError:
            return cls.OTHER

    @property
    def is_video(self) -> bool:
        return self in (OutputFormat.WEBM, OutputFormat.MP4)


class SourceKind(Enum):
    STILL_IMAGE = "still_image"
    VIDEO = "video"

    @classmethod
    def from_content_type(cls, content_type: Optional[str]) -> "SourceKind":
        if content_type and (content_type in VIDEO_CONTENT_TYPES or content_type.startswith("video/")):
            return cls.VIDEO
        return cls.STILL_IMAGE


@dataclass(frozen=True, slots=True)
class ResizeSpec:
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def is_noop(self) -> bool:
        return self.width is None and self.height is None


@dataclass(frozen=True, slots=True)
class Operations:
    """Typed view of the comma separated ``key=value`` operations segment."""

    raw: str = ""
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[OutputFormat] = None
    quality: Optional[int] = None
    frame: Optional[str] = None
    recognized: Tuple[str, ...] = ()
    ignored: Mapping[str, str] = field(default_factory=dict)

    @property
    def resize(self) -> ResizeSpec:
        return ResizeSpec(width=self.width, height=self.height)

    @property
    def wants_video(self) -> bool:
        return self.format is not None and self.format.is_video


@dataclass(frozen=True, slots=True)
class Asset:
    """An object read from the asset store. Never mutated once fetched."""

    key: str
    body: bytes
    content_type: str

    @property
    def kind(self) -> SourceKind:
        return SourceKind.from_content_type(self.content_type)


@dataclass(frozen=True, slots=True)
class TransformedAsset:
    body: bytes
    content_type: str

    def __len__(self) -> int:
        return len(self.body)


@dataclass(slots=True)
class TimingLog:
    """Ordered ``Server-Timing`` measurements collected while serving a request."""

    entries: List[Tuple[str, int]] = field(default_factory=list)
    _started: float = field(default_factory=time.perf_counter, repr=False)

    def restart(self) -> None:
        self._started = time.perf_counter()

    def mark(self, name: str) -> int:
        elapsed = int((time.perf_counter() - self._started) * 1000)
        self.entries.append((name, elapsed))
        self.restart()
        return elapsed

    def header_value(self) -> str:
        return ",".join(f"{name};dur={duration}" for name, duration in self.entries)
