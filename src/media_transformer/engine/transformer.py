from __future__ import annotations

import logging
from typing import Callable, Dict, Optional, Tuple

from ..models import Asset, Operations, OutputFormat, SourceKind, TransformedAsset
from ..transcoding.ffmpeg import FFmpegTranscoder
from .imaging import ImageTransformer

logger = logging.getLogger(__name__)

OverlayLoader = Callable[[], Optional[Asset]]
Strategy = Callable[["TransformationEngine", Asset, Operations, OverlayLoader], TransformedAsset]


def _no_overlay() -> Optional[Asset]:
    return None


class TransformationEngine:
    """Chooses between the video and still-image strategies and runs one of them.

    ``overlay`` is a loader rather than an asset so the overlay download can
    keep running until a strategy actually needs it.
    """

    def __init__(
        self,
        transcoder: FFmpegTranscoder | None = None,
        images: ImageTransformer | None = None,
    ) -> None:
        self.transcoder = transcoder or FFmpegTranscoder()
        self.images = images or ImageTransformer()

    def transform(
        self,
        original: Asset,
        operations: Operations,
        overlay: OverlayLoader | None = None,
    ) -> TransformedAsset:
        strategy = self.select_strategy(original.kind, operations.format)
        logger.info("Transforming %s with %s (%s)", original.key, strategy.__name__, operations.raw)
        return strategy(self, original, operations, overlay or _no_overlay)

    @classmethod
    def select_strategy(cls, kind: SourceKind, requested: Optional[OutputFormat]) -> Strategy:
        return _DECISION_TABLE.get((kind, requested), cls.still_image)

    def transcode_mp4(self, original: Asset, operations: Operations, overlay: OverlayLoader) -> TransformedAsset:
        video = original.body
        frame = overlay() if operations.frame else None
        if frame is not None:
            video = self.transcoder.overlay(video, frame.body, "mp4")
        return TransformedAsset(body=self.transcoder.transcode_to_mp4(video), content_type="video/mp4")

    def composite_webm(self, original: Asset, operations: Operations, overlay: OverlayLoader) -> TransformedAsset:
        frame = overlay() if operations.frame else None
        if frame is None:
            return TransformedAsset(body=original.body, content_type=original.content_type)
        return TransformedAsset(
            body=self.transcoder.overlay(original.body, frame.body, "webm"),
            content_type="video/webm",
        )

    def still_image(self, original: Asset, operations: Operations, overlay: OverlayLoader) -> TransformedAsset:
        source = original
        if original.kind is SourceKind.VIDEO:
            logger.debug("Extracting a still frame from %s", original.key)
            source = Asset(key=original.key, body=self.transcoder.extract_frame(original.body), content_type="image/png")
        frame = overlay() if operations.frame else None
        return self.images.transform(source, operations, frame)


_DECISION_TABLE: Dict[Tuple[SourceKind, Optional[OutputFormat]], Strategy] = {
    (SourceKind.VIDEO, OutputFormat.MP4): TransformationEngine.transcode_mp4,
    (SourceKind.VIDEO, OutputFormat.WEBM): TransformationEngine.composite_webm,
}
