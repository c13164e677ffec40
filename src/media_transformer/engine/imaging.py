from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional

from PIL import Image, ImageOps, ImageSequence

from ..errors import TransformFailed
from ..models import Asset, Operations, OutputFormat, ResizeSpec, TransformedAsset

logger = logging.getLogger(__name__)

SVG_CONTENT_TYPE = "image/svg+xml"
_EXIF_ORIENTATION = 0x0112
_ANIMATED_FORMATS = {"GIF", "WEBP", "PNG"}
_ALPHA_UNSUPPORTED = {"JPEG", "BMP"}
_SAVE_AS = {"MPO": "JPEG"}


@dataclass(frozen=True, slots=True)
class ImageOutput:
    pillow_format: str
    content_type: str
    lossy: bool = False


_EXPLICIT_OUTPUTS = {
    OutputFormat.WEBP: ImageOutput("WEBP", "image/webp", lossy=True),
    OutputFormat.PNG: ImageOutput("PNG", "image/png"),
    OutputFormat.GIF: ImageOutput("GIF", "image/gif"),
}
_DEFAULT_OUTPUT = _EXPLICIT_OUTPUTS[OutputFormat.WEBP]


def select_output(requested: Optional[OutputFormat], source_content_type: str, source_format: Optional[str]) -> ImageOutput:
    """Pick the encoder for the still-image branch.

    An explicit webp/png/gif is honoured and anything else requested falls
    back to lossy webp. Without a request the source format is kept, except
    that rasterised SVG is delivered as PNG.
    """
    if requested is not None:
        return _EXPLICIT_OUTPUTS.get(requested, _DEFAULT_OUTPUT)
    if source_content_type == SVG_CONTENT_TYPE or not source_format:
        return ImageOutput("PNG", "image/png")
    return ImageOutput(_SAVE_AS.get(source_format, source_format), source_content_type)


def decode_image(data: bytes, content_type: str) -> Image.Image:
    if content_type == SVG_CONTENT_TYPE:
        import cairosvg

        data = cairosvg.svg2png(bytestring=data)
    image = Image.open(BytesIO(data))
    image.load()
    return image


def resize_image(image: Image.Image, resize: ResizeSpec) -> Image.Image:
    """Resize like a cover fit: one dimension keeps the aspect ratio, two crop to fill."""
    if resize.is_noop:
        return image
    width, height = image.size
    if resize.width and resize.height:
        return ImageOps.fit(image, (resize.width, resize.height), Image.Resampling.LANCZOS)
    if resize.width:
        size = (resize.width, max(1, round(height * resize.width / width)))
    else:
        size = (max(1, round(width * resize.height / height)), resize.height)
    return image.resize(size, Image.Resampling.LANCZOS)


def needs_rotation(image: Image.Image) -> bool:
    orientation = image.getexif().get(_EXIF_ORIENTATION)
    return orientation not in (None, 1)


class ImageTransformer:
    """Applies orientation, format, quality, resize and overlay to a still image."""

    def transform(self, source: Asset, operations: Operations, overlay: Optional[Asset] = None) -> TransformedAsset:
        try:
            return self._transform(source, operations, overlay)
        except Exception as exc:  # noqa: BLE001 - any decoder/encoder failure aborts the request
            logger.error("Error transforming image %s: %s", source.key, exc)
            raise TransformFailed("error transforming image", key=source.key) from exc

    def _transform(self, source: Asset, operations: Operations, overlay: Optional[Asset]) -> TransformedAsset:
        image = decode_image(source.body, source.content_type)
        output = select_output(operations.format, source.content_type, image.format)
        rotate = needs_rotation(image)
        resize = operations.resize

        overlay_image = None
        if overlay is not None:
            overlay_image = resize_image(decode_image(overlay.body, overlay.content_type).convert("RGBA"), resize)

        animated = getattr(image, "n_frames", 1) > 1 and output.pillow_format in _ANIMATED_FORMATS
        sources = [frame.copy() for frame in ImageSequence.Iterator(image)] if animated else [image]
        durations = [frame.info.get("duration", image.info.get("duration", 100)) for frame in sources]

        frames: List[Image.Image] = []
        for frame in sources:
            if rotate:
                frame = ImageOps.exif_transpose(frame)
            frame = _working_mode(frame)
            frame = resize_image(frame, resize)
            if overlay_image is not None:
                frame = _composite(frame, overlay_image)
            frames.append(frame)
        if overlay_image is not None:
            logger.debug("Compositing complete for %s", source.key)

        body = _encode(frames, output, operations.quality, durations, image.info.get("loop", 0))
        return TransformedAsset(body=body, content_type=output.content_type)


def _working_mode(frame: Image.Image) -> Image.Image:
    if frame.mode in ("RGB", "RGBA", "L"):
        return frame
    if frame.mode in ("P", "PA", "LA", "1") or "transparency" in frame.info:
        return frame.convert("RGBA")
    return frame.convert("RGB")


def _composite(frame: Image.Image, overlay: Image.Image) -> Image.Image:
    base = frame.convert("RGBA")
    box = (0, 0, min(base.width, overlay.width), min(base.height, overlay.height))
    base.alpha_composite(overlay, dest=(0, 0), source=box)
    return base


def _encode(
    frames: List[Image.Image],
    output: ImageOutput,
    quality: Optional[int],
    durations: List[int],
    loop: int,
) -> bytes:
    if output.pillow_format in _ALPHA_UNSUPPORTED:
        frames = [frame.convert("RGB") if frame.mode != "RGB" else frame for frame in frames]
    params: dict = {}
    if output.lossy and quality is not None:
        params["quality"] = quality
    if len(frames) > 1:
        params.update(save_all=True, append_images=frames[1:], duration=durations, loop=loop)
    buffer = BytesIO()
    frames[0].save(buffer, format=output.pillow_format, **params)
    return buffer.getvalue()
