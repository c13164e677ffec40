from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

from ..models import Operations, OutputFormat

logger = logging.getLogger(__name__)

_INTEGER_KEYS: tuple[str, ...] = ("width", "height", "quality")
_KNOWN_KEYS: tuple[str, ...] = ("width", "height", "format", "quality", "frame")


def parse_request_path(path: str) -> Tuple[str, str]:
    """Split ``/<prefix...>/<asset-path>/<operations>`` into ``(asset_key, operations)``.

    The last segment holds the operations and the first one (empty for a
    rooted path) is discarded. Everything else is the original asset key, so
    ``/images/rio/1.jpeg/width=100`` yields ``("images/rio/1.jpeg", "width=100")``.
    """
    segments = (path or "").split("/")
    operations = segments.pop() if segments else ""
    if segments:
        segments.pop(0)
    return "/".join(segments), operations


def split_operations(text: str) -> Dict[str, Optional[str]]:
    """Decode ``k1=v1,k2,k3=v3`` into a mapping; the last duplicate key wins."""
    pairs: Dict[str, Optional[str]] = {}
    for piece in (text or "").split(","):
        key, sep, value = piece.partition("=")
        key = key.strip()
        if not key:
            continue
        pairs[key] = value if sep else None
    return pairs


def parse_operations(text: str) -> Operations:
    pairs = split_operations(text)
    recognized = []
    ignored: Dict[str, str] = {}
    values: Dict[str, object] = {}

    for key, value in pairs.items():
        if key not in _KNOWN_KEYS:
            ignored[key] = value or ""
            continue
        if key in _INTEGER_KEYS:
            number = _positive_int(value)
            if number is None:
                logger.debug("Dropping %s=%r: not a positive integer", key, value)
                continue
            values[key] = number
        elif key == "format":
            if not value:
                continue
            values[key] = OutputFormat.parse(value)
        elif key == "frame":
            if not value:
                continue
            values[key] = value
        recognized.append(key)

    return Operations(
        raw=text or "",
        width=values.get("width"),  # type: ignore[arg-type]
        height=values.get("height"),  # type: ignore[arg-type]
        format=values.get("format"),  # type: ignore[arg-type]
        quality=values.get("quality"),  # type: ignore[arg-type]
        frame=values.get("frame"),  # type: ignore[arg-type]
        recognized=tuple(recognized),
        ignored=ignored,
    )


def _positive_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        number = int(value.strip())
    except ValueError:
        return None
    return number if number > 0 else None
