from __future__ import annotations

import logging
from typing import Optional

from ..errors import NotFound, StoreUnavailable
from ..models import Asset, SourceKind
from .stores import STORE_ERRORS, ObjectNotFound, ObjectStore, StoredObject

logger = logging.getLogger(__name__)

OVERLAY_KEY_TEMPLATE = "frames/{frame_id}/frame{extension}"


def overlay_key(frame_id: str, video: bool) -> str:
    return OVERLAY_KEY_TEMPLATE.format(frame_id=frame_id, extension=".webm" if video else ".png")


class AssetStoreClient:
    """Reads original assets and optional overlay frames from the object store."""

    def __init__(self, store: ObjectStore, original_bucket: str, assets_bucket: str) -> None:
        self.store = store
        self.original_bucket = original_bucket
        self.assets_bucket = assets_bucket

    def open_original(self, key: str) -> StoredObject:
        """Start fetching ``key``; the content type is known once this returns."""
        try:
            return self.store.get_object(self.original_bucket, key)
        except ObjectNotFound as exc:
            logger.warning("Original asset %s not found", key)
            raise NotFound("Image not found", key=key) from exc
        except STORE_ERRORS as exc:
            logger.error("Error downloading original asset %s: %s", key, exc)
            raise StoreUnavailable("Error downloading original image", key=key) from exc

    def drain(self, key: str, stored: StoredObject) -> Asset:
        try:
            body = _read_body(stored)
        except STORE_ERRORS as exc:
            logger.error("Error reading original asset %s: %s", key, exc)
            raise StoreUnavailable("Error downloading original image", key=key) from exc
        return Asset(key=key, body=body, content_type=stored.content_type)

    def fetch_original(self, key: str) -> Asset:
        return self.drain(key, self.open_original(key))

    def fetch_overlay(self, frame_id: str, video: bool) -> Optional[Asset]:
        """Return the overlay frame or ``None``; overlays are optional so nothing is raised."""
        key = overlay_key(frame_id, video)
        try:
            stored = self.store.get_object(self.assets_bucket, key)
            body = _read_body(stored)
        except ObjectNotFound:
            logger.info("Overlay %s not found, continuing without it", key)
            return None
        except Exception as exc:  # noqa: BLE001 - overlay is best effort
            logger.warning("Could not fetch overlay %s: %s", key, exc)
            return None
        logger.debug("Got overlay %s (%s bytes)", key, len(body))
        return Asset(key=key, body=body, content_type=stored.content_type)


def _read_body(stored: StoredObject) -> bytes:
    # Video containers arrive as a stream and are accumulated chunk by chunk.
    if SourceKind.from_content_type(stored.content_type) is SourceKind.VIDEO:
        buffer = bytearray()
        for chunk in stored.iter_chunks():
            buffer.extend(chunk)
        return bytes(buffer)
    return stored.read()
