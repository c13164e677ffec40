from __future__ import annotations

import logging
from typing import Optional

from ..models import TransformedAsset
from ..storage.stores import ObjectStore

logger = logging.getLogger(__name__)


def cache_key(original_key: str, operations: str) -> str:
    return f"{original_key}/{operations}"


class CacheWriter:
    """Best-effort upload of transformed assets to the cache bucket."""

    def __init__(self, store: ObjectStore, bucket: str, cache_control: Optional[str] = None) -> None:
        self.store = store
        self.bucket = bucket
        self.cache_control = cache_control

    def write(self, original_key: str, operations: str, asset: TransformedAsset) -> bool:
        """Upload ``asset`` and report whether it landed; failures never propagate."""
        key = cache_key(original_key, operations)
        try:
            self.store.put_object(
                self.bucket,
                key,
                asset.body,
                content_type=asset.content_type,
                cache_control=self.cache_control,
            )
        except Exception:  # noqa: BLE001 - the response does not depend on the cache
            logger.exception("Could not upload transformed image to %s/%s", self.bucket, key)
            return False
        logger.debug("Cached %s bytes at %s/%s", len(asset), self.bucket, key)
        return True
