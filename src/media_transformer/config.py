from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_CACHE_CONTROL = "max-age=31622400"
DEFAULT_MAX_OUTPUT_BYTES = 4_700_000


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime configuration provided by the deployment environment."""

    original_bucket: str
    assets_bucket: str
    transformed_bucket: Optional[str] = None
    cache_control: str = DEFAULT_CACHE_CONTROL
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    origin_region: str = "eu-west-2"
    cache_region: str = "us-east-1"
    ffmpeg_path: str = "ffmpeg"
    temp_dir: Optional[Path] = None
    log_level: str = "INFO"

    @property
    def caching_enabled(self) -> bool:
        return bool(self.transformed_bucket)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        try:
            original_bucket = env["originalImageBucketName"]
        except KeyError as exc:
            raise ValueError("originalImageBucketName must be set") from exc

        max_size_raw = env.get("maxImageSize")
        max_output_bytes = DEFAULT_MAX_OUTPUT_BYTES
        if max_size_raw:
            try:
                max_output_bytes = int(max_size_raw)
            except ValueError as exc:
                raise ValueError(f"maxImageSize must be an integer, got {max_size_raw!r}") from exc

        temp_dir = env.get("TEMP_DIR")
        settings = cls(
            original_bucket=original_bucket,
            assets_bucket=env.get("assetsBucketName") or original_bucket,
            transformed_bucket=env.get("transformedImageBucketName") or None,
            cache_control=env.get("transformedImageCacheTTL") or DEFAULT_CACHE_CONTROL,
            max_output_bytes=max_output_bytes,
            origin_region=env.get("ORIGIN_REGION", "eu-west-2"),
            cache_region=env.get("CACHE_REGION", "us-east-1"),
            ffmpeg_path=env.get("FFMPEG_PATH", "ffmpeg"),
            temp_dir=Path(temp_dir) if temp_dir else None,
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )
        logger.debug(
            "Loaded settings: original=%s assets=%s transformed=%s max_bytes=%s",
            settings.original_bucket,
            settings.assets_bucket,
            settings.transformed_bucket,
            settings.max_output_bytes,
        )
        return settings
