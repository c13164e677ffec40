from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from functools import lru_cache
from typing import Any, Mapping, Optional

import boto3

from .config import Settings
from .delivery.cache import CacheWriter
from .delivery.guard import OutputSizeGuard
from .delivery.response import Response, ResponseAssembler
from .engine.transformer import TransformationEngine
from .errors import BadRequest, MediaTransformError, ResponseTooLarge
from .models import Asset, SourceKind, TimingLog
from .operations.parser import parse_operations, parse_request_path
from .storage.client import AssetStoreClient
from .storage.stores import S3ObjectStore
from .transcoding.ffmpeg import FFmpegTranscoder

logger = logging.getLogger(__name__)


class MediaTransformService:
    """Serves ``GET /<prefix>/<asset-path>/<operations>`` requests.

    All collaborators are injected; the service itself holds no per-request
    state and can be shared by concurrent invocations.
    """

    def __init__(
        self,
        assets: AssetStoreClient,
        engine: TransformationEngine,
        guard: OutputSizeGuard,
        responses: ResponseAssembler,
        cache: Optional[CacheWriter] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.assets = assets
        self.engine = engine
        self.guard = guard
        self.responses = responses
        self.cache = cache
        self.executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="overlay")

    def handle(self, event: Mapping[str, Any]) -> Response:
        try:
            return self._handle(event)
        except MediaTransformError as exc:
            return self.responses.error(exc)

    def _handle(self, event: Mapping[str, Any]) -> Response:
        http = (event.get("requestContext") or {}).get("http") or {}
        if http.get("method") != "GET":
            raise BadRequest("Only GET method is supported")

        key, operations_text = parse_request_path(http.get("path", ""))
        operations = parse_operations(operations_text)
        if operations.ignored:
            logger.debug("Ignoring operations %s for %s", sorted(operations.ignored), key)
        timing = TimingLog()

        overlay: Optional[Future] = None
        if operations.frame and not operations.wants_video:
            overlay = self.executor.submit(self.assets.fetch_overlay, operations.frame, False)

        stored = self.assets.open_original(key)
        if operations.frame and overlay is None:
            video_path = SourceKind.from_content_type(stored.content_type) is SourceKind.VIDEO
            overlay = self.executor.submit(self.assets.fetch_overlay, operations.frame, video_path)
        original = self.assets.drain(key, stored)
        timing.mark("img-download")

        transformed = self.engine.transform(original, operations, _loader(overlay))
        timing.mark("img-transform")

        too_big = self.guard.exceeds(transformed.body)
        if self.cache is not None:
            if self.cache.write(key, operations.raw, transformed):
                timing.mark("img-upload")
                if too_big:
                    location = self.guard.redirect_location(key, operations.raw)
                    logger.info("Transformed %s is %s bytes, redirecting to %s", key, len(transformed), location)
                    return self.responses.redirect(location, timing)

        if too_big:
            raise ResponseTooLarge("Requested transformed image is too big", key=key)
        return self.responses.ok(transformed, timing)


def _loader(overlay: Optional[Future]):
    def load() -> Optional[Asset]:
        return overlay.result() if overlay is not None else None

    return load


def build_service(settings: Settings, *, origin_client=None, cache_client=None) -> MediaTransformService:
    """Wire the S3-backed service; boto3 clients can be injected for tests."""
    origin_client = origin_client or boto3.client("s3", region_name=settings.origin_region)
    assets = AssetStoreClient(S3ObjectStore(origin_client), settings.original_bucket, settings.assets_bucket)

    cache = None
    if settings.caching_enabled:
        cache_client = cache_client or boto3.client("s3", region_name=settings.cache_region)
        cache = CacheWriter(S3ObjectStore(cache_client), settings.transformed_bucket, settings.cache_control)

    return MediaTransformService(
        assets=assets,
        engine=TransformationEngine(FFmpegTranscoder(settings.ffmpeg_path, settings.temp_dir)),
        guard=OutputSizeGuard(settings.max_output_bytes),
        responses=ResponseAssembler(settings.cache_control),
        cache=cache,
    )


@lru_cache()
def get_service() -> MediaTransformService:  # pragma: no cover - runtime wiring
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    return build_service(settings)


def lambda_handler(event: Mapping[str, Any], context: Any = None) -> dict:  # pragma: no cover - runtime wiring
    return get_service().handle(event).to_dict()
