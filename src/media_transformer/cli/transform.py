from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Optional

from ..config import DEFAULT_CACHE_CONTROL, DEFAULT_MAX_OUTPUT_BYTES
from ..delivery.cache import CacheWriter
from ..delivery.guard import OutputSizeGuard
from ..delivery.response import ResponseAssembler
from ..engine.transformer import TransformationEngine
from ..handler import MediaTransformService
from ..storage.client import AssetStoreClient
from ..storage.stores import HttpObjectStore, LocalObjectStore, ObjectStore
from ..transcoding.ffmpeg import FFmpegTranscoder


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run one media transformation request locally")
    parser.add_argument(
        "path",
        help="Request path, e.g. /images/rio/1.jpeg/width=100,format=webp",
    )
    parser.add_argument(
        "--root", type=Path, default=Path("storage"), help="Directory holding one sub-directory per bucket"
    )
    parser.add_argument(
        "--origin-url", default=None, help="Read originals and overlays from this HTTP origin instead of --root"
    )
    parser.add_argument("--original-bucket", default="originals", help="Bucket holding original assets")
    parser.add_argument("--assets-bucket", default="assets", help="Bucket holding overlay frames")
    parser.add_argument("--transformed-bucket", default="transformed", help="Cache bucket for transformed assets")
    parser.add_argument("--no-cache", action="store_true", help="Do not write transformed assets to the cache bucket")
    parser.add_argument(
        "--max-size", type=int, default=DEFAULT_MAX_OUTPUT_BYTES, help="Largest body (bytes) returned inline"
    )
    parser.add_argument("--output", type=Path, default=None, help="Write the response body to this file")
    parser.add_argument("--ffmpeg", default=None, help="Path to the ffmpeg binary")
    return parser.parse_args(argv)


def _initialize_service(args: argparse.Namespace) -> MediaTransformService:
    local = LocalObjectStore(args.root)
    origin: ObjectStore = HttpObjectStore(args.origin_url) if args.origin_url else local
    cache_control = _load_env_value("transformedImageCacheTTL") or DEFAULT_CACHE_CONTROL
    cache = None if args.no_cache else CacheWriter(local, args.transformed_bucket, cache_control)
    ffmpeg = args.ffmpeg or _load_env_value("FFMPEG_PATH") or "ffmpeg"

    return MediaTransformService(
        assets=AssetStoreClient(origin, args.original_bucket, args.assets_bucket),
        engine=TransformationEngine(FFmpegTranscoder(ffmpeg)),
        guard=OutputSizeGuard(args.max_size),
        responses=ResponseAssembler(cache_control),
        cache=cache,
    )


def _load_env_value(name: str) -> Optional[str]:
    env_value = os.getenv(name)
    if env_value:
        value = env_value.strip()
        if value:
            return value

    env_path = Path(".env")
    if not env_path.exists():
        return None

    try:
        for line in env_path.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if "=" not in stripped:
                continue
            key, raw_value = stripped.split("=", 1)
            if key.strip() == name:
                value = raw_value.strip().strip('"').strip("'")
                return value or None
    except OSError:
        logger.debug("Unable to read .env file for %s", name, exc_info=True)
    return None


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    service = _initialize_service(args)
    response = service.handle({"requestContext": {"http": {"method": "GET", "path": args.path}}})

    logger.info("Status %s", response.status_code)
    for name, value in response.headers.items():
        logger.info("%s: %s", name, value)

    if response.status_code != 200:
        if response.body:
            logger.error("%s", response.body)
        return 0 if response.status_code == 302 else 1

    body = response.decoded_body()
    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_bytes(body)
        logger.info("Stored %s bytes at %s", len(body), args.output)
    else:
        logger.info("Transformed body is %s bytes (use --output to save it)", len(body))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
