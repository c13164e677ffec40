from .config import Settings
from .delivery.cache import CacheWriter
from .delivery.guard import OutputSizeGuard
from .delivery.response import Response, ResponseAssembler
from .engine.imaging import ImageTransformer
from .engine.transformer import TransformationEngine
from .errors import (
    BadRequest,
    MediaTransformError,
    NotFound,
    ResponseTooLarge,
    StoreUnavailable,
    TranscodeFailed,
    TransformFailed,
)
from .handler import MediaTransformService, build_service
from .models import Asset, Operations, OutputFormat, ResizeSpec, SourceKind, TimingLog, TransformedAsset
from .operations.parser import parse_operations, parse_request_path
from .storage.client import AssetStoreClient
from .storage.stores import HttpObjectStore, LocalObjectStore, ObjectStore, S3ObjectStore
from .transcoding.ffmpeg import FFmpegTranscoder

__all__ = [
    "Asset",
    "AssetStoreClient",
    "BadRequest",
    "CacheWriter",
    "FFmpegTranscoder",
    "HttpObjectStore",
    "ImageTransformer",
    "LocalObjectStore",
    "MediaTransformError",
    "MediaTransformService",
    "NotFound",
    "ObjectStore",
    "Operations",
    "OutputFormat",
    "OutputSizeGuard",
    "ResizeSpec",
    "Response",
    "ResponseAssembler",
    "ResponseTooLarge",
    "S3ObjectStore",
    "Settings",
    "SourceKind",
    "StoreUnavailable",
    "TimingLog",
    "TranscodeFailed",
    "TransformFailed",
    "TransformationEngine",
    "TransformedAsset",
    "build_service",
    "parse_operations",
    "parse_request_path",
]
