"""Object store backends.

Every backend speaks the same two calls the transformation pipeline needs:
``get_object(bucket, key)`` and ``put_object(bucket, key, data, ...)``.
Buckets map to S3 buckets, to URL prefixes of an HTTP origin, or to
sub-directories of a local root depending on the backend.
"""
from __future__ import annotations

import logging
import mimetypes
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

import httpx
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}
DEFAULT_CONTENT_TYPE = "application/octet-stream"

for _content_type, _extension in (
    ("video/webm", ".webm"),
    ("video/mp4", ".mp4"),
    ("image/webp", ".webp"),
    ("image/svg+xml", ".svg"),
):
    mimetypes.add_type(_content_type, _extension)


class ObjectNotFound(LookupError):
    """Raised by a backend when ``bucket/key`` does not exist."""

    def __init__(self, bucket: str, key: str) -> None:
        super().__init__(f"{bucket}/{key}")
        self.bucket = bucket
        self.key = key


class StoredObject:
    """An object body that has not been drained yet."""

    __slots__ = ("content_type", "_chunks", "_close")

    def __init__(
        self,
        content_type: Optional[str],
        chunks: Iterable[bytes],
        close: Optional[Callable[[], None]] = None,
    ) -> None:
        self.content_type = content_type or DEFAULT_CONTENT_TYPE
        self._chunks = chunks
        self._close = close

    def iter_chunks(self) -> Iterator[bytes]:
        try:
            for chunk in self._chunks:
                if chunk:
                    yield chunk
        finally:
            self.close()

    def read(self) -> bytes:
        return b"".join(self.iter_chunks())

    def close(self) -> None:
        if self._close is not None:
            close, self._close = self._close, None
            close()


class ObjectStore(ABC):
    @abstractmethod
    def get_object(self, bucket: str, key: str) -> StoredObject:
        """Open ``bucket/key`` or raise ``ObjectNotFound``."""

    @abstractmethod
    def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: Optional[str] = None,
    ) -> None:
        """Store ``data`` under ``bucket/key``."""


class S3ObjectStore(ObjectStore):
    """S3 backend over an injected boto3 client."""

    def __init__(self, client, chunk_size: int = 1024 * 1024) -> None:
        self.client = client
        self.chunk_size = chunk_size

    def get_object(self, bucket: str, key: str) -> StoredObject:
        try:
            response = self.client.get_object(Bucket=bucket, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                raise ObjectNotFound(bucket, key) from exc
            raise
        logger.debug("Got response from S3 for %s/%s", bucket, key)
        body = response["Body"]
        return StoredObject(
            response.get("ContentType"),
            body.iter_chunks(chunk_size=self.chunk_size),
            body.close,
        )

    def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: Optional[str] = None,
    ) -> None:
        params = {"Bucket": bucket, "Key": key, "Body": data, "ContentType": content_type}
        if cache_control:
            params["CacheControl"] = cache_control
        self.client.put_object(**params)


class HttpObjectStore(ObjectStore):
    """Read-only origin serving objects at ``<base_url>/<bucket>/<key>``."""

    def __init__(self, base_url: str, client: Optional[httpx.Client] = None, timeout: float = 20.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def get_object(self, bucket: str, key: str) -> StoredObject:
        url = f"{self.base_url}/{bucket}/{key.lstrip('/')}"
        request = self.client.build_request("GET", url)
        response = self.client.send(request, stream=True)
        if response.status_code == 404:
            response.close()
            raise ObjectNotFound(bucket, key)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError:
            response.close()
            raise
        content_type = response.headers.get("content-type", "").split(";")[0].strip() or None
        return StoredObject(content_type, response.iter_bytes(), response.close)

    def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: Optional[str] = None,
    ) -> None:
        raise PermissionError("HTTP origins are read-only")


class LocalObjectStore(ObjectStore):
    """Buckets as sub-directories of ``root``; handy for local runs and tests."""

    def __init__(self, root: Path, chunk_size: int = 64 * 1024) -> None:
        self.root = root
        self.chunk_size = chunk_size

    def _path(self, bucket: str, key: str) -> Path:
        path = (self.root / bucket / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ObjectNotFound(bucket, key)
        return path

    def get_object(self, bucket: str, key: str) -> StoredObject:
        path = self._path(bucket, key)
        if not path.is_file():
            raise ObjectNotFound(bucket, key)
        content_type, _ = mimetypes.guess_type(path.name)
        handle = path.open("rb")
        chunks = iter(lambda: handle.read(self.chunk_size), b"")
        return StoredObject(content_type, chunks, handle.close)

    def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: Optional[str] = None,
    ) -> None:
        path = self._path(bucket, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.debug("Stored %s bytes (%s) at %s", len(data), content_type, path)


STORE_ERRORS: tuple[type[BaseException], ...] = (ClientError, BotoCoreError, httpx.HTTPError, OSError)
