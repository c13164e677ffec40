from __future__ import annotations

from typing import Optional


class MediaTransformError(Exception):
    """Base error for a request that cannot be served.

    ``message`` is the short text returned to the caller; anything more
    detailed belongs in the logs.
    """

    status_code = 500

    def __init__(self, message: str, *, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.key = key


class BadRequest(MediaTransformError):
    status_code = 400


class NotFound(MediaTransformError):
    status_code = 404


class StoreUnavailable(MediaTransformError):
    status_code = 500


class TransformFailed(MediaTransformError):
    status_code = 500


class TranscodeFailed(MediaTransformError):
    status_code = 500

    def __init__(self, message: str, *, exit_code: Optional[int] = None, key: Optional[str] = None) -> None:
        super().__init__(message, key=key)
        self.exit_code = exit_code


class ResponseTooLarge(MediaTransformError):
    status_code = 403
