from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..errors import MediaTransformError
from ..models import TimingLog, TransformedAsset

logger = logging.getLogger(__name__)

NO_STORE = "private,no-store"


@dataclass(slots=True)
class Response:
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    is_base64_encoded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Function-URL / API Gateway v2 response shape."""
        payload: Dict[str, Any] = {"statusCode": self.status_code, "headers": dict(self.headers)}
        if self.body is not None:
            payload["body"] = self.body
        if self.is_base64_encoded:
            payload["isBase64Encoded"] = True
        return payload

    def decoded_body(self) -> bytes:
        if self.body is None:
            return b""
        return base64.b64decode(self.body) if self.is_base64_encoded else self.body.encode("utf-8")


class ResponseAssembler:
    def __init__(self, cache_control: str) -> None:
        self.cache_control = cache_control

    def ok(self, asset: TransformedAsset, timing: TimingLog) -> Response:
        return Response(
            status_code=200,
            headers={
                "Content-Type": asset.content_type,
                "Cache-Control": self.cache_control,
                "Server-Timing": timing.header_value(),
            },
            body=base64.b64encode(asset.body).decode("ascii"),
            is_base64_encoded=True,
        )

    @staticmethod
    def redirect(location: str, timing: TimingLog) -> Response:
        return Response(
            status_code=302,
            headers={
                "Location": location,
                "Cache-Control": NO_STORE,
                "Server-Timing": timing.header_value(),
            },
        )

    @staticmethod
    def error(exc: MediaTransformError) -> Response:
        logger.error("APPLICATION ERROR %s: %s (key=%s)", exc.status_code, exc.message, exc.key, exc_info=exc.__cause__)
        return Response(status_code=exc.status_code, body=exc.message)
