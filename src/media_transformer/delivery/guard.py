from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class OutputSizeGuard:
    """Payload ceiling of the synchronous response path."""

    max_bytes: int

    def exceeds(self, data: bytes) -> bool:
        return len(data) > self.max_bytes

    @staticmethod
    def redirect_location(key: str, operations: str) -> str:
        return f"/{key}?{operations.replace(',', '&')}"
