from __future__ import annotations

from typing import Any, Dict, Optional


class ApiError(Exception):
    """Failure rendered as {"error": ..., "raw": ...} with the given status."""

    def __init__(self, status_code: int, error: str, raw: Optional[Any] = None):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.raw = raw

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.raw is not None:
            body["raw"] = self.raw
        return body


def bad_request(error: str) -> ApiError:
    return ApiError(400, error)


def upstream_failure(error: str, raw: Optional[Any] = None) -> ApiError:
    return ApiError(500, error, raw)
