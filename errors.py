"""Exceptions raised by the admin API client."""

from __future__ import annotations

from typing import Any, Optional

import requests


class ApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (HTTP {self.status_code})"


class UploadError(ApiError):
    pass


class QueryCancelledError(Exception):
    pass


def server_message(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        for field in ("detail", "message", "error"):
            value = payload.get(field)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def error_message(resp: requests.Response, default: str) -> str:
    """Pick the server-supplied message out of an error response."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    return server_message(body) or resp.reason or default


def raise_for_response(resp: requests.Response, default: str, error_cls: type = ApiError) -> None:
    if 200 <= resp.status_code < 300:
        return
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    raise error_cls(error_message(resp, default), status_code=resp.status_code, payload=payload)
