from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import pytest
import requests

from api import ApiClient
from config import Settings
from notifications import Notifier
from query_cache import QueryCache

API_URL = "http://api.test/api"


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        text: Optional[str] = None,
        reason: str = "OK",
    ) -> None:
        self.status_code = status_code
        self.reason = reason
        self._payload = payload
        if payload is not None:
            self.content = json.dumps(payload).encode("utf-8")
        elif text is not None:
            self.content = text.encode("utf-8")
        else:
            self.content = b""

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("response body is not JSON")
        return self._payload


@dataclass
class Call:
    method: str
    url: str
    kwargs: Dict[str, Any] = field(default_factory=dict)

    @property
    def headers(self) -> Dict[str, str]:
        return self.kwargs.get("headers") or {}

    @property
    def json(self) -> Any:
        return self.kwargs.get("json")

    @property
    def data(self) -> Any:
        return self.kwargs.get("data")

    @property
    def files(self) -> Any:
        return self.kwargs.get("files")


class FakeSession:
    """Stands in for requests.Session and records every outgoing request."""

    def __init__(self, handler: Optional[Callable[[Call], Any]] = None) -> None:
        self.handler = handler or (lambda call: FakeResponse(payload={"status": "success"}))
        self.calls: List[Call] = []
        self.headers: Dict[str, str] = {}

    def request(self, method: str, url: str, **kwargs: Any) -> Any:
        call = Call(method.upper(), url, kwargs)
        self.calls.append(call)
        result = self.handler(call)
        if isinstance(result, BaseException):
            raise result
        return result

    def get(self, url: str, **kwargs: Any) -> Any:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> Any:
        return self.request("POST", url, **kwargs)

    def calls_to(self, suffix: str, method: Optional[str] = None) -> List[Call]:
        return [
            c for c in self.calls
            if c.url.split("?")[0].endswith(suffix) and (method is None or c.method == method)
        ]


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def settings() -> Settings:
    return Settings(api_url=API_URL, query_retry_delay=0, upload_retry_delay=0)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> QueryCache:
    return QueryCache(stale_time=300, cache_time=600, clock=clock)


@pytest.fixture()
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture()
def client(settings: Settings, session: FakeSession) -> ApiClient:
    return ApiClient(settings, session=session)


@pytest.fixture()
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture()
def network_error() -> requests.ConnectionError:
    return requests.ConnectionError("connection refused")
