"""Cached GET queries against the admin API."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Union

from api import ApiClient, build_endpoint
from errors import ApiError, QueryCancelledError
from query_cache import QueryCache, normalize_key

logger = logging.getLogger(__name__)

Endpoint = Union[str, Mapping[str, Any]]

IDLE = "idle"
LOADING = "loading"
SUCCESS = "success"
ERROR = "error"


class CancelToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise QueryCancelledError("query was cancelled")


@dataclass
class QueryResult:
    data: Any = None
    error: Optional[BaseException] = None
    status: str = IDLE
    refetch: Optional[Callable[[], "QueryResult"]] = None

    @property
    def is_loading(self) -> bool:
        return self.status == LOADING

    @property
    def is_error(self) -> bool:
        return self.status == ERROR

    @property
    def is_success(self) -> bool:
        return self.status == SUCCESS


def _resolve_endpoint(query_key: Any, endpoint: Endpoint) -> str:
    if isinstance(endpoint, Mapping):
        # object endpoints become query parameters on the key's base path
        base = query_key[0] if isinstance(query_key, (list, tuple)) else query_key
        return build_endpoint(str(base), endpoint)
    return endpoint


class Query:
    """One cached read. Closing it is the equivalent of a component unmount."""

    def __init__(
        self,
        client: ApiClient,
        cache: QueryCache,
        query_key: Any,
        endpoint: Endpoint,
        token: Optional[str] = None,
        retry: Optional[int] = None,
        retry_delay: Optional[float] = None,
        mount: bool = True,
    ) -> None:
        self.client = client
        self.cache = cache
        self.key = normalize_key(query_key)
        self.endpoint = _resolve_endpoint(query_key, endpoint)
        self.token = token
        self.retry = client.settings.query_retry if retry is None else retry
        self.retry_delay = client.settings.query_retry_delay if retry_delay is None else retry_delay
        self.status = IDLE
        self._in_flight: Optional[CancelToken] = None
        self._lock = threading.Lock()
        # unmounted queries leave no fetcher behind
        self.mounted = mount
        if mount:
            cache.register_fetcher(self.key, self.refetch)

    def snapshot(self) -> QueryResult:
        entry = self.cache.get(self.key)
        data = entry.data if entry else None
        error = entry.error if entry else None
        return QueryResult(data=data, error=error, status=self.status, refetch=self.refetch)

    def __enter__(self) -> "Query":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def fetch(self, force: bool = False, cancel: Optional[CancelToken] = None) -> QueryResult:
        if not force and not self.cache.is_stale(self.key):
            logger.debug("Cache hit for %r", self.key)
            entry = self.cache.get(self.key)
            # a failed refetch keeps the fresh data but reports the error
            self.status = ERROR if entry is not None and entry.error is not None else SUCCESS
            return self.snapshot()

        token = cancel or CancelToken()
        with self._lock:
            if self._in_flight is not None:
                self._in_flight.cancel()
            self._in_flight = token
        previous_status = self.status
        self.status = LOADING

        try:
            data = self._get_with_retry(token)
        except QueryCancelledError:
            logger.debug("Fetch for %r cancelled", self.key)
            self.status = previous_status
            return self.snapshot()
        except ApiError as exc:
            logger.warning("Fetch for %r failed: %s", self.key, exc)
            self.status = ERROR
            self.cache.set_error(self.key, exc)
            return self.snapshot()
        finally:
            with self._lock:
                if self._in_flight is token:
                    self._in_flight = None

        self.status = SUCCESS
        self.cache.set_data(self.key, data)
        return self.snapshot()

    def refetch(self) -> QueryResult:
        return self.fetch(force=True)

    def _get_with_retry(self, cancel: CancelToken) -> Any:
        attempt = 0
        while True:
            try:
                return self.client.get(self.endpoint, token=self.token, cancel=cancel)
            except ApiError:
                if attempt >= self.retry:
                    raise
                attempt += 1
                logger.warning("Retrying %s (attempt %d)", self.endpoint, attempt + 1)
                if self.retry_delay:
                    time.sleep(self.retry_delay)
                cancel.raise_if_cancelled()

    def close(self) -> None:
        with self._lock:
            if self._in_flight is not None:
                self._in_flight.cancel()
                self._in_flight = None
        if self.mounted:
            self.cache.unregister_fetcher(self.key, self.refetch)
            self.mounted = False


def fetch_objects(
    client: ApiClient,
    cache: QueryCache,
    query_key: Any,
    endpoint: Endpoint,
    token: Optional[str] = None,
) -> QueryResult:
    return Query(client, cache, query_key, endpoint, token=token, mount=False).fetch()


def fetch_object(
    client: ApiClient,
    cache: QueryCache,
    query_key: Any,
    endpoint: str,
    object_id: Any,
    token: Optional[str] = None,
) -> QueryResult:
    path = endpoint
    if str(object_id) not in path:
        path = f"{path.rstrip('/')}/{object_id}"
    return Query(client, cache, query_key, path, token=token, mount=False).fetch()
