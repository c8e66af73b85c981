"""Base class for resource clients."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from api import ApiClient
from mutations import AddMutation, DeleteMutation, MutationResult, UpdateMutation
from notifications import Notifier
from queries import Query, QueryResult
from query_cache import QueryCache


def extract_records(payload: Any, name: str = "") -> List[Dict[str, Any]]:
    """Pull the record list out of a list response.

    Handles a bare list, ``{"data": [...]}`` and ``{"data": {"<name>": [...], "pagination": {...}}}``.
    """
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, Mapping):
        return []
    data = payload.get("data", payload)
    if isinstance(data, list):
        return data
    if not isinstance(data, Mapping):
        return []
    if isinstance(data.get(name), list):
        return data[name]
    for value in data.values():
        if isinstance(value, list):
            return value
    return []


def extract_record(payload: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(payload, Mapping):
        return None
    data = payload.get("data", payload)
    if not isinstance(data, Mapping):
        return None
    nested = [v for v in data.values() if isinstance(v, Mapping)]
    if len(data) == 1 and nested:
        return dict(nested[0])
    return dict(data)


class ResourceClient:
    def __init__(
        self,
        client: ApiClient,
        cache: QueryCache,
        name: str,
        token: Optional[str] = None,
        notifier: Optional[Notifier] = None,
        invalidation_map: Optional[Mapping[str, List[str]]] = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.name = name
        self.token = token
        self.notifier = notifier or Notifier()
        self.invalidation_map = invalidation_map

    def query(self, key: Any, endpoint: Any, mount: bool = True) -> Query:
        return Query(self.client, self.cache, key, endpoint, token=self.token, mount=mount)

    def list(self, params: Optional[Mapping[str, Any]] = None, key: Any = None) -> QueryResult:
        if key is None:
            key = [self.name, dict(params)] if params else [self.name]
        return self.query(key, params if params else self.name, mount=False).fetch()

    def get(self, object_id: Any) -> QueryResult:
        return self.query([self.name, str(object_id)], f"{self.name}/{object_id}", mount=False).fetch()

    def _mutation(self, cls: type, **kwargs: Any) -> Any:
        return cls(
            self.client,
            self.cache,
            self.name,
            token=self.token,
            notifier=self.notifier,
            invalidation_map=self.invalidation_map,
            **kwargs,
        )

    def create(self, data: Any, files: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> MutationResult:
        return self._mutation(AddMutation, **kwargs).handle_add(data, files)

    def update(
        self, object_id: Any, data: Any, files: Optional[Mapping[str, Any]] = None, **kwargs: Any
    ) -> MutationResult:
        return self._mutation(UpdateMutation, **kwargs).handle_update(object_id, data, files)

    def delete(self, object_id: Any, **kwargs: Any) -> MutationResult:
        return self._mutation(DeleteMutation, **kwargs).handle_delete(object_id)


def record_view(client: ApiClient, content_type: str, object_id: Any, token: Optional[str] = None) -> Any:
    """Count a public view of a job, scholarship or other content item."""
    return client.post(f"{content_type}/{object_id}/view", token=token)
