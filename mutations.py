"""Create, update and delete mutations with cache invalidation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from api import ApiClient
from errors import ApiError, server_message
from notifications import Notifier
from query_cache import QueryCache

logger = logging.getLogger(__name__)

AUTH_RESOURCES = {"login", "logout", "register"}


@dataclass
class MutationResult:
    data: Any = None
    error: Optional[ApiError] = None
    redirect: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


class Mutation:
    method = "POST"
    default_success_message: Optional[str] = None
    default_error_message = "Request failed"

    def __init__(
        self,
        client: ApiClient,
        cache: QueryCache,
        resource: str,
        token: Optional[str] = None,
        redirect_path: Optional[str] = None,
        success_message: Optional[str] = None,
        error_message: Optional[str] = None,
        on_success: Optional[Callable[[Any], None]] = None,
        notifier: Optional[Notifier] = None,
        navigate: Optional[Callable[[str], None]] = None,
        invalidation_map: Optional[Mapping[str, List[str]]] = None,
        refetch: bool = True,
    ) -> None:
        self.client = client
        self.cache = cache
        self.resource = resource.strip("/")
        self.token = token
        self.redirect_path = redirect_path
        self.success_message = success_message or self.default_success_message
        self.error_message = error_message
        self.on_success = on_success
        self.notifier = notifier or Notifier()
        self.navigate = navigate
        if invalidation_map is None:
            invalidation_map = client.settings.invalidation_map
        self.invalidation_map: Dict[str, List[str]] = {k: list(v) for k, v in invalidation_map.items()}
        self.refetch = refetch

        self.loading = False
        self.success = False
        self.error: Optional[ApiError] = None
        self.response_data: Any = None

    def endpoint(self, object_id: Any = None) -> str:
        if object_id is None:
            return self.resource
        return f"{self.resource}/{object_id}"

    @property
    def invalidates_cache(self) -> bool:
        return not (self.resource.startswith("auth/") or self.resource in AUTH_RESOURCES)

    def related_prefixes(self) -> List[str]:
        prefixes = [self.resource]
        for prefix in self.invalidation_map.get(self.resource, []):
            if prefix not in prefixes:
                prefixes.append(prefix)
        return prefixes

    def _send(self, object_id: Any = None, data: Any = None, files: Optional[Mapping[str, Any]] = None) -> Any:
        if files:
            return self.client.request(
                self.method, self.endpoint(object_id), token=self.token, data=data, files=files
            )
        return self.client.request(self.method, self.endpoint(object_id), token=self.token, json=data)

    def mutate(self, object_id: Any = None, data: Any = None, files: Optional[Mapping[str, Any]] = None) -> MutationResult:
        self.loading = True
        self.success = False
        self.error = None
        try:
            response = self._send(object_id, data, files)
        except ApiError as exc:
            self.loading = False
            self.error = exc
            self.notifier.error(
                server_message(exc.payload) or self.error_message or self.default_error_message
            )
            return MutationResult(error=exc)

        self.loading = False
        self.success = True
        self.response_data = response
        logger.info("%s %s succeeded", self.method, self.endpoint(object_id))
        self._invalidate()
        if self.success_message:
            self.notifier.success(self.success_message)
        if self.on_success is not None:
            self.on_success(response)
        if self.redirect_path and self.navigate is not None:
            self.navigate(self.redirect_path)
        return MutationResult(data=response, redirect=self.redirect_path)

    def _invalidate(self) -> None:
        if not self.invalidates_cache:
            return
        for prefix in self.related_prefixes():
            self.cache.invalidate(prefix=[prefix])
        if self.refetch:
            self.cache.refetch(prefix=[self.resource])


class AddMutation(Mutation):
    method = "POST"
    default_error_message = "Failed to create item"

    def handle_add(self, data: Any, files: Optional[Mapping[str, Any]] = None) -> MutationResult:
        return self.mutate(data=data, files=files)


class UpdateMutation(Mutation):
    method = "PUT"
    default_error_message = "Failed to update"

    def handle_update(self, object_id: Any, data: Any, files: Optional[Mapping[str, Any]] = None) -> MutationResult:
        return self.mutate(object_id, data, files)


class DeleteMutation(Mutation):
    method = "DELETE"
    default_success_message = "Item deleted successfully"
    default_error_message = "Failed to delete item"

    def handle_delete(self, object_id: Any) -> MutationResult:
        return self.mutate(object_id)
