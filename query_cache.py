"""In-memory query cache shared by queries and mutations.

Entries are addressed by normalized tuple keys. A query key ``"jobs"`` and
``["jobs"]`` refer to the same entry; ``["jobs", {"page": 2}]`` lives under the
``jobs`` prefix, so invalidating ``jobs`` marks it stale as well.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

logger = logging.getLogger(__name__)

CacheKey = Tuple[Hashable, ...]
Predicate = Callable[["CacheEntry"], bool]


def _freeze(value: Any) -> Hashable:
    if isinstance(value, dict):
        return tuple(sorted((str(k), _freeze(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, set):
        return tuple(sorted(_freeze(v) for v in value))
    return value


def normalize_key(key: Any) -> CacheKey:
    if isinstance(key, (list, tuple)):
        return tuple(_freeze(part) for part in key)
    return (_freeze(key),)


@dataclass
class CacheEntry:
    key: CacheKey
    data: Any = None
    error: Optional[BaseException] = None
    updated_at: Optional[float] = None
    last_used: float = 0.0
    invalidated: bool = False
    subscribers: List[Callable[["CacheEntry"], None]] = field(default_factory=list)
    fetcher: Optional[Callable[[], Any]] = None

    def matches(self, prefix: CacheKey) -> bool:
        return self.key[: len(prefix)] == prefix


class QueryCache:
    def __init__(
        self,
        stale_time: float = 300.0,
        cache_time: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.stale_time = stale_time
        self.cache_time = cache_time
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Any) -> bool:
        return normalize_key(key) in self._entries

    def _ensure(self, key: CacheKey) -> CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key, last_used=self._clock())
            self._entries[key] = entry
        return entry

    def get(self, key: Any) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(normalize_key(key))
            if entry is not None:
                entry.last_used = self._clock()
            return entry

    def get_data(self, key: Any) -> Any:
        entry = self.get(key)
        return entry.data if entry else None

    def is_stale(self, key: Any) -> bool:
        with self._lock:
            entry = self._entries.get(normalize_key(key))
            if entry is None or entry.invalidated or entry.updated_at is None:
                return True
            return self._clock() - entry.updated_at >= self.stale_time

    def set_data(self, key: Any, data: Any) -> CacheEntry:
        with self._lock:
            entry = self._ensure(normalize_key(key))
            entry.data = data
            entry.error = None
            entry.updated_at = self._clock()
            entry.last_used = entry.updated_at
            entry.invalidated = False
            callbacks = list(entry.subscribers)
        self._notify(entry, callbacks)
        return entry

    def set_error(self, key: Any, error: BaseException) -> CacheEntry:
        with self._lock:
            entry = self._ensure(normalize_key(key))
            entry.error = error
            entry.last_used = self._clock()
            callbacks = list(entry.subscribers)
        self._notify(entry, callbacks)
        return entry

    def subscribe(self, key: Any, callback: Callable[[CacheEntry], None]) -> Callable[[], None]:
        with self._lock:
            entry = self._ensure(normalize_key(key))
            entry.subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in entry.subscribers:
                    entry.subscribers.remove(callback)
                    entry.last_used = self._clock()

        return unsubscribe

    def register_fetcher(self, key: Any, fetcher: Callable[[], Any]) -> None:
        with self._lock:
            self._ensure(normalize_key(key)).fetcher = fetcher

    def unregister_fetcher(self, key: Any, fetcher: Optional[Callable[[], Any]] = None) -> None:
        with self._lock:
            entry = self._entries.get(normalize_key(key))
            if entry is None:
                return
            if fetcher is None or entry.fetcher == fetcher:
                entry.fetcher = None
                entry.last_used = self._clock()

    def find(self, prefix: Any = None, predicate: Optional[Predicate] = None) -> List[CacheEntry]:
        norm = normalize_key(prefix) if prefix is not None else ()
        with self._lock:
            return [
                entry
                for entry in self._entries.values()
                if entry.matches(norm) and (predicate is None or predicate(entry))
            ]

    def invalidate(self, prefix: Any = None, predicate: Optional[Predicate] = None) -> int:
        entries = self.find(prefix, predicate)
        notifications = []
        with self._lock:
            for entry in entries:
                entry.invalidated = True
                notifications.append((entry, list(entry.subscribers)))
        for entry, callbacks in notifications:
            self._notify(entry, callbacks)
        logger.debug("Invalidated %d cache entries under %r", len(entries), prefix)
        return len(entries)

    def refetch(self, prefix: Any = None, predicate: Optional[Predicate] = None) -> int:
        fetchers = [entry.fetcher for entry in self.find(prefix, predicate) if entry.fetcher is not None]
        for fetcher in fetchers:
            fetcher()
        return len(fetchers)

    def remove(self, key: Any) -> bool:
        with self._lock:
            return self._entries.pop(normalize_key(key), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def collect_garbage(self) -> int:
        """Drop unobserved entries that have not been used for ``cache_time``."""
        now = self._clock()
        with self._lock:
            expired = [
                key
                for key, entry in self._entries.items()
                if not entry.subscribers and entry.fetcher is None and now - entry.last_used >= self.cache_time
            ]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Evicted %d unused cache entries", len(expired))
        return len(expired)

    @staticmethod
    def _notify(entry: CacheEntry, callbacks: List[Callable[[CacheEntry], None]]) -> None:
        for callback in callbacks:
            callback(entry)
