"""
In-memory store of query results.

The cache only holds state. Fetching, retrying and locking live in
``QueryClient``; everything that reads or writes an entry goes through the
key-scoped methods here.
"""

import asyncio
import math
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from reviewkit.logging import get_logger, log_cache_event
from reviewkit.query.keys import STALE_TIMES, QueryFilter, QueryKey

logger = get_logger("cache")

Listener = Callable[[QueryKey, Any], None]
Fetcher = Callable[[], Awaitable[Any]]


class QueryStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class QueryEntry:
    """
    Cached state for one key.

    Attributes:
        key: The entry's key
        data: Last value written, or None when ``has_data`` is False
        has_data: Whether a value is present
        status: Lifecycle status of the latest read
        error: Error of the latest failed read
        failure_count: Consecutive failures of the latest read
        updated_at: Clock reading of the last write
        invalidated: Set by invalidation, cleared by the next write
        generation: Bumped whenever an in-flight read is started or cancelled
        fetcher: Last fetcher used for this key, reused by refetches
        future: Shared result of the in-flight read, if any
    """

    key: QueryKey
    data: Any = None
    has_data: bool = False
    status: QueryStatus = QueryStatus.IDLE
    error: BaseException | None = None
    failure_count: int = 0
    updated_at: float | None = None
    invalidated: bool = False
    generation: int = 0
    fetcher: Fetcher | None = None
    future: asyncio.Future | None = None
    listeners: list[Listener] = field(default_factory=list)

    @property
    def is_fetching(self) -> bool:
        return self.future is not None


class QueryCache:
    """Key-scoped storage with listener notification."""

    def __init__(
        self,
        stale_times: dict | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the cache.

        Args:
            stale_times: Per-``ResourceKind`` overrides of the staleness window
            clock: Monotonic clock in seconds
        """
        self._entries: dict[QueryKey, QueryEntry] = {}
        self._stale_times = {**STALE_TIMES, **(stale_times or {})}
        self.clock = clock

    def __contains__(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.has_data

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: QueryKey) -> QueryEntry | None:
        return self._entries.get(key)

    def ensure(self, key: QueryKey) -> QueryEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = QueryEntry(key)
        return entry

    def entries(self) -> list[QueryEntry]:
        return list(self._entries.values())

    def find(self, filters: QueryKey | QueryFilter | Iterable[QueryKey | QueryFilter]) -> list[QueryEntry]:
        """Entries matching any of the given keys or filters."""
        if isinstance(filters, (QueryKey, QueryFilter)):
            filters = [filters]
        filters = list(filters)
        found = []
        for key, entry in self._entries.items():
            for f in filters:
                if (f == key) if isinstance(f, QueryKey) else f.matches(key):
                    found.append(entry)
                    break
        return found

    def stale_time(self, key: QueryKey) -> float:
        return self._stale_times.get(key.kind, math.inf)

    def is_fresh(self, key: QueryKey) -> bool:
        """True if the key holds data that is neither invalidated nor past its window."""
        entry = self._entries.get(key)
        if entry is None or not entry.has_data or entry.invalidated or entry.updated_at is None:
            return False
        return self.clock() - entry.updated_at < self.stale_time(key)

    def get_data(self, key: QueryKey, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None or not entry.has_data:
            return default
        return entry.data

    def set_data(self, key: QueryKey, data: Any) -> QueryEntry:
        """Write a value, mark it fresh and notify listeners."""
        entry = self.ensure(key)
        entry.data = data
        entry.has_data = True
        entry.updated_at = self.clock()
        entry.invalidated = False
        if entry.status is not QueryStatus.PENDING:
            entry.status = QueryStatus.SUCCESS
            entry.error = None
            entry.failure_count = 0
        self._notify(entry)
        return entry

    def clear_data(self, key: QueryKey) -> None:
        """Drop a key's value, keeping its listeners and fetcher."""
        entry = self._entries.get(key)
        if entry is None:
            return
        had_data = entry.has_data
        entry.data = None
        entry.has_data = False
        entry.updated_at = None
        if not entry.is_fetching:
            entry.status = QueryStatus.IDLE
        if not entry.listeners and entry.fetcher is None and not entry.is_fetching:
            del self._entries[key]
        elif had_data:
            self._notify(entry)

    def invalidate(self, entry: QueryEntry) -> None:
        entry.invalidated = True
        log_cache_event("invalidate", str(entry.key))

    def subscribe(self, key: QueryKey, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Callable that removes the listener
        """
        entry = self.ensure(key)
        entry.listeners.append(listener)

        def unsubscribe() -> None:
            if listener in entry.listeners:
                entry.listeners.remove(listener)

        return unsubscribe

    def has_listeners(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and bool(entry.listeners)

    def clear(self) -> None:
        self._entries.clear()

    def _notify(self, entry: QueryEntry) -> None:
        for listener in list(entry.listeners):
            try:
                listener(entry.key, entry.data)
            except Exception:
                logger.exception("Listener for %s failed", entry.key)
