"""
Query/mutation engine.

Reads go through ``fetch_query``: fresh data is served from the cache,
identical in-flight reads share one request, and failures are retried per
``RetryConfig``. Writes go through ``mutate``, which runs the optimistic
protocol under per-key locks.
"""

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Sequence
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

from reviewkit.exceptions import QueryCancelledError
from reviewkit.logging import get_logger, log_cache_event
from reviewkit.query.cache import Fetcher, QueryCache, QueryEntry, QueryStatus
from reviewkit.query.keys import QueryFilter, QueryKey
from reviewkit.query.population import CrossPopulation
from reviewkit.retry import DEFAULT_RETRY_CONFIG, RetryConfig

T = TypeVar("T")

KeyOrFilter = QueryKey | QueryFilter
FetchHook = Callable[[QueryKey, Any], Any]

logger = get_logger("cache")


@dataclass(frozen=True)
class OptimisticUpdate:
    """
    A predictable local effect of a mutation.

    Attributes:
        key: Cache key to write
        updater: Pure function from the current value (None if absent) to
            the expected value; returning None leaves the key untouched
    """

    key: QueryKey
    updater: Callable[[Any], Any]


@dataclass(frozen=True)
class Snapshot:
    key: QueryKey
    existed: bool
    data: Any = None


class QueryClient:
    """
    Cache-backed executor for reads and optimistic mutations.

    Example:
        >>> client = QueryClient()
        >>> pr = await client.fetch_query(key, lambda: provider.get_pull_request(o, r, 1))
    """

    def __init__(
        self,
        cache: QueryCache | None = None,
        retry_config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        cross_populate: bool = True,
        stale_times: dict | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the engine.

        Args:
            cache: Backing cache, created if omitted
            retry_config: Retry policy for reads
            sleep: Coroutine used for backoff waits, in seconds
            cross_populate: Install the user-scoped list population hook
            stale_times: Per-kind staleness overrides for a new cache
            clock: Monotonic clock for a new cache
        """
        self.cache = cache if cache is not None else QueryCache(stale_times=stale_times, clock=clock)
        self.retry_config = retry_config or DEFAULT_RETRY_CONFIG
        self._sleep = sleep
        self._locks: dict[QueryKey, asyncio.Lock] = {}
        self._lock_users: dict[QueryKey, int] = {}
        self._tasks: set[asyncio.Task] = set()
        self._fetch_hooks: list[FetchHook] = []
        self.population: CrossPopulation | None = None
        if cross_populate:
            self.population = CrossPopulation(self.cache)
            self.add_fetch_hook(self.population)

    def add_fetch_hook(self, hook: FetchHook) -> None:
        """Register a callback run after every successful network fetch."""
        self._fetch_hooks.append(hook)

    # Reads

    async def fetch_query(self, key: QueryKey, fetcher: Fetcher, force: bool = False) -> Any:
        """
        Return the value for ``key``, fetching it if needed.

        Args:
            key: Cache key
            fetcher: Zero-argument coroutine function performing the read
            force: Skip the freshness check

        Returns:
            Cached or freshly fetched value

        Raises:
            QueryCancelledError: If the read was cancelled while awaited
            ReviewKitError: The last error once retries are exhausted
        """
        entry = self.cache.ensure(key)
        entry.fetcher = fetcher
        if not force and self.cache.is_fresh(key):
            log_cache_event("hit", str(key))
            return entry.data
        if entry.future is None:
            self._start_fetch(entry, fetcher)
        else:
            log_cache_event("dedupe", str(key))
        return await asyncio.shield(entry.future)

    async def prefetch_query(self, key: QueryKey, fetcher: Fetcher) -> None:
        """Warm the cache, keeping any error in the entry instead of raising."""
        try:
            await self.fetch_query(key, fetcher)
        except Exception as e:
            logger.debug("Prefetch of %s failed: %s", key, e)

    def get_query_data(self, key: QueryKey, default: Any = None) -> Any:
        return self.cache.get_data(key, default)

    def set_query_data(self, key: QueryKey, data: Any) -> None:
        self.cache.set_data(key, data)

    def get_query_state(self, key: QueryKey) -> QueryEntry | None:
        return self.cache.get(key)

    def subscribe(self, key: QueryKey, listener: Callable[[QueryKey, Any], None]) -> Callable[[], None]:
        return self.cache.subscribe(key, listener)

    def cancel_queries(self, filters: KeyOrFilter | Iterable[KeyOrFilter]) -> int:
        """
        Detach awaiters from matching in-flight reads.

        The underlying requests keep running; their results are discarded.

        Returns:
            Number of reads cancelled
        """
        cancelled = 0
        for entry in self.cache.find(filters):
            future = entry.future
            if future is None:
                continue
            entry.generation += 1
            entry.future = None
            entry.status = QueryStatus.SUCCESS if entry.has_data else QueryStatus.IDLE
            if not future.done():
                future.set_exception(QueryCancelledError(entry.key))
            log_cache_event("cancel", str(entry.key))
            cancelled += 1
        return cancelled

    async def invalidate_queries(
        self, filters: KeyOrFilter | Iterable[KeyOrFilter], refetch: bool = True
    ) -> None:
        """
        Mark matching entries stale and refetch the ones being watched.

        Refetch failures are recorded on their entries rather than raised.
        """
        refetches = []
        for entry in self.cache.find(filters):
            self.cache.invalidate(entry)
            if refetch and entry.listeners and entry.fetcher is not None:
                refetches.append(self.fetch_query(entry.key, entry.fetcher, force=True))
        if refetches:
            await asyncio.gather(*refetches, return_exceptions=True)

    def remove_queries(self, filters: KeyOrFilter | Iterable[KeyOrFilter]) -> None:
        for entry in self.cache.find(filters):
            self.cancel_queries(entry.key)
            self.cache.clear_data(entry.key)

    def _start_fetch(self, entry: QueryEntry, fetcher: Fetcher) -> None:
        entry.generation += 1
        future = asyncio.get_running_loop().create_future()
        # Mark the exception retrieved so unawaited failures stay quiet.
        future.add_done_callback(lambda f: f.cancelled() or f.exception())
        entry.future = future
        entry.status = QueryStatus.PENDING
        task = asyncio.create_task(self._run_fetch(entry, fetcher, entry.generation, future))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_fetch(
        self, entry: QueryEntry, fetcher: Fetcher, generation: int, future: asyncio.Future
    ) -> None:
        key = entry.key
        failure_count = 0
        try:
            while True:
                try:
                    data = await fetcher()
                    break
                except Exception as error:
                    if generation != entry.generation:
                        return
                    if not self.retry_config.should_retry(failure_count, error):
                        self._fail(entry, future, error, failure_count + 1)
                        return
                    delay_ms = self.retry_config.retry_delay(failure_count, error)
                    failure_count += 1
                    entry.failure_count = failure_count
                    logger.warning(
                        "Read of %s failed (attempt %d), retrying in %dms: %s",
                        key,
                        failure_count,
                        delay_ms,
                        error,
                    )
                    await self._sleep(delay_ms / 1000)
                    if generation != entry.generation:
                        return
        except asyncio.CancelledError:
            if generation == entry.generation:
                entry.future = None
                entry.status = QueryStatus.SUCCESS if entry.has_data else QueryStatus.IDLE
            if not future.done():
                future.cancel()
            raise

        if generation != entry.generation:
            log_cache_event("discard", str(key), "result of cancelled read")
            return
        entry.future = None
        entry.status = QueryStatus.SUCCESS
        entry.error = None
        entry.failure_count = 0
        self.cache.set_data(key, data)
        log_cache_event("fetch", str(key))
        future.set_result(data)
        for hook in self._fetch_hooks:
            try:
                hook(key, data)
            except Exception:
                logger.exception("Fetch hook %r failed for %s", hook, key)

    def _fail(
        self, entry: QueryEntry, future: asyncio.Future, error: Exception, failure_count: int
    ) -> None:
        entry.future = None
        entry.status = QueryStatus.ERROR
        entry.error = error
        entry.failure_count = failure_count
        logger.error("Read of %s failed after %d attempt(s): %s", entry.key, failure_count, error)
        future.set_exception(error)

    # Mutations

    @asynccontextmanager
    async def _locked(self, key: QueryKey) -> AsyncIterator[None]:
        """Hold the mutation lock for ``key``, dropping it once nobody waits."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    def _snapshot(self, key: QueryKey) -> Snapshot:
        entry = self.cache.get(key)
        if entry is None or not entry.has_data:
            return Snapshot(key, existed=False)
        return Snapshot(key, existed=True, data=entry.data)

    def _restore(self, snapshot: Snapshot) -> None:
        if snapshot.existed:
            self.cache.set_data(snapshot.key, snapshot.data)
        else:
            self.cache.clear_data(snapshot.key)
        log_cache_event("rollback", str(snapshot.key))

    async def mutate(
        self,
        effect: Callable[[], Awaitable[T]],
        updates: Sequence[OptimisticUpdate] = (),
        invalidate: Iterable[KeyOrFilter] = (),
    ) -> T:
        """
        Run a remote write with optimistic local effects.

        Cancels in-flight reads of every updated key, snapshots them, writes
        the updater results, then awaits ``effect``. On failure every
        snapshot is restored before the error propagates. Either way the
        updated keys and ``invalidate`` filters are invalidated. Mutations
        sharing a key are serialised from snapshot to invalidation.

        Args:
            effect: Zero-argument coroutine function performing the write
            updates: Optimistic writes, applied in order
            invalidate: Extra keys or filters to invalidate on settle

        Returns:
            The effect's result
        """
        keys = sorted({update.key for update in updates}, key=QueryKey.sort_key)
        async with AsyncExitStack() as stack:
            for key in keys:
                await stack.enter_async_context(self._locked(key))

            self.cancel_queries(keys)
            snapshots = [self._snapshot(key) for key in keys]
            for update in updates:
                value = update.updater(self.cache.get_data(update.key))
                if value is not None:
                    self.cache.set_data(update.key, value)
                    log_cache_event("optimistic", str(update.key))

            try:
                result = await effect()
            except BaseException:
                for snapshot in reversed(snapshots):
                    self._restore(snapshot)
                raise
            finally:
                await self.invalidate_queries([*keys, *invalidate])
            return result

    async def close(self) -> None:
        """Cancel background reads."""
        self.cancel_queries(QueryFilter())
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
