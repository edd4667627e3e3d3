# backend/pos_dashboard/client/query.py
"""
Per-key query state machine with stale-while-revalidate reads.

    idle -> fetching -> settled | failed
    settled/failed -> fetching   (timer, manual refetch or stale read)

A cached value keeps being served while a refresh is in flight. Retries
stay inside `fetching`; `failed` is entered only once retries are spent.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from pos_dashboard.client.query_client import QueryClient
from pos_dashboard.errors import is_transient_error

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]


class QueryStatus(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    SETTLED = "settled"
    FAILED = "failed"


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000

    def delay_ms_for(self, attempt: int) -> int:
        """Delay before retry `attempt` (0-indexed): min(base * 2^attempt, max)."""
        return min(self.base_delay_ms * 2 ** attempt, self.max_delay_ms)

    def delay_for(self, attempt: int) -> float:
        return self.delay_ms_for(attempt) / 1000.0

    def should_retry(self, failure_count: int, error: BaseException) -> bool:
        """failure_count = failures already retried. Only network-class errors are retried."""
        return failure_count < self.max_retries and is_transient_error(error)


NO_RETRY = RetryPolicy(max_retries=0)


@dataclass(frozen=True)
class QueryOptions:
    refetch_interval: Optional[float] = 30.0
    stale_time: float = 5 * 60.0
    cache_time: float = 10 * 60.0
    enabled: bool = True
    retry: RetryPolicy = field(default_factory=RetryPolicy)


@dataclass(frozen=True)
class QueryView:
    key: str
    status: QueryStatus
    data: Any = None
    error: Optional[BaseException] = None
    is_fetching: bool = False
    is_stale: bool = False
    failure_count: int = 0
    updated_at: Optional[datetime] = None

    @property
    def is_loading(self) -> bool:
        # first load only: nothing to show yet
        return self.is_fetching and self.data is None

    @property
    def is_refetching(self) -> bool:
        return self.is_fetching and self.data is not None

    @property
    def is_error(self) -> bool:
        return self.status is QueryStatus.FAILED


class Query:
    """
    Must be driven from a running event loop: reads may schedule a
    background fetch with asyncio.create_task.
    """

    def __init__(self, client: QueryClient, key: str, fetcher: Fetcher, options: Optional[QueryOptions] = None):
        self.client = client
        self.key = key
        self.fetcher = fetcher
        self.options = options or QueryOptions()
        self.status = QueryStatus.IDLE
        self.error: Optional[BaseException] = None
        self.failure_count = 0
        self.fetch_count = 0
        self._task: Optional[asyncio.Task] = None
        self._timer: Optional[asyncio.Task] = None
        self._closed = False
        client.subscribe(key, self.options.cache_time)

    # ---------- reads ----------
    @property
    def is_fetching(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def closed(self) -> bool:
        return self._closed

    def read(self) -> Any:
        """
        Cached value, never blocking. A missing or stale entry starts one
        background fetch unless one is already running.
        """
        entry = self.client.get_entry(self.key)
        if self._closed or not self.options.enabled:
            return entry.value if entry else None
        if self.status is QueryStatus.FAILED:
            # leaving failed takes the timer, refetch or retry
            return entry.value if entry else None
        if entry is None or entry.is_stale(self.client.clock(), self.options.stale_time):
            self._spawn()
        return entry.value if entry else None

    def view(self) -> QueryView:
        entry = self.client.peek(self.key)
        status = self.status
        if entry is None and status is QueryStatus.SETTLED:
            # evicted or cleared
            status = QueryStatus.IDLE
        return QueryView(
            key=self.key,
            status=status,
            data=entry.value if entry else None,
            error=self.error,
            is_fetching=self.is_fetching,
            is_stale=bool(entry and entry.is_stale(self.client.clock(), self.options.stale_time)),
            failure_count=self.failure_count,
            updated_at=entry.updated_at if entry else None,
        )

    # ---------- fetching ----------
    def _spawn(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name=f"query:{self.key}")
        return self._task

    async def fetch(self, timeout: Optional[float] = None) -> QueryView:
        """
        Join the in-flight fetch or start one, and wait for it to settle.
        With `timeout`, the fetch is cancelled on expiry and TimeoutError raised.
        """
        if self._closed:
            return self.view()
        task = self._spawn()
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if not done:
            task.cancel()
            await asyncio.wait({task})
            raise asyncio.TimeoutError(f"query {self.key} did not settle within {timeout}s")
        return self.view()

    refetch = fetch

    async def _run(self) -> None:
        generation = self.client.next_generation(self.key)
        previous = self.status
        self.status = QueryStatus.FETCHING
        failures = 0
        try:
            while True:
                self.fetch_count += 1
                try:
                    value = await self.fetcher()
                except Exception as exc:
                    if self.options.retry.should_retry(failures, exc):
                        delay = self.options.retry.delay_for(failures)
                        logger.warning(
                            "Query %s failed (%s), retry %d/%d in %.1fs",
                            self.key, exc, failures + 1, self.options.retry.max_retries, delay,
                        )
                        failures += 1
                        self.failure_count = failures
                        await self.client.sleep(delay)
                        continue
                    self._settle_failure(generation, exc, failures + 1)
                    return
                self._settle_success(generation, value)
                return
        except asyncio.CancelledError:
            if (
                not self._closed
                and self._task is asyncio.current_task()
                and self.client.is_latest(self.key, generation)
            ):
                self.status = previous if previous is not QueryStatus.FETCHING else QueryStatus.IDLE
            raise

    def _settle_success(self, generation: int, value: Any) -> None:
        if self._closed:
            logger.debug("Query %s detached, dropping result", self.key)
            self.status = QueryStatus.IDLE
            return
        if self.client.commit(self.key, generation, value):
            self.status = QueryStatus.SETTLED
            self.error = None
            self.failure_count = 0
        else:
            # superseded, or the key was cleared while in flight
            self._settle_idle()

    def _settle_failure(self, generation: int, exc: BaseException, failures: int) -> None:
        if self._closed:
            self.status = QueryStatus.IDLE
            return
        if not self.client.is_latest(self.key, generation):
            self._settle_idle()
            return
        logger.warning("Query %s failed after %d attempt(s): %s", self.key, failures, exc)
        self.status = QueryStatus.FAILED
        self.error = exc
        self.failure_count = failures

    def _settle_idle(self) -> None:
        self.status = QueryStatus.SETTLED if self.client.peek(self.key) else QueryStatus.IDLE

    def reset(self) -> None:
        """Back to idle; an in-flight fetch is cancelled so the next access starts a fresh one."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.status = QueryStatus.IDLE
        self.error = None
        self.failure_count = 0

    # ---------- periodic refresh ----------
    def start(self) -> None:
        """Initial fetch plus the refetch timer (when enabled and an interval is set)."""
        if self._closed or not self.options.enabled:
            return
        self.read()
        if self.options.refetch_interval and (self._timer is None or self._timer.done()):
            self._timer = asyncio.create_task(self._tick(), name=f"query-timer:{self.key}")

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _tick(self) -> None:
        while not self._closed:
            await self.client.sleep(self.options.refetch_interval)
            if self._closed or not self.options.enabled:
                return
            self.client.collect_garbage()
            await asyncio.wait({self._spawn()})

    def close(self) -> None:
        """Detach: stop the timer and drop whatever the in-flight fetch brings back."""
        if self._closed:
            return
        self._closed = True
        self.stop()
        self.client.unsubscribe(self.key)
