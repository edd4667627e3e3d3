# backend/pos_dashboard/client/query_client.py
"""
Shared cache behind every Query.

Each key has one cached value. Writers get a generation number when they
start; a completion is committed only if no newer generation has been
committed in the meantime and someone is still subscribed to the key.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


@dataclass
class CacheEntry:
    value: Any
    fetched_at: float
    last_access: float
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_stale(self, now: float, stale_time: float) -> bool:
        return self.age(now) > stale_time


class QueryClient:
    def __init__(self, clock: Clock = time.monotonic, sleep: Sleep = asyncio.sleep):
        self.clock = clock
        self.sleep = sleep
        self._entries: Dict[str, CacheEntry] = {}
        self._issued: Dict[str, int] = {}
        self._committed: Dict[str, int] = {}
        self._subscribers: Dict[str, int] = {}
        self._cache_time: Dict[str, float] = {}

    # ---------- subscriptions ----------
    def subscribe(self, key: str, cache_time: float) -> None:
        self._subscribers[key] = self._subscribers.get(key, 0) + 1
        self._cache_time[key] = max(cache_time, self._cache_time.get(key, 0.0))

    def unsubscribe(self, key: str) -> None:
        n = self._subscribers.get(key, 0) - 1
        if n > 0:
            self._subscribers[key] = n
        else:
            self._subscribers.pop(key, None)

    def subscribers(self, key: str) -> int:
        return self._subscribers.get(key, 0)

    # ---------- generations ----------
    def next_generation(self, key: str) -> int:
        gen = self._issued.get(key, 0) + 1
        self._issued[key] = gen
        return gen

    def is_latest(self, key: str, generation: int) -> bool:
        return self._issued.get(key, 0) == generation

    # ---------- entries ----------
    def peek(self, key: str) -> Optional[CacheEntry]:
        """Entry without touching its access time (expired entries are still evicted)."""
        self._expire(key)
        return self._entries.get(key)

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self.peek(key)
        if entry is not None:
            entry.last_access = self.clock()
        return entry

    def commit(self, key: str, generation: int, value: Any) -> bool:
        if self.subscribers(key) == 0:
            logger.debug("Discarding result for %s: no subscriber left", key)
            return False
        if generation <= self._committed.get(key, 0):
            logger.debug("Discarding superseded result for %s (generation %d)", key, generation)
            return False
        now = self.clock()
        self._entries[key] = CacheEntry(value=value, fetched_at=now, last_access=now)
        self._committed[key] = generation
        return True

    def remove_queries(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._entries.pop(key, None)
            # completions issued before the removal must not repopulate the key
            self._committed[key] = self._issued.get(key, 0)

    def collect_garbage(self) -> int:
        evicted = 0
        for key in list(self._entries):
            if self._expire(key):
                evicted += 1
        return evicted

    def _expire(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        cache_time = self._cache_time.get(key)
        if cache_time is not None and self.clock() - entry.last_access > cache_time:
            del self._entries[key]
            logger.debug("Evicted %s after %.0fs without access", key, cache_time)
            return True
        return False
