# backend/pos_dashboard/services/orchestrator.py
"""
Concurrent fetch orchestrator.

One call per requested source, all issued at once; every call settles to a
Fulfilled or Rejected outcome and none cancels the others. Nothing is
retried here.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Generic, Iterable, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from pos_dashboard.errors import AllSourcesUnavailable, SourceUnavailable, TransientNetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SALES = "sales"
USERS = "users"
PRODUCTS = "products"
CASH_REGISTERS = "cashRegisters"

ALL_SOURCES: Tuple[str, ...] = (SALES, USERS, PRODUCTS, CASH_REGISTERS)

# source name -> UpstreamClient method
SOURCE_CALLS: Dict[str, str] = {
    SALES: "get_sales",
    USERS: "get_users",
    PRODUCTS: "get_products",
    CASH_REGISTERS: "get_cash_registers",
}


@dataclass(frozen=True)
class Fulfilled(Generic[T]):
    value: Tuple[T, ...]

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    reason: BaseException

    @property
    def ok(self) -> bool:
        return False


FetchOutcome = Union[Fulfilled, Rejected]


@dataclass(frozen=True)
class AggregateSnapshot:
    outcomes: Mapping[str, FetchOutcome]
    captured_at: datetime
    response_time_ms: int = 0
    timings_ms: Mapping[str, int] = field(default_factory=dict)

    @property
    def requested(self) -> Tuple[str, ...]:
        return tuple(self.outcomes)

    def records(self, source: str) -> Tuple[Any, ...]:
        """Fulfilled records of a source; Rejected and unrequested sources read as empty."""
        outcome = self.outcomes.get(source)
        if isinstance(outcome, Fulfilled):
            return outcome.value
        return ()

    def available(self, source: str) -> bool:
        return isinstance(self.outcomes.get(source), Fulfilled)

    def failures(self) -> Dict[str, SourceUnavailable]:
        return {
            name: SourceUnavailable(name, outcome.reason)
            for name, outcome in self.outcomes.items()
            if isinstance(outcome, Rejected)
        }

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.outcomes.values() if isinstance(o, Rejected))

    @property
    def all_failed(self) -> bool:
        return bool(self.outcomes) and self.failed_count == len(self.outcomes)

    def outage(self) -> Optional[AllSourcesUnavailable]:
        """Set only when every requested source rejected."""
        return AllSourcesUnavailable(self.requested) if self.all_failed else None


async def _settle(name: str, upstream: Any, deadline: Optional[float]) -> Tuple[FetchOutcome, int]:
    call = getattr(upstream, SOURCE_CALLS[name])
    started = time.perf_counter()
    try:
        if deadline is None:
            result = await asyncio.to_thread(call)
        else:
            result = await asyncio.wait_for(asyncio.to_thread(call), timeout=deadline)
        outcome: FetchOutcome = Fulfilled(tuple(result or ()))
    except asyncio.TimeoutError:
        outcome = Rejected(TransientNetworkError(f"{name}: no answer within {deadline}s", source=name))
    except Exception as exc:
        outcome = Rejected(exc)
    elapsed = int((time.perf_counter() - started) * 1000)
    if isinstance(outcome, Rejected):
        logger.warning("Source %s rejected after %dms: %s", name, elapsed, outcome.reason)
    return outcome, elapsed


async def gather_sources(
    upstream: Any,
    sources: Iterable[str] = ALL_SOURCES,
    deadline: Optional[float] = None,
    now: Optional[datetime] = None,
) -> AggregateSnapshot:
    """
    Fetch the requested sources concurrently and wait for all of them to settle.
    Sources that were not requested are absent from the snapshot.
    """
    names: Sequence[str] = list(dict.fromkeys(sources))
    unknown = [n for n in names if n not in SOURCE_CALLS]
    if unknown:
        raise ValueError(f"unknown source(s): {', '.join(unknown)}")

    started = time.perf_counter()
    settled = await asyncio.gather(*(_settle(n, upstream, deadline) for n in names))
    response_time_ms = int((time.perf_counter() - started) * 1000)

    snapshot = AggregateSnapshot(
        outcomes=MappingProxyType({n: outcome for n, (outcome, _) in zip(names, settled)}),
        captured_at=now or datetime.now(timezone.utc),
        response_time_ms=response_time_ms,
        timings_ms=MappingProxyType({n: ms for n, (_, ms) in zip(names, settled)}),
    )
    logger.info(
        "Settled %d source(s) in %dms (%d rejected)",
        len(names), response_time_ms, snapshot.failed_count,
    )
    if snapshot.all_failed:
        logger.error("%s", snapshot.outage())
    return snapshot
