# backend/pos_dashboard/client/dashboard_data.py
import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from pos_dashboard.client.query import Query, QueryOptions, QueryView
from pos_dashboard.client.query_client import QueryClient

DASHBOARD_KEY = "dashboard-data"
METRICS_KEY = "dashboard-metrics"
ACTIVITIES_KEY = "dashboard-activities"
HEALTH_KEY = "system-health"

# order in which errors are reported by the combined view
KEYS = (DASHBOARD_KEY, METRICS_KEY, ACTIVITIES_KEY, HEALTH_KEY)


def health_options(options: QueryOptions) -> QueryOptions:
    """System health polls twice as often and goes stale twice as fast."""
    return replace(
        options,
        refetch_interval=options.refetch_interval / 2 if options.refetch_interval else None,
        stale_time=options.stale_time / 2,
    )


class DashboardData:
    """
    Combined view over the four dashboard queries. Loading/error flags are
    the OR of the constituent queries.
    """

    def __init__(self, api: Any, client: Optional[QueryClient] = None, options: Optional[QueryOptions] = None):
        self.api = api
        self.client = client or QueryClient()
        self.options = options or QueryOptions()
        self.queries: Dict[str, Query] = {
            DASHBOARD_KEY: Query(self.client, DASHBOARD_KEY, api.get_dashboard_data, self.options),
            METRICS_KEY: Query(self.client, METRICS_KEY, api.get_metrics, self.options),
            ACTIVITIES_KEY: Query(self.client, ACTIVITIES_KEY, api.get_recent_activities, self.options),
            HEALTH_KEY: Query(self.client, HEALTH_KEY, api.get_system_stats, health_options(self.options)),
        }

    # ---------- lifecycle ----------
    def start(self) -> None:
        for q in self.queries.values():
            q.start()

    def close(self) -> None:
        for q in self.queries.values():
            q.close()

    async def __aenter__(self) -> "DashboardData":
        self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        self.close()

    # ---------- state ----------
    def views(self) -> Dict[str, QueryView]:
        return {k: q.view() for k, q in self.queries.items()}

    @property
    def data(self) -> Any:
        return self.queries[DASHBOARD_KEY].read()

    @property
    def metrics(self) -> Any:
        return self.queries[METRICS_KEY].read()

    @property
    def activities(self) -> Any:
        return self.queries[ACTIVITIES_KEY].read()

    @property
    def system_health(self) -> Any:
        return self.queries[HEALTH_KEY].read()

    @property
    def is_loading(self) -> bool:
        return any(v.is_loading for v in self.views().values())

    @property
    def is_error(self) -> bool:
        return any(v.is_error for v in self.views().values())

    @property
    def is_refetching(self) -> bool:
        return any(v.is_refetching for v in self.views().values())

    @property
    def error(self) -> Optional[BaseException]:
        views = self.views()
        for key in KEYS:
            if views[key].error is not None:
                return views[key].error
        return None

    @property
    def last_updated(self) -> Optional[datetime]:
        return self.queries[DASHBOARD_KEY].view().updated_at

    # ---------- actions ----------
    async def refetch(self) -> None:
        await asyncio.gather(*(q.refetch() for q in self.queries.values()))

    async def refetch_one(self, key: str) -> QueryView:
        if key not in self.queries:
            raise KeyError(f"unknown dashboard query: {key}")
        return await self.queries[key].refetch()

    async def refetch_metrics(self) -> QueryView:
        return await self.refetch_one(METRICS_KEY)

    async def refetch_activities(self) -> QueryView:
        return await self.refetch_one(ACTIVITIES_KEY)

    async def refetch_system_health(self) -> QueryView:
        return await self.refetch_one(HEALTH_KEY)

    def clear_cache(self) -> None:
        self.client.remove_queries(KEYS)
        for q in self.queries.values():
            q.reset()

    async def retry(self) -> List[str]:
        """Refetch only the queries that are currently failed; returns their keys."""
        failed = [k for k, q in self.queries.items() if q.view().is_error]
        await asyncio.gather(*(self.queries[k].refetch() for k in failed))
        return failed
