from .query_client import CacheEntry, QueryClient
from .query import NO_RETRY, Query, QueryOptions, QueryStatus, QueryView, RetryPolicy
from .dashboard_api import DashboardApi
from .dashboard_data import DashboardData

__all__ = [
    "CacheEntry", "QueryClient",
    "NO_RETRY", "Query", "QueryOptions", "QueryStatus", "QueryView", "RetryPolicy",
    "DashboardApi", "DashboardData",
]
