# backend/pos_dashboard/api/dashboard.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from pos_dashboard.api.deps import get_settings, get_sync_state, get_upstream
from pos_dashboard.config import Settings
from pos_dashboard.schemas.dashboard import ActivityType, ChartType, Period, PeriodRange
from pos_dashboard.services import charts as ch
from pos_dashboard.services.activities import TYPE_SOURCES, compact_activities, recent_activities
from pos_dashboard.services.metrics import (
    completed_sales, compute_metrics, data_quality, error_rate, headline_metrics, system_section,
)
from pos_dashboard.services.orchestrator import ALL_SOURCES, CASH_REGISTERS, PRODUCTS, SALES, USERS, gather_sources
from pos_dashboard.services.sync_state import SyncState
from pos_dashboard.services.timeframe import midnight, resolve_period, select
from pos_dashboard.upstream.client import UpstreamClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

CHART_DAYS = 7


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _fail(what: str, exc: Exception) -> HTTPException:
    logger.exception("Failed to build %s", what)
    return HTTPException(status_code=500, detail=f"failed to build {what}")


def _last_days(now: datetime, days: int):
    """[midnight of (now - days+1), now]: exactly `days` daily buckets ending today."""
    return midnight(now) - timedelta(days=days - 1), now


# =========================================================
# 1) Complete dashboard payload
# =========================================================
@router.get("")
async def dashboard(
    upstream: UpstreamClient = Depends(get_upstream),
    settings: Settings = Depends(get_settings),
    sync: SyncState = Depends(get_sync_state),
):
    snapshot = await gather_sources(upstream, ALL_SOURCES, deadline=settings.source_deadline)
    sync.record(snapshot)
    now = snapshot.captured_at
    try:
        sales = completed_sales(snapshot)
        start, end = _last_days(now, CHART_DAYS)
        metrics = compute_metrics(snapshot, now)
        return {
            "metrics": headline_metrics(snapshot, now, settings.daily_revenue_goal),
            "stats": {
                "users": metrics["users"],
                "products": metrics["products"],
                "cashRegisters": metrics["cashRegisters"],
                "sales": metrics["sales"],
                "revenue": metrics["revenue"],
            },
            "charts": {
                "sales": ch.daily_series(sales, start, end, ch.count_value).model_dump(),
                "revenue": ch.daily_series(sales, start, end, ch.revenue_value).model_dump(),
                "weekly": ch.weekly_series(sales, now),
                "paymentMethods": ch.payment_method_series(select(sales, *ch.day_range(start, end))),
            },
            "activities": compact_activities(snapshot, now),
            "system": system_section(snapshot),
            "dataQuality": data_quality(snapshot),
            "lastUpdated": now.isoformat(),
            "metadata": {
                "dataPoints": {name: len(snapshot.records(name)) for name in ALL_SOURCES},
                "period": PeriodRange(start=start.isoformat(), end=end.isoformat(), days=CHART_DAYS).model_dump(),
            },
        }
    except Exception as e:
        raise _fail("dashboard payload", e) from e


# =========================================================
# 2) Metrics
# =========================================================
@router.get("/metrics")
async def dashboard_metrics(
    upstream: UpstreamClient = Depends(get_upstream),
    settings: Settings = Depends(get_settings),
    sync: SyncState = Depends(get_sync_state),
):
    snapshot = await gather_sources(upstream, ALL_SOURCES, deadline=settings.source_deadline)
    sync.record(snapshot)
    now = snapshot.captured_at
    try:
        sales = completed_sales(snapshot)
        start, end = _last_days(now, CHART_DAYS)
        out: Dict[str, Any] = compute_metrics(snapshot, now)
        out["charts"] = {
            "weekly": [p.model_dump() for p in ch.daily_points(sales, start, end, ch.count_value)],
            "weeklyRevenue": [p.model_dump() for p in ch.daily_points(sales, start, end, ch.revenue_value)],
            "topProducts": ch.top_products(sales),
            "paymentMethods": [m.model_dump() for m in ch.payment_methods(sales)],
        }
        out["system"] = system_section(snapshot)
        out["dataQuality"] = data_quality(snapshot)
        out["lastUpdated"] = now.isoformat()
        return out
    except Exception as e:
        raise _fail("dashboard metrics", e) from e


# =========================================================
# 3) Charts
# =========================================================
@router.get("/charts")
async def dashboard_charts(
    type: ChartType = Query("all"),
    period: Period = Query("7d"),
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    upstream: UpstreamClient = Depends(get_upstream),
    settings: Settings = Depends(get_settings),
):
    now = _now()
    start, end = resolve_period(period, startDate, endDate, now)

    snapshot = await gather_sources(upstream, (SALES,), deadline=settings.source_deadline, now=now)
    try:
        sales = completed_sales(snapshot)
        charts: Dict[str, Any] = {}
        if type in ("sales", "all"):
            charts["sales"] = ch.daily_series(sales, start, end, ch.count_value).model_dump()
        if type in ("revenue", "all"):
            charts["revenue"] = ch.daily_series(sales, start, end, ch.revenue_value).model_dump()
        if type in ("weekly", "all"):
            charts["weekly"] = ch.weekly_series(sales, now)
        period_sales = select(sales, *ch.day_range(start, end))
        if type in ("payment-methods", "all"):
            charts["paymentMethods"] = ch.payment_method_series(period_sales)

        return {
            "charts": charts,
            "metadata": {
                "period": PeriodRange(
                    start=start.isoformat(),
                    end=end.isoformat(),
                    days=(end.date() - start.date()).days + 1,
                ).model_dump(),
                "dataPoints": len(period_sales),
                "lastUpdated": now.isoformat(),
            },
            "dataQuality": data_quality(snapshot),
        }
    except Exception as e:
        raise _fail("chart data", e) from e


# =========================================================
# 4) Activity feeds
# =========================================================
@router.get("/recent-activities")
async def dashboard_recent_activities(
    limit: int = Query(10, ge=1, le=100),
    type: ActivityType = Query("all"),
    hours: int = Query(24, ge=1, le=24 * 90),
    upstream: UpstreamClient = Depends(get_upstream),
    settings: Settings = Depends(get_settings),
):
    snapshot = await gather_sources(upstream, TYPE_SOURCES[type], deadline=settings.source_deadline)
    try:
        out = recent_activities(snapshot, snapshot.captured_at, limit=limit, hours=hours, type_=type)
        out["dataQuality"] = data_quality(snapshot)
        return out
    except Exception as e:
        raise _fail("recent activities", e) from e


@router.get("/activities")
async def dashboard_activities(
    upstream: UpstreamClient = Depends(get_upstream),
    settings: Settings = Depends(get_settings),
):
    snapshot = await gather_sources(upstream, (SALES, USERS), deadline=settings.source_deadline)
    outage = snapshot.outage()
    return {
        "success": outage is None,
        "error": str(outage) if outage else None,
        "data": compact_activities(snapshot, snapshot.captured_at),
        "dataQuality": data_quality(snapshot),
    }


# =========================================================
# 5) Stats
# =========================================================
@router.get("/stats")
async def dashboard_stats(
    upstream: UpstreamClient = Depends(get_upstream),
    settings: Settings = Depends(get_settings),
    sync: SyncState = Depends(get_sync_state),
):
    snapshot = await gather_sources(
        upstream, (USERS, PRODUCTS, SALES, CASH_REGISTERS), deadline=settings.source_deadline
    )
    sync.record(snapshot)
    now = snapshot.captured_at
    metrics = compute_metrics(snapshot, now)
    users = snapshot.records(USERS)
    return {
        "users": {
            **metrics["users"],
            "new": len(select(users, now - timedelta(days=7), now)),
        },
        "products": metrics["products"],
        "cashRegisters": metrics["cashRegisters"],
        "sales": {k: v for k, v in metrics["sales"].items() if k != "growth"},
        "revenue": {k: v for k, v in metrics["revenue"].items() if k != "growth"},
        "sync": sync.as_dict(),
        "system": system_section(snapshot, sync.as_dict()["lastSync"]),
        "apiResponseTime": snapshot.response_time_ms,
        "sourceResponseTimes": dict(snapshot.timings_ms),
        "errorRate": round(error_rate(snapshot), 4),
        "dataQuality": data_quality(snapshot),
    }
