# backend/pos_dashboard/services/metrics.py
"""
Metric calculator: pure functions over one AggregateSnapshot.

A Rejected source contributes an empty sequence; nothing here raises
because a source failed.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pos_dashboard.schemas.dashboard import DataQuality, SystemSection
from pos_dashboard.schemas.records import Sale
from pos_dashboard.services.orchestrator import CASH_REGISTERS, PRODUCTS, SALES, USERS, AggregateSnapshot
from pos_dashboard.services.timeframe import TimeWindow, previous_window_bounds, records_in_window, select

WARNING_THRESHOLD = 0.5


def completed_sales(snapshot: AggregateSnapshot) -> List[Sale]:
    return [s for s in snapshot.records(SALES) if s.is_completed]


def revenue(sales: Iterable[Sale]) -> float:
    # totals are already normalized to float by the Sale model
    return float(sum(s.total for s in sales))


def growth_rate(current: float, previous: float) -> float:
    """Percent change; previous == 0 yields 100 when there is any current activity, else 0."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100.0


def partition_active(records: Sequence[Any]) -> Dict[str, int]:
    active = sum(1 for r in records if getattr(r, "active", False))
    return {"total": len(records), "active": active, "inactive": len(records) - active}


def partition_registers(records: Sequence[Any]) -> Dict[str, int]:
    open_ = sum(1 for r in records if r.status == "OPEN")
    return {"total": len(records), "open": open_, "closed": len(records) - open_}


def error_rate(snapshot: AggregateSnapshot) -> float:
    requested = len(snapshot.outcomes)
    if requested == 0:
        return 0.0
    return snapshot.failed_count / requested


def sync_status(rate: float) -> str:
    if rate <= 0:
        return "success"
    if rate < WARNING_THRESHOLD:
        return "warning"
    return "error"


def data_quality(snapshot: AggregateSnapshot) -> Dict[str, bool]:
    flags = DataQuality(
        **{f"{name}DataAvailable": snapshot.available(name) for name in snapshot.requested}
    )
    return flags.model_dump(exclude_none=True)


def system_section(snapshot: AggregateSnapshot, last_sync: Optional[str] = None) -> Dict[str, Any]:
    rate = error_rate(snapshot)
    return SystemSection(
        apiResponseTime=snapshot.response_time_ms,
        errorRate=round(rate, 4),
        syncStatus=sync_status(rate),
        lastSync=last_sync or snapshot.captured_at.isoformat(),
    ).model_dump()


def window_metrics(sales: Sequence[Sale], now: datetime) -> Dict[str, Dict[str, Any]]:
    """Per-window sale counts and revenue, each with growth against the prior same-length window."""
    counts: Dict[str, Any] = {}
    sums: Dict[str, Any] = {}
    count_growth: Dict[str, float] = {}
    sum_growth: Dict[str, float] = {}

    for window in TimeWindow:
        current = records_in_window(sales, window, now)
        counts[window.value] = len(current)
        sums[window.value] = revenue(current)

        prior = previous_window_bounds(window, now)
        if prior is None:
            continue
        previous = select(sales, *prior)
        count_growth[window.value] = growth_rate(len(current), len(previous))
        sum_growth[window.value] = growth_rate(sums[window.value], revenue(previous))

    counts["growth"] = count_growth
    sums["growth"] = sum_growth
    return {"sales": counts, "revenue": sums}


def compute_metrics(snapshot: AggregateSnapshot, now: datetime) -> Dict[str, Any]:
    sales = completed_sales(snapshot)
    out = window_metrics(sales, now)
    out["users"] = partition_active(snapshot.records(USERS))
    out["products"] = partition_active(snapshot.records(PRODUCTS))
    out["cashRegisters"] = partition_registers(snapshot.records(CASH_REGISTERS))
    return out


def headline_metrics(snapshot: AggregateSnapshot, now: datetime, daily_goal: float) -> Dict[str, Any]:
    """Top cards of the dashboard: totals, week-over-week growth and goal progress."""
    sales = completed_sales(snapshot)
    windows = window_metrics(sales, now)
    today_revenue = windows["revenue"][TimeWindow.TODAY.value]
    return {
        "totalSales": len(sales),
        "totalRevenue": revenue(sales),
        "dailyGoal": daily_goal,
        "salesGrowth": windows["sales"]["growth"][TimeWindow.WEEK.value],
        "revenueGrowth": windows["revenue"]["growth"][TimeWindow.WEEK.value],
        "goalProgress": (today_revenue / daily_goal * 100.0) if daily_goal > 0 else 0.0,
    }
