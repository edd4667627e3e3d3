# backend/pos_dashboard/services/charts.py
"""
Chart bucketizer.

Daily series cover every calendar day of the requested range, zero-activity
days included. Weekly series are 7-day slices ending at `now`.
"""
from collections import Counter
from datetime import datetime
from typing import Callable, Dict, List, Sequence, Tuple

from pos_dashboard.schemas.dashboard import (
    ChartPoint, ChartSeries, ChartSummary, PaymentMethodCount, WeeklyPoint,
)
from pos_dashboard.schemas.records import Sale
from pos_dashboard.services.timeframe import DAY, day_start, days_between, iter_weeks, select

WEEKS_LOOKBACK = 4
TREND_THRESHOLD_PCT = 5.0
UNKNOWN_PAYMENT_METHOD = "Not informed"

ValueFn = Callable[[Sequence[Sale]], float]


def count_value(sales: Sequence[Sale]) -> float:
    return float(len(sales))


def revenue_value(sales: Sequence[Sale]) -> float:
    return float(sum(s.total for s in sales))


def classify_trend(values: Sequence[float]) -> str:
    """
    Compare the mean of the second half with the mean of the first half
    (split at floor(n/2)). Fewer than two points, or a zero first-half
    mean, classify as stable.
    """
    if len(values) < 2:
        return "stable"
    mid = len(values) // 2
    first, second = values[:mid], values[mid:]
    first_mean = sum(first) / len(first)
    second_mean = sum(second) / len(second)
    if first_mean == 0:
        return "stable"
    difference = (second_mean - first_mean) / first_mean * 100.0
    if difference > TREND_THRESHOLD_PCT:
        return "up"
    if difference < -TREND_THRESHOLD_PCT:
        return "down"
    return "stable"


def summarize(values: Sequence[float]) -> ChartSummary:
    total = float(sum(values))
    return ChartSummary(
        total=total,
        average=total / len(values) if values else 0.0,
        peak=float(max(values)) if values else 0.0,
        trend=classify_trend(values),
    )


def day_range(start: datetime, end: datetime) -> Tuple[datetime, datetime]:
    """Day-resolution bounds: [00:00 of start's day, 24:00 of end's day) in start's timezone."""
    tz = start.tzinfo
    end_local = end.astimezone(tz) if tz is not None else end
    return day_start(start.date(), tz), day_start(end_local.date(), tz) + DAY


def daily_points(sales: Sequence[Sale], start: datetime, end: datetime, value: ValueFn) -> List[ChartPoint]:
    """
    One point per calendar day from start's day to end's day (inclusive),
    each summing records in [00:00, 24:00) of that day in start's timezone.
    """
    tz = start.tzinfo
    lo_all, hi_all = day_range(start, end)
    points: List[ChartPoint] = []
    for d in days_between(lo_all.date(), (hi_all - DAY).date()):
        lo = day_start(d, tz)
        bucket = select(sales, lo, lo + DAY)
        points.append(ChartPoint(label=d.strftime("%d/%m"), date=d.isoformat(), value=value(bucket)))
    return points


def daily_series(sales: Sequence[Sale], start: datetime, end: datetime, value: ValueFn) -> ChartSeries:
    points = daily_points(sales, start, end, value)
    return ChartSeries(
        labels=[p.label for p in points],
        points=points,
        summary=summarize([p.value for p in points]),
    )


def weekly_points(sales: Sequence[Sale], now: datetime, weeks: int = WEEKS_LOOKBACK) -> List[WeeklyPoint]:
    out: List[WeeklyPoint] = []
    for n, lo, hi in iter_weeks(now, weeks):
        bucket = select(sales, lo, hi)
        out.append(WeeklyPoint(
            label=f"Week {n}",
            start=lo.isoformat(),
            end=hi.isoformat(),
            sales=len(bucket),
            revenue=revenue_value(bucket),
        ))
    return out


def weekly_series(sales: Sequence[Sale], now: datetime, weeks: int = WEEKS_LOOKBACK) -> Dict:
    points = weekly_points(sales, now, weeks)
    total_sales = sum(p.sales for p in points)
    total_revenue = sum(p.revenue for p in points)
    return {
        "labels": [p.label for p in points],
        "points": [p.model_dump() for p in points],
        "summary": {
            "totalSales": total_sales,
            "totalRevenue": total_revenue,
            "averageSalesPerWeek": total_sales / len(points) if points else 0.0,
            "averageRevenuePerWeek": total_revenue / len(points) if points else 0.0,
            "salesTrend": classify_trend([float(p.sales) for p in points]),
            "revenueTrend": classify_trend([p.revenue for p in points]),
        },
    }


def payment_methods(sales: Sequence[Sale]) -> List[PaymentMethodCount]:
    """Counts per payment method, most used first; ties keep first-seen order."""
    counts = Counter(s.payment_method or UNKNOWN_PAYMENT_METHOD for s in sales)
    # Counter preserves insertion order and sorted() is stable
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return [PaymentMethodCount(method=m, count=c) for m, c in ranked]


def payment_method_series(sales: Sequence[Sale]) -> Dict:
    methods = payment_methods(sales)
    return {
        "labels": [m.method for m in methods],
        "points": [m.model_dump() for m in methods],
        "summary": {
            "totalTransactions": sum(m.count for m in methods),
            "mostUsed": methods[0].method if methods else "N/A",
            "diversity": len(methods),
        },
    }


def top_products(sales: Sequence[Sale], limit: int = 5) -> List[Dict]:
    """Sale items grouped by product name, ranked by quantity sold."""
    qty: Dict[str, int] = {}
    rev: Dict[str, float] = {}
    for sale in sales:
        for item in sale.items:
            name = item.product_name or item.product_id or "Unknown"
            qty[name] = qty.get(name, 0) + item.quantity
            rev[name] = rev.get(name, 0.0) + item.quantity * item.price
    ranked = sorted(qty.items(), key=lambda kv: kv[1], reverse=True)[:limit]
    return [{"name": n, "quantity": q, "revenue": rev[n]} for n, q in ranked]
