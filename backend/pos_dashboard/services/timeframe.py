# backend/pos_dashboard/services/timeframe.py
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Tuple, TypeVar

from fastapi import HTTPException

from pos_dashboard.schemas.records import parse_timestamp

T = TypeVar("T")

DAY = timedelta(days=1)
WEEK = timedelta(days=7)

PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90}


class TimeWindow(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    TOTAL = "total"


# ---------- date helpers ----------
def midnight(d: datetime) -> datetime:
    return datetime.combine(d.date(), time.min, tzinfo=d.tzinfo)


def month_floor(d: datetime) -> datetime:
    return midnight(d).replace(day=1)


def month_add(d: datetime, months: int) -> datetime:
    y = d.year + (d.month - 1 + months) // 12
    m = (d.month - 1 + months) % 12 + 1
    return d.replace(year=y, month=m, day=1)


def day_start(d: date, tz) -> datetime:
    return datetime.combine(d, time.min, tzinfo=tz)


def days_between(start: date, end: date) -> List[date]:
    """Every calendar day from start to end, both inclusive, ascending."""
    out: List[date] = []
    cur = start
    while cur <= end:
        out.append(cur)
        cur += DAY
    return out


def ensure_aware(d: datetime) -> datetime:
    return d if d.tzinfo is not None else d.replace(tzinfo=timezone.utc)


# ---------- windows ----------
def window_bounds(window: TimeWindow, now: datetime) -> Tuple[Optional[datetime], datetime]:
    """Half-open [start, now). TOTAL has no lower bound."""
    if window is TimeWindow.TODAY:
        return midnight(now), now
    if window is TimeWindow.WEEK:
        return now - WEEK, now
    if window is TimeWindow.MONTH:
        return month_floor(now), now
    return None, now


def previous_window_bounds(window: TimeWindow, now: datetime) -> Optional[Tuple[datetime, datetime]]:
    """The comparable window immediately before `window`; None for TOTAL."""
    if window is TimeWindow.TODAY:
        start = midnight(now)
        return start - DAY, start
    if window is TimeWindow.WEEK:
        return now - 2 * WEEK, now - WEEK
    if window is TimeWindow.MONTH:
        start = month_floor(now)
        return month_add(start, -1), start
    return None


def in_range(ts: Optional[datetime], start: Optional[datetime], end: datetime) -> bool:
    if ts is None:
        return False
    return (start is None or ts >= start) and ts < end


def select(records: Iterable[T], start: Optional[datetime], end: datetime) -> List[T]:
    """Records whose created_at falls in [start, end). start=None means no lower bound."""
    if start is None:
        return list(records)
    return [r for r in records if in_range(getattr(r, "created_at", None), start, end)]


def records_in_window(records: Iterable[T], window: TimeWindow, now: datetime) -> List[T]:
    start, end = window_bounds(window, now)
    return select(records, start, end)


# ---------- query parameters ----------
def parse_date_param(name: str, value: Optional[str]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    parsed = parse_timestamp(value)
    if parsed is None:
        raise HTTPException(status_code=400, detail=f"invalid {name} format")
    return parsed


def resolve_period(
    period: str,
    start_date: Optional[str],
    end_date: Optional[str],
    now: datetime,
) -> Tuple[datetime, datetime]:
    """
    Explicit startDate wins over `period`; endDate defaults to now.
    A startDate without endDate (or the reverse) is accepted.
    """
    start = parse_date_param("startDate", start_date)
    end = parse_date_param("endDate", end_date) or now
    if start is None:
        start = now - timedelta(days=PERIOD_DAYS.get(period, 7))
    if start > end:
        raise HTTPException(status_code=400, detail="startDate must not be after endDate")
    return start, end


def iter_weeks(now: datetime, count: int) -> Iterator[Tuple[int, datetime, datetime]]:
    """(index, start, end) for [now-(i+1)*7d, now-i*7d), oldest first."""
    for i in range(count - 1, -1, -1):
        yield count - i, now - (i + 1) * WEEK, now - i * WEEK
