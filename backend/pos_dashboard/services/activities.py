# backend/pos_dashboard/services/activities.py
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from pos_dashboard.schemas.records import Product, Sale, User, parse_timestamp
from pos_dashboard.services.orchestrator import PRODUCTS, SALES, USERS, AggregateSnapshot
from pos_dashboard.services.timeframe import ensure_aware

SALE_STATUS = {"COMPLETED": "success", "CANCELLED": "error"}

# share of `limit` each type gets when the feed mixes all types
MIXED_QUOTAS = {"sales": 0.6, "users": 0.2, "products": 0.2}

TYPE_SOURCES = {
    "all": (SALES, USERS, PRODUCTS),
    "sales": (SALES,),
    "users": (USERS,),
    "products": (PRODUCTS,),
}


def time_ago(ts: datetime, now: datetime) -> str:
    seconds = int((now - ts).total_seconds())
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes} min ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    days = hours // 24
    if days < 7:
        return f"{days}d ago"
    weeks = days // 7
    if weeks < 4:
        return f"{weeks}w ago"
    return f"{days // 30}mo ago"


def _newest(records: Sequence[Any], since: Optional[datetime], take: int) -> List[Any]:
    rows = [r for r in records if r.created_at is not None and (since is None or r.created_at >= since)]
    rows.sort(key=lambda r: r.created_at, reverse=True)
    return rows[:max(take, 0)]


def _sale_item(sale: Sale, now: datetime) -> Dict[str, Any]:
    return {
        "id": f"sale-{sale.id}",
        "type": "sale",
        "title": "New sale",
        "description": f"Sale of {sale.total:.2f} completed" if sale.is_completed else f"Sale of {sale.total:.2f}",
        "details": {
            "amount": sale.total,
            "items": len(sale.items),
            "paymentMethod": sale.payment_method or "Not informed",
            "status": sale.status,
            "cashRegisterId": sale.cash_register_id,
        },
        "user": {"name": sale.user_name or "Unknown user", "id": sale.user_id},
        "timestamp": sale.created_at.isoformat(),
        "timeAgo": time_ago(sale.created_at, now),
        "status": SALE_STATUS.get(sale.status or "", "warning"),
    }


def _user_item(user: User, now: datetime) -> Dict[str, Any]:
    return {
        "id": f"user-{user.id}",
        "type": "user",
        "title": "New user",
        "description": f"{user.name} was registered",
        "details": {"email": user.email, "role": user.role or "Not informed", "active": user.active},
        "user": {"name": user.name, "id": user.id},
        "timestamp": user.created_at.isoformat(),
        "timeAgo": time_ago(user.created_at, now),
        "status": "success" if user.active else "warning",
    }


def _product_item(product: Product, now: datetime) -> Dict[str, Any]:
    return {
        "id": f"product-{product.id}",
        "type": "product",
        "title": "New product",
        "description": f"{product.name} was added to the catalog",
        "details": {
            "price": product.price,
            "category": product.category or "Uncategorized",
            "barcode": product.barcode,
            "active": product.active,
            "stock": product.stock or 0,
        },
        "user": {"name": "System", "id": None},
        "timestamp": product.created_at.isoformat(),
        "timeAgo": time_ago(product.created_at, now),
        "status": "success" if product.active else "warning",
    }


def recent_activities(
    snapshot: AggregateSnapshot,
    now: datetime,
    limit: int = 10,
    hours: int = 24,
    type_: str = "all",
) -> Dict[str, Any]:
    now = ensure_aware(now)
    since = now - timedelta(hours=hours)

    def quota(kind: str) -> int:
        return limit if type_ == kind else int(limit * MIXED_QUOTAS[kind])

    items: List[Dict[str, Any]] = []
    if type_ in ("all", "sales"):
        items += [_sale_item(s, now) for s in _newest(snapshot.records(SALES), since, quota("sales"))]
    if type_ in ("all", "users"):
        items += [_user_item(u, now) for u in _newest(snapshot.records(USERS), since, quota("users"))]
    if type_ in ("all", "products"):
        items += [_product_item(p, now) for p in _newest(snapshot.records(PRODUCTS), since, quota("products"))]

    items.sort(key=lambda a: parse_timestamp(a["timestamp"]), reverse=True)
    items = items[:limit]

    by_status = {s: sum(1 for a in items if a["status"] == s) for s in ("success", "warning", "error")}
    return {
        "activities": items,
        "stats": {
            "total": len(items),
            "byType": {
                "sales": sum(1 for a in items if a["type"] == "sale"),
                "users": sum(1 for a in items if a["type"] == "user"),
                "products": sum(1 for a in items if a["type"] == "product"),
            },
            "byStatus": by_status,
            "timeRange": {"start": since.isoformat(), "end": now.isoformat(), "hours": hours},
        },
        "metadata": {"limit": limit, "type": type_, "hours": hours, "lastUpdated": now.isoformat()},
    }


def compact_activities(snapshot: AggregateSnapshot, now: datetime) -> List[Dict[str, Any]]:
    """Five newest completed sales, users created in the last day among the three newest, and a sync marker."""
    now = ensure_aware(now)
    sales = [s for s in snapshot.records(SALES) if s.is_completed]
    items = [_sale_item(s, now) for s in _newest(sales, None, 5)]
    day_ago = now - timedelta(days=1)
    items += [_user_item(u, now) for u in _newest(snapshot.records(USERS), None, 3) if u.created_at >= day_ago]
    items.append({
        "id": "sync-latest",
        "type": "sync",
        "title": "Sync",
        "description": "Upstream sync finished",
        "details": {"activities": len(items), "failedSources": snapshot.failed_count},
        "timestamp": now.isoformat(),
        "timeAgo": "just now",
        "status": "success" if snapshot.failed_count == 0 else "warning",
    })
    items.sort(key=lambda a: parse_timestamp(a["timestamp"]), reverse=True)
    return items[:10]
