# backend/tests/test_dashboard_api.py
import time
from datetime import datetime, timedelta, timezone
import pytest

from conftest import iso, today_ts
from pos_dashboard.errors import DefinitiveUpstreamError, TransientNetworkError
from pos_dashboard.services.tokens import mint_offline_token


def _recent(minutes: int) -> str:
    return iso(datetime.now(timezone.utc) - timedelta(minutes=minutes))


def _seed_basic(upstream):
    upstream.data["sales"] = [{
        "id": 1, "createdAt": iso(today_ts()), "total": "50.00", "status": "COMPLETED",
        "paymentMethod": "CASH", "user": {"name": "Ana"},
    }]
    upstream.data["users"] = [{"id": 1, "name": "Ana", "active": True, "createdAt": _recent(30)}]
    upstream.data["products"] = [{"id": 1, "name": "Coffee", "price": "3.50", "active": True}]
    upstream.data["cashRegisters"] = [{"id": 1, "status": "OPEN", "initialAmount": "100"}]


# ========================= metrics =========================

def test_metrics_end_to_end(client, upstream):
    _seed_basic(upstream)
    r = client.get("/api/dashboard/metrics")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["sales"]["today"] == 1
    assert body["revenue"]["today"] == 50.0
    assert body["dataQuality"] == {
        "salesDataAvailable": True,
        "usersDataAvailable": True,
        "productsDataAvailable": True,
        "cashRegistersDataAvailable": True,
    }
    assert body["system"]["syncStatus"] == "success"
    assert body["system"]["errorRate"] == 0
    assert body["cashRegisters"] == {"total": 1, "open": 1, "closed": 0}
    assert len(body["charts"]["weekly"]) == 7


def test_one_failing_source_degrades_only_its_flag(client, upstream, transient):
    _seed_basic(upstream)
    upstream.fail["products"] = transient
    body = client.get("/api/dashboard/metrics").json()
    assert body["dataQuality"]["productsDataAvailable"] is False
    assert body["dataQuality"]["salesDataAvailable"] is True
    assert body["products"]["total"] == 0
    assert body["sales"]["today"] == 1
    assert body["users"]["total"] == 1
    assert body["system"]["syncStatus"] == "warning"


def test_all_sources_failing_still_answers(client, upstream, definitive):
    for name in ("sales", "users", "products", "cashRegisters"):
        upstream.fail[name] = definitive
    r = client.get("/api/dashboard/metrics")
    assert r.status_code == 200
    body = r.json()
    assert body["system"]["syncStatus"] == "error"
    assert not any(body["dataQuality"].values())
    assert body["sales"]["total"] == 0


def test_full_dashboard_payload(client, upstream):
    _seed_basic(upstream)
    body = client.get("/api/dashboard").json()
    assert set(body) >= {"metrics", "stats", "charts", "activities", "system", "dataQuality", "lastUpdated"}
    assert body["metrics"]["totalSales"] == 1
    assert body["metrics"]["totalRevenue"] == 50.0
    assert len(body["charts"]["sales"]["points"]) == 7
    assert body["charts"]["revenue"]["summary"]["total"] == 50.0
    assert body["charts"]["paymentMethods"]["summary"]["mostUsed"] == "CASH"
    types = [a["type"] for a in body["activities"]]
    assert "sale" in types and "sync" in types


# ========================= charts =========================

def test_charts_only_requested_type(client, upstream):
    _seed_basic(upstream)
    body = client.get("/api/dashboard/charts", params={"type": "sales"}).json()
    assert list(body["charts"]) == ["sales"]
    assert len(body["charts"]["sales"]["points"]) == 8   # 7d back, both end days included
    assert body["charts"]["sales"]["summary"]["total"] == 1
    assert upstream.calls == ["sales"]
    assert body["dataQuality"] == {"salesDataAvailable": True}


def test_charts_period_and_explicit_dates(client, upstream):
    body = client.get("/api/dashboard/charts", params={"type": "revenue", "period": "30d"}).json()
    assert len(body["charts"]["revenue"]["points"]) == 31

    body = client.get("/api/dashboard/charts", params={
        "type": "all", "period": "90d",
        "startDate": "2025-03-01T00:00:00Z", "endDate": "2025-03-10T12:00:00Z",
    }).json()
    assert len(body["charts"]["sales"]["points"]) == 10
    assert body["metadata"]["period"]["days"] == 10
    assert set(body["charts"]) == {"sales", "revenue", "weekly", "paymentMethods"}


@pytest.mark.parametrize("params", [
    {"startDate": "not-a-date"},
    {"endDate": "31/12/2025"},
    {"startDate": "2025-03-10", "endDate": "2025-03-01"},
])
def test_charts_bad_dates(client, params):
    assert client.get("/api/dashboard/charts", params=params).status_code == 400


def test_charts_unknown_type_is_rejected(client):
    assert client.get("/api/dashboard/charts", params={"type": "pie"}).status_code == 422


# ======================= activities =======================

def _seed_activity_feed(upstream, n=10):
    upstream.data["sales"] = [
        {"id": i, "createdAt": _recent(i + 1), "total": 10, "status": "COMPLETED"} for i in range(n)
    ]
    upstream.data["users"] = [{"id": i, "name": f"u{i}", "createdAt": _recent(i + 2)} for i in range(n)]
    upstream.data["products"] = [{"id": i, "name": f"p{i}", "createdAt": _recent(i + 3)} for i in range(n)]


def test_recent_activities_mixed_quotas(client, upstream):
    _seed_activity_feed(upstream)
    body = client.get("/api/dashboard/recent-activities", params={"limit": 10}).json()
    assert body["stats"]["byType"] == {"sales": 6, "users": 2, "products": 2}
    stamps = [a["timestamp"] for a in body["activities"]]
    assert stamps == sorted(stamps, reverse=True)


def test_recent_activities_single_type(client, upstream):
    _seed_activity_feed(upstream)
    body = client.get("/api/dashboard/recent-activities", params={"type": "users", "limit": 5}).json()
    assert [a["type"] for a in body["activities"]] == ["user"] * 5
    assert upstream.calls == ["users"]


def test_recent_activities_respects_hours(client, upstream):
    upstream.data["sales"] = [
        {"id": 1, "createdAt": _recent(10), "status": "COMPLETED"},
        {"id": 2, "createdAt": _recent(60 * 5), "status": "COMPLETED"},
    ]
    body = client.get("/api/dashboard/recent-activities", params={"type": "sales", "hours": 1}).json()
    assert [a["id"] for a in body["activities"]] == ["sale-1"]


@pytest.mark.parametrize("limit", [0, 101])
def test_recent_activities_limit_bounds(client, limit):
    assert client.get("/api/dashboard/recent-activities", params={"limit": limit}).status_code == 422


def test_compact_activities(client, upstream):
    _seed_activity_feed(upstream, n=8)
    body = client.get("/api/dashboard/activities").json()
    assert body["success"] is True
    types = [a["type"] for a in body["data"]]
    assert types.count("sale") == 5
    assert types.count("user") == 3
    assert types.count("sync") == 1


def test_compact_activities_when_every_source_fails(client, upstream, definitive):
    upstream.fail = {"sales": definitive, "users": definitive}
    body = client.get("/api/dashboard/activities").json()
    assert body["success"] is False
    assert body["error"].startswith("every source unavailable")
    assert [a["type"] for a in body["data"]] == ["sync"]


# ========================= stats =========================

def test_stats_and_sync_state(client, upstream, transient):
    _seed_basic(upstream)
    body = client.get("/api/dashboard/stats").json()
    assert body["users"] == {"total": 1, "active": 1, "inactive": 0, "new": 1}
    assert body["sync"]["status"] == "success"
    assert body["sync"]["errorCount"] == 0
    assert set(body["sourceResponseTimes"]) == {"users", "products", "sales", "cashRegisters"}

    upstream.fail["users"] = transient
    body = client.get("/api/dashboard/stats").json()
    assert body["sync"]["status"] == "warning"
    assert body["sync"]["errorCount"] == 1
    assert body["errorRate"] == 0.25


# ========================= health =========================

def test_health_healthy(client, upstream):
    body = client.get("/api/health").json()
    assert body["status"] == "healthy"
    assert body["overall"] is True
    assert body["services"]["api"]["status"] == "up"


def test_health_unhealthy(client, upstream, transient):
    upstream.fail["health"] = transient
    body = client.get("/api/health").json()
    assert body["status"] == "unhealthy"
    assert body["api"] is False and body["sync"] is True
    assert body["lastError"] == "connection refused"


def test_health_head(client, upstream):
    r = client.head("/api/health")
    assert r.status_code == 200
    assert upstream.calls == []


# ========================== auth ==========================

def _auth(token):
    return {"Authorization": f"Bearer {token}"}


def test_verify_requires_token(client):
    assert client.get("/api/auth/verify").status_code == 401


def test_verify_offline_token(client):
    r = client.get("/api/auth/verify", headers=_auth(mint_offline_token()))
    assert r.status_code == 200
    assert r.json()["offline"] is True


def test_verify_expired_offline_token(client):
    issued = int(time.time() * 1000) - 25 * 60 * 60 * 1000
    r = client.get("/api/auth/verify", headers=_auth(mint_offline_token(issued)))
    assert r.status_code == 401


def test_verify_upstream_token(client):
    r = client.get("/api/auth/verify", headers=_auth("abc"))
    assert r.status_code == 200
    assert r.json()["degraded"] is False


@pytest.mark.parametrize("error", [
    TransientNetworkError("timeout"),
    DefinitiveUpstreamError("HTTP 503", status=503),
])
def test_verify_degrades_open_when_upstream_unavailable(client, upstream, error):
    upstream.token_error = error
    r = client.get("/api/auth/verify", headers=_auth("abc"))
    assert r.status_code == 200
    assert r.json()["degraded"] is True


def test_verify_rejected_by_upstream(client, upstream):
    upstream.token_error = DefinitiveUpstreamError("HTTP 401", status=401)
    assert client.get("/api/auth/verify", headers=_auth("abc")).status_code == 401
