# backend/tests/test_upstream_client.py
import asyncio
import pytest
import requests

from pos_dashboard.errors import DefinitiveUpstreamError, TransientNetworkError
from pos_dashboard.client import DashboardApi
from pos_dashboard.services.tokens import mint_offline_token
from pos_dashboard.upstream.client import UpstreamClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self._text = text

    def json(self):
        if self._text is not None:
            raise ValueError("not json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response or FakeResponse(payload=[])
        self.error = error
        self.requests = []
        self.closed = False

    def get(self, url, params=None, timeout=None, headers=None):
        self.requests.append({"url": url, "params": params, "timeout": timeout, "headers": headers})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


def _client(session, **kw):
    return UpstreamClient("http://pos.local/api/", session=session, **kw)


def test_api_key_header_and_url():
    session = FakeSession()
    client = _client(session, api_key="secret", timeout=12)
    client.get_sales()
    assert session.headers["Authorization"] == "Bearer secret"
    assert session.requests[0]["url"] == "http://pos.local/api/sales"
    assert session.requests[0]["timeout"] == 12


def test_no_api_key_no_auth_header():
    session = FakeSession()
    _client(session)
    assert "Authorization" not in session.headers


@pytest.mark.parametrize("payload", [
    [{"id": 1, "total": "12.50", "status": "completed"}],
    {"data": [{"id": 1, "total": "12.50", "status": "completed"}], "total": 1},
])
def test_list_and_envelope_payloads(payload):
    sales = _client(FakeSession(FakeResponse(payload=payload))).get_sales()
    assert len(sales) == 1
    assert sales[0].id == "1"
    assert sales[0].total == 12.5
    assert sales[0].is_completed


def test_malformed_rows_are_skipped():
    payload = [{"id": 1, "name": "Ana"}, "garbage", 42, {"id": 2, "name": "Bia", "active": True}]
    users = _client(FakeSession(FakeResponse(payload=payload))).get_users()
    assert [u.id for u in users] == ["1", "2"]


def test_cash_registers_path():
    session = FakeSession(FakeResponse(payload=[{"id": 9, "status": "open", "currentAmount": "80"}]))
    registers = _client(session).get_cash_registers()
    assert session.requests[0]["url"].endswith("/cash-registers")
    assert registers[0].status == "OPEN"
    assert registers[0].current_amount == 80.0


def test_non_list_payload_is_definitive():
    with pytest.raises(DefinitiveUpstreamError):
        _client(FakeSession(FakeResponse(payload={"message": "ok"}))).get_products()


@pytest.mark.parametrize("error", [requests.ConnectionError("refused"), requests.Timeout("slow")])
def test_network_errors_are_transient(error):
    with pytest.raises(TransientNetworkError) as exc_info:
        _client(FakeSession(error=error)).get_products()
    assert exc_info.value.source == "products"
    assert exc_info.value.retryable


def test_http_errors_are_definitive():
    with pytest.raises(DefinitiveUpstreamError) as exc_info:
        _client(FakeSession(FakeResponse(status_code=404))).get_users()
    assert exc_info.value.status == 404
    assert not exc_info.value.retryable


def test_non_json_is_definitive():
    with pytest.raises(DefinitiveUpstreamError):
        _client(FakeSession(FakeResponse(text="<html>"))).get_sales()


def test_health_check_uses_short_timeout():
    session = FakeSession(FakeResponse(payload=[]))
    _client(session, health_timeout=2).health_check()
    assert session.requests[0]["timeout"] == 2
    assert session.requests[0]["params"] == {"page": 1, "limit": 1}


def test_current_user_sends_the_token():
    session = FakeSession(FakeResponse(payload={"user": {"id": 7, "name": "Ana"}}))
    user = _client(session, api_key="service").get_current_user("jwt-abc")
    assert user.id == "7"
    assert session.requests[0]["headers"] == {"Authorization": "Bearer jwt-abc"}


def test_close_closes_the_session():
    session = FakeSession()
    _client(session).close()
    assert session.closed


# ===================== dashboard HTTP client =====================

def test_dashboard_api_sends_valid_offline_token():
    session = FakeSession(FakeResponse(payload={"activities": [{"id": "sale-1"}]}))
    api = DashboardApi("http://dash.local/", token=mint_offline_token(), session=session)
    activities = asyncio.run(api.get_recent_activities(limit=5, type="sales"))
    assert activities == [{"id": "sale-1"}]
    req = session.requests[0]
    assert req["url"] == "http://dash.local/api/dashboard/recent-activities"
    assert req["params"] == {"limit": 5, "type": "sales"}
    assert req["headers"]["Authorization"].startswith("Bearer offline-token-")


def test_dashboard_api_drops_expired_offline_token():
    session = FakeSession(FakeResponse(payload={"sales": {}}))
    api = DashboardApi("http://dash.local", token="offline-token-0", session=session)
    asyncio.run(api.get_metrics())
    assert "Authorization" not in session.requests[0]["headers"]


def test_dashboard_api_maps_http_errors():
    api = DashboardApi("http://dash.local", session=FakeSession(FakeResponse(status_code=500)))
    with pytest.raises(DefinitiveUpstreamError):
        asyncio.run(api.get_system_stats())


def test_dashboard_api_chart_data_and_health():
    session = FakeSession(FakeResponse(payload={"charts": {"sales": {"labels": []}}, "status": "healthy"}))
    api = DashboardApi("http://dash.local", session=session)
    assert asyncio.run(api.get_chart_data(type="sales", period="30d")) == {"sales": {"labels": []}}
    assert session.requests[0]["params"] == {"type": "sales", "period": "30d"}
    assert asyncio.run(api.check_health())["status"] == "healthy"
    assert session.requests[1]["url"] == "http://dash.local/api/health"
