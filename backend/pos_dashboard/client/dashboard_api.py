# backend/pos_dashboard/client/dashboard_api.py
import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests

from pos_dashboard.errors import DefinitiveUpstreamError, TransientNetworkError
from pos_dashboard.services.tokens import is_offline_token, verify_offline_token

logger = logging.getLogger(__name__)


class DashboardApi:
    """HTTP client for the dashboard endpoints, awaited from the poller."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if not self.token:
            return headers
        if is_offline_token(self.token) and not verify_offline_token(self.token).valid:
            logger.warning("Offline token expired, sending requests without credentials")
            return headers
        headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.get(url, params=params, headers=self._headers(), timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransientNetworkError(f"network error on {path}: {exc}", source=path) from exc
        except requests.RequestException as exc:
            raise DefinitiveUpstreamError(f"request failed on {path}: {exc}", source=path) from exc
        if resp.status_code >= 400:
            raise DefinitiveUpstreamError(f"HTTP {resp.status_code} on {path}", source=path, status=resp.status_code)
        try:
            return resp.json()
        except ValueError as exc:
            raise DefinitiveUpstreamError(f"{path} did not return JSON", source=path) from exc

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await asyncio.to_thread(self._get_json, path, params)

    async def get_dashboard_data(self) -> Dict[str, Any]:
        return await self._get("/api/dashboard")

    async def get_metrics(self) -> Dict[str, Any]:
        return await self._get("/api/dashboard/metrics")

    async def get_chart_data(self, type: str = "all", period: str = "7d") -> Dict[str, Any]:
        data = await self._get("/api/dashboard/charts", {"type": type, "period": period})
        return data.get("charts", {}) if isinstance(data, dict) else {}

    async def get_recent_activities(self, limit: int = 10, type: Optional[str] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"limit": limit}
        if type:
            params["type"] = type
        data = await self._get("/api/dashboard/recent-activities", params)
        return data.get("activities", []) if isinstance(data, dict) else []

    async def get_system_stats(self) -> Dict[str, Any]:
        return await self._get("/api/dashboard/stats")

    async def check_health(self) -> Dict[str, Any]:
        return await self._get("/api/health")

    def close(self) -> None:
        self.session.close()
