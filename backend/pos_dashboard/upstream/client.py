# backend/pos_dashboard/upstream/client.py
"""
Read-only client for the upstream point-of-sale API.

Every call is independently fallible. Transport failures become
TransientNetworkError, HTTP error answers become DefinitiveUpstreamError.
No retry happens here: retrying is the poller's job.
"""
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from pos_dashboard.config import Settings
from pos_dashboard.errors import DefinitiveUpstreamError, TransientNetworkError
from pos_dashboard.schemas.records import CashRegister, Product, Sale, User

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)


class UpstreamClient:
    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        health_timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.health_timeout = health_timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json", "Content-Type": "application/json"})
        if api_key:
            self.session.headers["Authorization"] = f"Bearer {api_key}"

    @classmethod
    def from_settings(cls, settings: Settings) -> "UpstreamClient":
        return cls(
            settings.upstream_base_url,
            api_key=settings.upstream_api_key,
            timeout=settings.upstream_timeout,
            health_timeout=settings.health_check_timeout,
        )

    def close(self) -> None:
        self.session.close()

    # ---------- transport ----------
    def _get(
        self,
        path: str,
        source: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            resp = self.session.get(url, params=params or None, timeout=timeout or self.timeout, headers=headers)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransientNetworkError(f"{source}: {exc}", source=source) from exc
        except requests.RequestException as exc:
            raise DefinitiveUpstreamError(f"{source}: request failed: {exc}", source=source) from exc

        if resp.status_code >= 400:
            raise DefinitiveUpstreamError(
                f"{source}: HTTP {resp.status_code}", source=source, status=resp.status_code
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise DefinitiveUpstreamError(f"{source}: response is not JSON", source=source) from exc

    @staticmethod
    def _parse_list(payload: Any, model: Type[R], source: str) -> List[R]:
        """Accept a bare JSON array or an envelope {"data": [...]}; skip rows that fail validation."""
        rows = payload.get("data") if isinstance(payload, dict) else payload
        if not isinstance(rows, list):
            raise DefinitiveUpstreamError(f"{source}: expected a list of records", source=source)
        out: List[R] = []
        skipped = 0
        for row in rows:
            try:
                out.append(model.model_validate(row))
            except ValidationError:
                skipped += 1
        if skipped:
            logger.warning("Skipped %d malformed %s record(s)", skipped, source)
        return out

    # ---------- sources ----------
    def get_sales(self, filters: Optional[Dict[str, Any]] = None) -> List[Sale]:
        return self._parse_list(self._get("/sales", "sales", filters), Sale, "sales")

    def get_users(self, filters: Optional[Dict[str, Any]] = None) -> List[User]:
        return self._parse_list(self._get("/users", "users", filters), User, "users")

    def get_products(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        return self._parse_list(self._get("/products", "products", filters), Product, "products")

    def get_cash_registers(self, filters: Optional[Dict[str, Any]] = None) -> List[CashRegister]:
        return self._parse_list(
            self._get("/cash-registers", "cashRegisters", filters), CashRegister, "cashRegisters"
        )

    def health_check(self) -> None:
        """Raises on an unreachable upstream."""
        self._get("/users", "health", {"page": 1, "limit": 1}, timeout=self.health_timeout)

    def get_current_user(self, token: str) -> User:
        payload = self._get("/auth/me", "auth", headers={"Authorization": f"Bearer {token}"})
        if isinstance(payload, dict) and isinstance(payload.get("user"), dict):
            payload = payload["user"]
        try:
            return User.model_validate(payload)
        except ValidationError as exc:
            raise DefinitiveUpstreamError("auth: unexpected user payload", source="auth") from exc
