# backend/pos_dashboard/config.py
import os
from dataclasses import dataclass
from typing import List, Optional


def _float_env(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    log_level: str
    cors_allow_origins: List[str]
    upstream_base_url: str
    upstream_api_key: Optional[str]
    upstream_timeout: float
    health_check_timeout: float
    source_deadline: Optional[float]
    daily_revenue_goal: float
    dashboard_api_base_url: str


def load_settings() -> Settings:
    """Read settings from the environment (called once per process by main)."""
    return Settings(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        cors_allow_origins=os.getenv("CORS_ALLOW_ORIGINS", "*").split(","),
        upstream_base_url=os.getenv("UPSTREAM_API_BASE_URL", "http://localhost:4000/api").rstrip("/"),
        upstream_api_key=os.getenv("UPSTREAM_API_KEY") or None,
        upstream_timeout=_float_env("UPSTREAM_API_TIMEOUT", 30.0),
        health_check_timeout=_float_env("HEALTH_CHECK_TIMEOUT", 5.0),
        source_deadline=_float_env("SOURCE_DEADLINE", None),
        daily_revenue_goal=_float_env("DAILY_REVENUE_GOAL", 1000.0),
        dashboard_api_base_url=os.getenv("DASHBOARD_API_BASE_URL", "http://localhost:8000").rstrip("/"),
    )
