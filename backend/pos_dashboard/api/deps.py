# backend/pos_dashboard/api/deps.py
from fastapi import Request

from pos_dashboard.config import Settings
from pos_dashboard.services.sync_state import SyncState
from pos_dashboard.upstream.client import UpstreamClient


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_upstream(request: Request) -> UpstreamClient:
    return request.app.state.upstream


def get_sync_state(request: Request) -> SyncState:
    return request.app.state.sync_state
