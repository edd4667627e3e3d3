# backend/pos_dashboard/api/health.py
import asyncio
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response

from pos_dashboard.api.deps import get_upstream
from pos_dashboard.upstream.client import UpstreamClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


async def _probe(fn) -> tuple:
    started = time.perf_counter()
    try:
        await asyncio.to_thread(fn)
        return True, int((time.perf_counter() - started) * 1000), None
    except Exception as e:
        logger.warning("Health probe failed: %s", e)
        return False, None, str(e) or e.__class__.__name__


@router.get("/health")
async def health(upstream: UpstreamClient = Depends(get_upstream)):
    (api_ok, api_ms, api_err), (sync_ok, _, sync_err) = await asyncio.gather(
        _probe(upstream.health_check),
        _probe(lambda: upstream.get_users({"page": 1, "limit": 1})),
    )
    overall = api_ok and sync_ok
    now = datetime.now(timezone.utc).isoformat()
    return {
        "status": "healthy" if overall else "unhealthy",
        "timestamp": now,
        "services": {
            "api": {"status": "up" if api_ok else "down", "responseTime": api_ms, "error": api_err},
            "sync": {"status": "up" if sync_ok else "down", "lastSync": now, "error": sync_err},
        },
        "api": api_ok,
        "sync": sync_ok,
        "overall": overall,
        "apiResponseTime": api_ms,
        "lastError": api_err or sync_err,
    }


# quick check for load balancers, no upstream call
@router.head("/health")
def health_head():
    return Response(status_code=200)
