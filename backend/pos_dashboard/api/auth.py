# backend/pos_dashboard/api/auth.py
import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from pos_dashboard.api.deps import get_upstream
from pos_dashboard.services.tokens import verify_token
from pos_dashboard.upstream.client import UpstreamClient

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/verify")
async def verify(
    authorization: Optional[str] = Header(None),
    upstream: UpstreamClient = Depends(get_upstream),
):
    token = (authorization or "").removeprefix("Bearer ").strip()
    if not token:
        raise HTTPException(status_code=401, detail="authentication token not provided")

    result = await asyncio.to_thread(verify_token, token, upstream)
    if not result.valid:
        raise HTTPException(status_code=401, detail=result.message)
    return {"valid": True, "message": result.message, "offline": result.offline, "degraded": result.degraded}
