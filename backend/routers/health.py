"""
Wingmann Engine - Health Check Router

GET /api/health - liveness plus the current submission count.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..services.engine import Engine, get_engine
from ..services.record_store import utc_now_iso

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str
    timestamp: str
    totalSubmissions: int
    exportsStale: bool


@router.get("", response_model=HealthResponse)
async def health_check(engine: Engine = Depends(get_engine)) -> HealthResponse:
    """
    Always 200 while the process is up.

    An unreadable store reports zero submissions rather than failing the health check.
    exportsStale is true while the last export publish has failed.
    """
    return HealthResponse(
        status="ok",
        timestamp=utc_now_iso(),
        totalSubmissions=await engine.store.count(),
        exportsStale=engine.publisher.stale,
    )
