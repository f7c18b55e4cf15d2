"""Health, readiness and metrics endpoints."""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core import __version__
from core.observability.metrics import get_metrics
from storage.base import RecordStore

from api.dependencies import get_record_store


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    services: Dict[str, str]


@router.get("/health", response_model=HealthResponse)
async def health_check(store: RecordStore = Depends(get_record_store)) -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=__version__,
        services={
            "api": "up",
            "store": store.name,
        },
    )


@router.get("/ready")
async def readiness_check(store: RecordStore = Depends(get_record_store)) -> Dict[str, Any]:
    """Readiness probe; reports whether the record store is reachable."""
    details = store.describe()
    ready = details.get("available", True)
    return {"status": "ready" if ready else "degraded", "store": details}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """Liveness probe."""
    return {"status": "alive"}


@router.get("/metrics")
async def metrics_summary() -> Dict[str, Any]:
    """Engine run counters, durations and last result counts."""
    return get_metrics().get_summary()
