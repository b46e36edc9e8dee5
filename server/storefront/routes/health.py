# ─────────────────────────────────────────────────────────────────────────────
# Health Check Routes — liveness, readiness, metrics
# ─────────────────────────────────────────────────────────────────────────────
#   /health        → Liveness probe. Near-zero cost, always 200.
#   /health/ready  → Readiness probe. Database answers, image storage
#                    connected (when configured), limiter sweep alive.
#                    503 if not ready.
#   /metrics       → Request, checkout, and limiter counters as JSON.
# ─────────────────────────────────────────────────────────────────────────────

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from storefront.db.store import Store
from storefront.dependencies import get_image_store, get_limiter, get_metrics, get_store
from storefront.ratelimit.registry import LimiterRegistry
from storefront.schemas import LivenessResponse, ReadinessResponse
from storefront.services.images import ImageStore
from storefront.services.metrics import ServerMetrics

router = APIRouter()


@router.get("/health", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe — is the process alive? No deps, no I/O."""
    return LivenessResponse(status="ok")


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness(
    store: Store = Depends(get_store),
    images: ImageStore = Depends(get_image_store),
    limiter: LimiterRegistry = Depends(get_limiter),
) -> JSONResponse:
    """Readiness probe — can this instance serve traffic?"""
    database_connected = await run_in_threadpool(store.ping)
    storage_connected = images.is_connected
    limiter_sweeping = limiter.running

    ready = database_connected and storage_connected and limiter_sweeping
    response = ReadinessResponse(
        status="ready" if ready else "not_ready",
        database_connected=database_connected,
        storage_connected=storage_connected,
        limiter_sweeping=limiter_sweeping,
    )
    return JSONResponse(status_code=200 if ready else 503, content=response.model_dump())


@router.get("/metrics")
async def metrics_endpoint(
    metrics: ServerMetrics = Depends(get_metrics),
    limiter: LimiterRegistry = Depends(get_limiter),
) -> dict[str, Any]:
    return {**metrics.to_dict(), "limiter": limiter.stats()}
