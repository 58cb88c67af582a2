"""Health and readiness endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness check."""
    return {"status": "healthy"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness check. 200 only once the pipeline has been built."""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is not None:
        return {"status": "ready", "stages": pipeline.names}
    return JSONResponse(status_code=503, content={"status": "not_ready"})
