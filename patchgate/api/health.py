"""Health and metrics endpoints."""

from fastapi import APIRouter

from patchgate.probes.runner import PROBE_DEFINITIONS

router = APIRouter()


@router.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/metrics")
async def metrics():
    """Basic metrics endpoint for observability."""
    return {
        "service": "patchgate",
        "version": "0.1.0",
        "probes": [d.probe_id for d in PROBE_DEFINITIONS if d.is_active],
    }
