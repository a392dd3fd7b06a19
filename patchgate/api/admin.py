"""Admin endpoints - reset gate data."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from patchgate.auth.middleware import AdminDep
from patchgate.database import get_db
from patchgate.schemas.admin import ResetCounts, ResetResponse
from patchgate.storage.repositories import delete_gate_data

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/reset", response_model=ResetResponse)
async def reset_gate_data(
    _admin: AdminDep,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Delete all patch evaluations and gate-filed investigations."""
    logger.info("Starting gate data reset...")
    counts = await delete_gate_data(db)
    logger.info(
        "Deleted %d investigations and %d patch evaluations",
        counts["investigations"],
        counts["patch_evaluations"],
    )
    return ResetResponse(
        success=True,
        deleted=ResetCounts(**counts),
        message="Gate data reset successfully",
    )
