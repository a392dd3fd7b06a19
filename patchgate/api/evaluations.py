"""Patch evaluation endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from patchgate.database import async_session_maker
from patchgate.engine.orchestrator import EvaluationStoreError, PatchEvaluator
from patchgate.probes.runner import ProductProbeRunner
from patchgate.schemas.evaluation import (
    EvaluationRecord,
    PatchEvaluationResult,
    PatchSubmitRequest,
)
from patchgate.storage.repositories import SqlEvaluationStore, SqlInvestigationSink

logger = logging.getLogger(__name__)

router = APIRouter()


def get_patch_evaluator() -> PatchEvaluator:
    """Dependency: evaluator wired to the database and the live product."""
    return PatchEvaluator(
        store=SqlEvaluationStore(async_session_maker),
        probe_runner=ProductProbeRunner(),
        investigation_sink=SqlInvestigationSink(async_session_maker),
    )


EvaluatorDep = Annotated[PatchEvaluator, Depends(get_patch_evaluator)]


@router.post("/patches/submit", response_model=PatchEvaluationResult)
async def submit_patch(body: PatchSubmitRequest, evaluator: EvaluatorDep):
    """
    Evaluate a patch: probes before, overlay, probes after, diff, gate.
    Always returns a terminal evaluation once it has been recorded.
    """
    logger.info("Received patch submission (%d bytes)", len(body.patch))
    try:
        return await evaluator.evaluate_patch(
            body.patch,
            origin_investigation_id=body.investigation_id,
            risk_flags=body.risk_flags,
        )
    except EvaluationStoreError as exc:
        logger.error("Patch evaluation could not start: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Patch evaluation failed: {exc}",
        ) from exc


@router.get("/patches/{evaluation_id}", response_model=EvaluationRecord)
async def get_patch_evaluation(evaluation_id: str, evaluator: EvaluatorDep):
    """Get a stored patch evaluation by ID."""
    record = await evaluator.get_evaluation(evaluation_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Patch evaluation not found",
        )
    return record
