"""Repository functions for patch evaluations and investigations."""

import logging
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from patchgate.models import Investigation, PatchEvaluation
from patchgate.schemas.evaluation import EvaluationRecord, SecondaryTrigger

logger = logging.getLogger(__name__)

GATE_INVESTIGATION_TRIGGERS = ("auto_detect", "patch_failure")


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def create_evaluation(db: AsyncSession, patch_text: str, patch_hash: str) -> PatchEvaluation:
    """Insert a pending patch evaluation."""
    ev = PatchEvaluation(
        id=str(uuid4()),
        created_at=_now(),
        status="pending",
        patch_text=patch_text,
        patch_hash=patch_hash,
        diff=None,
        reasons=[],
        probe_results_before=None,
        probe_results_after=None,
        investigation_ids=[],
        evaluation_meta={},
    )
    db.add(ev)
    await db.flush()
    return ev


async def get_evaluation_by_id(db: AsyncSession, evaluation_id: str) -> PatchEvaluation | None:
    """Get evaluation by ID."""
    result = await db.execute(select(PatchEvaluation).where(PatchEvaluation.id == evaluation_id))
    return result.scalar_one_or_none()


async def finalize_evaluation(
    db: AsyncSession,
    evaluation_id: str,
    status: str,
    reasons: list[str],
    diff: dict | None,
    probe_results_before: list[dict],
    probe_results_after: list[dict],
    investigation_ids: list[str],
    evaluation_meta: dict,
) -> PatchEvaluation:
    """Move a pending evaluation to its terminal status."""
    ev = await get_evaluation_by_id(db, evaluation_id)
    if ev is None:
        raise LookupError(f"Patch evaluation {evaluation_id} not found")
    if ev.status != "pending":
        raise ValueError(f"Patch evaluation {evaluation_id} is already {ev.status}")
    ev.status = status
    ev.reasons = reasons
    ev.diff = diff
    ev.probe_results_before = probe_results_before
    ev.probe_results_after = probe_results_after
    ev.investigation_ids = investigation_ids
    ev.evaluation_meta = evaluation_meta
    await db.flush()
    return ev


async def create_investigation(
    db: AsyncSession,
    investigation_id: str,
    trigger: str,
    notes: str,
    run_meta: dict,
) -> Investigation:
    """File an investigation record."""
    inv = Investigation(
        id=investigation_id,
        created_at=_now(),
        trigger=trigger,
        notes=notes,
        run_meta=run_meta,
    )
    db.add(inv)
    await db.flush()
    return inv


async def delete_gate_data(db: AsyncSession) -> dict[str, int]:
    """Delete all patch evaluations and the investigations this service filed."""
    inv_result = await db.execute(
        delete(Investigation)
        .where(Investigation.trigger.in_(GATE_INVESTIGATION_TRIGGERS))
        .returning(Investigation.id)
    )
    deleted_investigations = len(inv_result.all())
    ev_result = await db.execute(delete(PatchEvaluation).returning(PatchEvaluation.id))
    deleted_evaluations = len(ev_result.all())
    return {"investigations": deleted_investigations, "patch_evaluations": deleted_evaluations}


def to_record(ev: PatchEvaluation) -> EvaluationRecord:
    """ORM row -> API record."""
    meta = ev.evaluation_meta or {}
    return EvaluationRecord(
        id=str(ev.id),
        created_at=ev.created_at,
        status=ev.status,
        patch_text=ev.patch_text,
        patch_hash=ev.patch_hash,
        reasons=ev.reasons or [],
        risk_level=meta.get("risk_level"),
        diff=ev.diff,
        before_results=ev.probe_results_before or [],
        after_results=ev.probe_results_after or [],
        investigation_ids=ev.investigation_ids or [],
        evaluation_meta=meta,
    )


class SqlEvaluationStore:
    """
    Insert-then-single-update store used by the orchestrator.
    Each call runs in its own committed session so the pending row is
    visible to lookups while the evaluation is in flight.
    """

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def create_pending(self, patch_text: str, patch_hash: str) -> str:
        async with self.session_maker() as db:
            ev = await create_evaluation(db, patch_text, patch_hash)
            await db.commit()
            return str(ev.id)

    async def finalize(
        self,
        evaluation_id: str,
        *,
        status: str,
        reasons: list[str],
        diff: dict | None,
        before: list[dict],
        after: list[dict],
        investigation_ids: list[str],
        meta: dict,
    ) -> None:
        async with self.session_maker() as db:
            await finalize_evaluation(
                db,
                evaluation_id,
                status=status,
                reasons=reasons,
                diff=diff,
                probe_results_before=before,
                probe_results_after=after,
                investigation_ids=investigation_ids,
                evaluation_meta=meta,
            )
            await db.commit()

    async def get(self, evaluation_id: str) -> EvaluationRecord | None:
        async with self.session_maker() as db:
            ev = await get_evaluation_by_id(db, evaluation_id)
            return to_record(ev) if ev else None


class SqlInvestigationSink:
    """Files investigations for secondary triggers and rejected patches."""

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def file_secondary_trigger(self, evaluation_id: str, trigger: SecondaryTrigger) -> str:
        investigation_id = f"ad-{evaluation_id}-{trigger.probe_id}"
        notes = (
            f"Secondary trigger on patch evaluation {evaluation_id}\n"
            f"Probe: {trigger.probe_id}\n"
            f"Reasons: {trigger.reason}"
        )
        run_meta = {
            "source": "patch_evaluation",
            "patch_evaluation_id": evaluation_id,
            "probe_id": trigger.probe_id,
            "reasons": trigger.reasons,
        }
        async with self.session_maker() as db:
            await create_investigation(db, investigation_id, "auto_detect", notes, run_meta)
            await db.commit()
        logger.info("Filed auto_detect investigation %s for probe %s", investigation_id, trigger.probe_id)
        return investigation_id

    async def file_patch_failure(
        self,
        evaluation_id: str,
        original_investigation_id: str,
        patch_text: str,
        reasons: list[str],
        risk_level: str | None,
        before: list[dict],
        after: list[dict],
    ) -> str:
        investigation_id = f"pf-{evaluation_id}"
        reason_lines = "\n".join(f"  - {r}" for r in reasons)
        notes = (
            "Patch Failure Investigation\n\n"
            f"Original Investigation: {original_investigation_id}\n"
            f"Patch Evaluation: {evaluation_id}\n"
            f"Rejection Reasons:\n{reason_lines}\n\n"
            f"Risk Level: {risk_level or 'unknown'}"
        )
        run_meta = {
            "source": "patch_failure",
            "focus": {"kind": "patch"},
            "original_investigation_id": original_investigation_id,
            "patch_id": evaluation_id,
            "patch_diff": patch_text,
            "sandbox_result": {
                "status": "rejected",
                "reasons": reasons,
                "risk_level": risk_level,
                "probe_results_before": before,
                "probe_results_after": after,
            },
        }
        async with self.session_maker() as db:
            await create_investigation(db, investigation_id, "patch_failure", notes, run_meta)
            await db.commit()
        logger.info("Filed patch_failure investigation %s", investigation_id)
        return investigation_id
