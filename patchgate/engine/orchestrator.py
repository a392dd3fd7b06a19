"""Patch evaluation orchestrator.

before-probes -> overlay -> after-probes -> diff -> secondary triggers -> gate -> persist

Once the pending row exists the caller always gets a terminal evaluation back;
only a failure to create that row is raised.
"""

import asyncio
import logging
import time

from patchgate.config import settings
from patchgate.engine.differ import diff_probe_results, summarize_diff
from patchgate.engine.gate import decide
from patchgate.engine.overlay import FileOverlay
from patchgate.engine.triggers import detect_secondary_triggers
from patchgate.schemas.evaluation import (
    EvaluationRecord,
    PatchEvaluationResult,
    ProbeResult,
    RiskFlags,
    SecondaryTrigger,
)
from patchgate.utils.canonical import gate_inputs_hash, patch_hash

logger = logging.getLogger(__name__)


class ProbeTimeoutError(Exception):
    """A probe-suite run exceeded its wall-clock bound."""


class EvaluationStoreError(Exception):
    """The pending evaluation row could not be created."""


def _dump(results: list[ProbeResult]) -> list[dict]:
    return [r.model_dump(mode="json") for r in results]


def build_record_summary(record: EvaluationRecord) -> str:
    """Short text summary for a stored evaluation."""
    lines = [
        f"Patch Evaluation: {record.status.upper()}",
        f"Created: {record.created_at.isoformat()}",
    ]
    if record.reasons:
        lines.append("")
        lines.append(f"Reasons ({len(record.reasons)}):")
        lines.extend(f"  {r}" for r in record.reasons)
    return "\n".join(lines)


class PatchEvaluator:
    """
    Runs one patch evaluation end to end.

    store: create_pending(patch_text, patch_hash) -> id, finalize(id, ...), get(id)
    probe_runner: run_all_probes() -> list[ProbeResult]
    investigation_sink (optional): file_secondary_trigger(...), file_patch_failure(...)
    """

    def __init__(
        self,
        store,
        probe_runner,
        investigation_sink=None,
        probe_timeout_seconds: float | None = None,
        slow_probe_threshold_ms: int | None = None,
        latency_threshold_percent: float | None = None,
    ):
        self.store = store
        self.probe_runner = probe_runner
        self.investigation_sink = investigation_sink
        self.probe_timeout_seconds = probe_timeout_seconds or settings.probe_timeout_seconds
        self.slow_probe_threshold_ms = slow_probe_threshold_ms or settings.probe_slow_threshold_ms
        self.latency_threshold_percent = (
            latency_threshold_percent or settings.latency_regression_percent
        )

    async def _run_probes(self, phase: str) -> list[ProbeResult]:
        logger.info("Running %s probes...", phase)
        try:
            return await asyncio.wait_for(
                self.probe_runner.run_all_probes(),
                timeout=self.probe_timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise ProbeTimeoutError(
                f"Probe execution exceeded {self.probe_timeout_seconds:g} second timeout "
                f"({phase} run)"
            ) from None

    async def _file_trigger_investigations(
        self, evaluation_id: str, triggers: list[SecondaryTrigger]
    ) -> list[str]:
        if self.investigation_sink is None:
            return []
        ids: list[str] = []
        for trigger in triggers:
            investigation_id = await self.investigation_sink.file_secondary_trigger(
                evaluation_id, trigger
            )
            if investigation_id:
                ids.append(investigation_id)
        return ids

    async def _file_patch_failure(
        self,
        evaluation_id: str,
        origin_investigation_id: str | None,
        patch_text: str,
        reasons: list[str],
        risk_level: str | None,
        before: list[ProbeResult],
        after: list[ProbeResult],
    ) -> list[str]:
        if self.investigation_sink is None or not origin_investigation_id:
            return []
        investigation_id = await self.investigation_sink.file_patch_failure(
            evaluation_id,
            origin_investigation_id,
            patch_text,
            reasons,
            risk_level,
            _dump(before),
            _dump(after),
        )
        return [investigation_id] if investigation_id else []

    async def _reject(
        self,
        evaluation_id: str,
        patch_text: str,
        reasons: list[str],
        kind: str,
        before: list[ProbeResult],
        after: list[ProbeResult],
        origin_investigation_id: str | None,
    ) -> PatchEvaluationResult:
        """Finalize as rejected without a gate decision (parse, timeout, system errors)."""
        investigation_ids: list[str] = []
        if kind != "system_error":
            # The row must reach a terminal state even when filing fails
            try:
                investigation_ids = await self._file_patch_failure(
                    evaluation_id, origin_investigation_id, patch_text, reasons, None, before, after
                )
            except Exception:
                logger.exception(
                    "Could not file patch_failure investigation for %s", evaluation_id
                )
        await self.store.finalize(
            evaluation_id,
            status="rejected",
            reasons=reasons,
            diff=None,
            before=_dump(before),
            after=_dump(after),
            investigation_ids=investigation_ids,
            meta={"rejection_kind": kind},
        )
        logger.info("Evaluation %s REJECTED (%s)", evaluation_id, kind)
        return PatchEvaluationResult(
            id=evaluation_id,
            status="rejected",
            reasons=reasons,
            summary="Patch evaluation failed",
            before_results=before,
            after_results=after,
            investigation_ids=investigation_ids,
        )

    async def evaluate_patch(
        self,
        patch_text: str,
        origin_investigation_id: str | None = None,
        risk_flags: RiskFlags | None = None,
    ) -> PatchEvaluationResult:
        """Evaluate a patch and persist the terminal outcome."""
        started = time.monotonic()
        try:
            evaluation_id = await self.store.create_pending(patch_text, patch_hash(patch_text))
        except Exception as exc:
            raise EvaluationStoreError(f"Could not create patch evaluation: {exc}") from exc

        logger.info("Starting evaluation %s (%d bytes)", evaluation_id, len(patch_text))
        before: list[ProbeResult] = []
        after: list[ProbeResult] = []

        try:
            with FileOverlay() as overlay:
                before = await self._run_probes("before")

                logger.info("Applying patch to overlay...")
                applied = overlay.apply(patch_text)
                if not applied.success:
                    return await self._reject(
                        evaluation_id,
                        patch_text,
                        [f"Patch application failed: {applied.error}"],
                        "parse_error",
                        before,
                        [],
                        origin_investigation_id,
                    )
                logger.info("Overlay built for %d file(s)", len(applied.files))

                after = await self._run_probes("after")

                diff = diff_probe_results(before, after, self.latency_threshold_percent)

                triggers = detect_secondary_triggers(after, self.slow_probe_threshold_ms)
                for trigger in triggers:
                    logger.warning(
                        "Secondary trigger on evaluation %s: %s", evaluation_id, trigger.summary
                    )
                trigger_summaries = [t.summary for t in triggers]
                investigation_ids = await self._file_trigger_investigations(evaluation_id, triggers)

                decision = decide(
                    diff,
                    before,
                    after,
                    trigger_summaries,
                    risk_flags,
                    latency_threshold_percent=self.latency_threshold_percent,
                )
                logger.info(
                    "Gate decision for %s: %s (risk=%s, score=%d, %d reasons)",
                    evaluation_id,
                    decision.status,
                    decision.risk_level,
                    decision.score,
                    len(decision.reasons),
                )

                if decision.status == "rejected":
                    investigation_ids += await self._file_patch_failure(
                        evaluation_id,
                        origin_investigation_id,
                        patch_text,
                        decision.reasons,
                        decision.risk_level,
                        before,
                        after,
                    )

                before_json, after_json = _dump(before), _dump(after)
                risk_flags_json = risk_flags.model_dump() if risk_flags else None
                meta = {
                    "latency_regressions": [
                        r.model_dump(mode="json") for r in diff.latency_regressions
                    ],
                    "secondary_triggers": trigger_summaries,
                    "risk_level": decision.risk_level,
                    "score": decision.score,
                    "risk_flags": risk_flags_json,
                    "files": applied.files,
                    "latency_threshold_percent": self.latency_threshold_percent,
                    "inputs_hash": gate_inputs_hash(
                        before_json, after_json, trigger_summaries, risk_flags_json
                    ),
                }
                await self.store.finalize(
                    evaluation_id,
                    status=decision.status,
                    reasons=decision.reasons,
                    diff=diff.model_dump(mode="json"),
                    before=before_json,
                    after=after_json,
                    investigation_ids=investigation_ids,
                    meta=meta,
                )

                elapsed_ms = int((time.monotonic() - started) * 1000)
                logger.info(
                    "Evaluation %s complete in %dms: %s",
                    evaluation_id,
                    elapsed_ms,
                    decision.status.upper(),
                )
                return PatchEvaluationResult(
                    id=evaluation_id,
                    status=decision.status,
                    reasons=decision.reasons,
                    summary=summarize_diff(diff),
                    risk_level=decision.risk_level,
                    score=decision.score,
                    diff=diff,
                    before_results=before,
                    after_results=after,
                    investigation_ids=investigation_ids,
                )
        except ProbeTimeoutError as exc:
            logger.error("Evaluation %s timed out: %s", evaluation_id, exc)
            return await self._reject(
                evaluation_id, patch_text, [str(exc)], "timeout", before, after, origin_investigation_id
            )
        except Exception as exc:
            logger.exception("Evaluation %s failed", evaluation_id)
            return await self._reject(
                evaluation_id,
                patch_text,
                [f"System error during evaluation: {exc}"],
                "system_error",
                before,
                after,
                None,
            )

    async def get_evaluation(self, evaluation_id: str) -> EvaluationRecord | None:
        """Load a stored evaluation with its rendered summary."""
        record = await self.store.get(evaluation_id)
        if record is None:
            return None
        return record.model_copy(update={"summary": build_record_summary(record)})
