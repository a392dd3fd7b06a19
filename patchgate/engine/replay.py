"""Replay a stored gate decision from persisted inputs (audit)."""

from dataclasses import dataclass

from patchgate.engine.differ import LATENCY_REGRESSION_THRESHOLD_PERCENT, diff_probe_results
from patchgate.engine.gate import decide
from patchgate.schemas.evaluation import EvaluationRecord, GateDecision, RiskFlags
from patchgate.utils.canonical import gate_inputs_hash


@dataclass
class ReplayOutcome:
    decision: GateDecision
    matches: bool
    inputs_match: bool


def replay_record(record: EvaluationRecord) -> ReplayOutcome | None:
    """
    Recompute the decision for a gate-decided evaluation.
    Returns None for pending evaluations and for rejections that never reached the gate.
    """
    meta = record.evaluation_meta or {}
    if record.status == "pending" or "rejection_kind" in meta:
        return None

    triggers = list(meta.get("secondary_triggers") or [])
    latency_threshold_percent = meta.get(
        "latency_threshold_percent", LATENCY_REGRESSION_THRESHOLD_PERCENT
    )
    flags_json = meta.get("risk_flags")
    risk_flags = RiskFlags(**flags_json) if flags_json else None

    diff = diff_probe_results(record.before_results, record.after_results, latency_threshold_percent)
    decision = decide(
        diff,
        record.before_results,
        record.after_results,
        triggers,
        risk_flags,
        latency_threshold_percent=latency_threshold_percent,
    )

    inputs_hash = gate_inputs_hash(
        [r.model_dump(mode="json") for r in record.before_results],
        [r.model_dump(mode="json") for r in record.after_results],
        triggers,
        flags_json,
    )
    matches = (
        decision.status == record.status
        and decision.reasons == record.reasons
        and decision.risk_level == meta.get("risk_level")
    )
    return ReplayOutcome(
        decision=decision,
        matches=matches,
        inputs_match=inputs_hash == meta.get("inputs_hash"),
    )
