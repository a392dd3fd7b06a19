"""Regression gate - default-reject approval policy for evaluated patches.

Every rule is evaluated against the same context and all findings are kept,
so a rejection always lists everything that went wrong. Rules are plain
functions registered in GATE_RULES; each returns zero or more findings.
"""

from collections.abc import Callable
from dataclasses import dataclass

from patchgate.engine.differ import LATENCY_REGRESSION_THRESHOLD_PERCENT
from patchgate.schemas.evaluation import (
    DiffSummary,
    GateDecision,
    ProbeResult,
    RiskFlags,
    RiskLevel,
)

RISK_ORDER: dict[str, int] = {"low": 0, "medium": 1, "high": 2}

DANGEROUS_CLASSIFICATIONS = frozenset({"dangerous", "structurally breaking", "major regression"})
BOOT_ERROR_MARKERS = ("import", "export", "boot")

APPROVAL_REASONS = (
    "All probes PASS",
    "No new errors",
    "No regressions",
    "Latency stable or improved",
    "Quality maintained or improved",
    "External risk flags mark patch as safe",
    "No secondary triggers",
)
UNMET_CRITERIA_REASON = "Patch does not meet all approval criteria"


@dataclass(frozen=True)
class GateContext:
    """Inputs to a gate decision."""

    diff: DiffSummary
    before: tuple[ProbeResult, ...]
    after: tuple[ProbeResult, ...]
    secondary_triggers: tuple[str, ...]
    risk_flags: RiskFlags | None
    latency_threshold_percent: float = LATENCY_REGRESSION_THRESHOLD_PERCENT

    def after_by_probe(self) -> dict[str, ProbeResult]:
        indexed: dict[str, ProbeResult] = {}
        for result in self.after:
            indexed.setdefault(result.probe_id, result)
        return indexed


@dataclass(frozen=True)
class Finding:
    """One rejection reason and the risk floor it imposes."""

    reason: str
    risk_floor: RiskLevel


GateRule = Callable[[GateContext], list[Finding]]


def _raise_risk(current: RiskLevel, floor: RiskLevel) -> RiskLevel:
    return floor if RISK_ORDER[floor] > RISK_ORDER[current] else current


def rule_failed_probes(ctx: GateContext) -> list[Finding]:
    return [
        Finding(f'RULE 1: Probe "{probe_id}" FAILED after applying patch', "high")
        for probe_id, result in ctx.after_by_probe().items()
        if result.status == "fail"
    ]


def rule_new_errors(ctx: GateContext) -> list[Finding]:
    sc = ctx.diff.status_changes
    if sc.pass_to_error > 0 or ctx.diff.new_errors:
        return [
            Finding(
                f"RULE 2: New ERROR appeared ({sc.pass_to_error} PASS -> ERROR, "
                f"{len(ctx.diff.new_errors)} regressed probes)",
                "high",
            )
        ]
    return []


def rule_latency(ctx: GateContext) -> list[Finding]:
    regressions = ctx.diff.latency_regressions
    if not regressions:
        return []
    probes = ", ".join(r.probe_id for r in regressions)
    return [
        Finding(
            f"RULE 3: Latency regression detected ({len(regressions)} probes "
            f"> {ctx.latency_threshold_percent:g}% slower: {probes})",
            "high",
        )
    ]


def rule_quality(ctx: GateContext) -> list[Finding]:
    degraded = ctx.diff.quality_degradations
    if not degraded:
        return []
    return [Finding(f"RULE 4: Quality degradation detected ({len(degraded)} probes)", "medium")]


def rule_pass_to_fail(ctx: GateContext) -> list[Finding]:
    count = ctx.diff.status_changes.pass_to_fail
    if count <= 0:
        return []
    return [Finding(f"RULE 5: Regression detected ({count} PASS -> FAIL)", "high")]


def rule_external_high_risk(ctx: GateContext) -> list[Finding]:
    flags = ctx.risk_flags
    if flags is None:
        return []
    if flags.risk == "high" or (flags.classification or "") in DANGEROUS_CLASSIFICATIONS:
        return [Finding("RULE 6: External review flagged patch as high-risk or dangerous", "high")]
    return []


def rule_external_quality(ctx: GateContext) -> list[Finding]:
    flags = ctx.risk_flags
    if flags is not None and flags.quality == "degraded":
        return [Finding("RULE 7: External review marked quality as degraded", "medium")]
    return []


def rule_secondary_triggers(ctx: GateContext) -> list[Finding]:
    if not ctx.secondary_triggers:
        return []
    return [
        Finding(
            f"RULE 8: Secondary triggers fired ({'; '.join(ctx.secondary_triggers)})",
            "high",
        )
    ]


def detect_probe_instability(after: tuple[ProbeResult, ...]) -> bool:
    """Extension point: flaky-suite detection. Reports stable until a detector is plugged in."""
    return False


def rule_probe_instability(ctx: GateContext) -> list[Finding]:
    if detect_probe_instability(ctx.after):
        return [Finding("RULE 9: Probe suite instability detected", "high")]
    return []


def patch_is_relevant(ctx: GateContext) -> bool:
    """Extension point: irrelevant-file heuristic. Treats every patch as relevant for now."""
    return True


def rule_irrelevant_files(ctx: GateContext) -> list[Finding]:
    if not patch_is_relevant(ctx):
        return [Finding("RULE 10: Patch appears to modify irrelevant files", "medium")]
    return []


def rule_boot_errors(ctx: GateContext) -> list[Finding]:
    for result in ctx.after:
        details = (result.details or "").lower()
        if result.status == "error" and any(m in details for m in BOOT_ERROR_MARKERS):
            return [Finding("RULE 11: Patch breaks imports, exports, or server boot", "high")]
    return []


GATE_RULES: tuple[GateRule, ...] = (
    rule_failed_probes,
    rule_new_errors,
    rule_latency,
    rule_quality,
    rule_pass_to_fail,
    rule_external_high_risk,
    rule_external_quality,
    rule_secondary_triggers,
    rule_probe_instability,
    rule_irrelevant_files,
    rule_boot_errors,
)


def _meets_approval_criteria(ctx: GateContext) -> bool:
    sc = ctx.diff.status_changes
    flags = ctx.risk_flags
    flags_safe = flags is None or (flags.risk != "high" and flags.quality != "degraded")
    return (
        all(r.status == "pass" for r in ctx.after)
        and sc.pass_to_error == 0
        and sc.pass_to_fail == 0
        and not ctx.diff.new_errors
        and not ctx.diff.latency_regressions
        and not ctx.diff.quality_degradations
        and flags_safe
        and not ctx.secondary_triggers
    )


def decide(
    diff: DiffSummary,
    before: list[ProbeResult],
    after: list[ProbeResult],
    secondary_triggers: list[str],
    risk_flags: RiskFlags | None = None,
    rules: tuple[GateRule, ...] = GATE_RULES,
    latency_threshold_percent: float = LATENCY_REGRESSION_THRESHOLD_PERCENT,
) -> GateDecision:
    """
    Decide whether a patch is approved.
    Pure: the same inputs always produce the same decision.
    """
    ctx = GateContext(
        diff=diff,
        before=tuple(before),
        after=tuple(after),
        secondary_triggers=tuple(secondary_triggers),
        risk_flags=risk_flags,
        latency_threshold_percent=latency_threshold_percent,
    )

    reasons: list[str] = []
    risk_level: RiskLevel = "low"
    for rule in rules:
        for finding in rule(ctx):
            reasons.append(finding.reason)
            risk_level = _raise_risk(_raise_risk(risk_level, "medium"), finding.risk_floor)

    if reasons:
        return GateDecision(status="rejected", reasons=reasons, score=0, risk_level=risk_level)

    if _meets_approval_criteria(ctx):
        return GateDecision(
            status="approved",
            reasons=list(APPROVAL_REASONS),
            score=100,
            risk_level="low",
        )

    return GateDecision(
        status="rejected",
        reasons=[UNMET_CRITERIA_REASON],
        score=25,
        risk_level="medium",
    )
