"""Result differ - compares before/after probe runs probe by probe."""

import re

from patchgate.schemas.evaluation import (
    DiffSummary,
    LatencyRegression,
    ProbeDiff,
    ProbeResult,
    StatusChanges,
)

LATENCY_REGRESSION_THRESHOLD_PERCENT = 30.0
GREETING_PROBE_ID = "greeting-basic"

_GREETING_PATTERN = re.compile(r"\b(hi|hello|hey|welcome|greetings)\b", re.IGNORECASE)


def _index_by_probe(results: list[ProbeResult]) -> dict[str, ProbeResult]:
    indexed: dict[str, ProbeResult] = {}
    for result in results:
        indexed.setdefault(result.probe_id, result)
    return indexed


def detect_quality_change(before: ProbeResult, after: ProbeResult) -> bool:
    """Heuristic: did the after-response get noticeably worse than the before-response?"""
    before_response = before.response_text or ""
    after_response = after.response_text or ""

    if len(after_response) < len(before_response) * 0.5:
        return True

    if len(after_response.strip()) < 10 and len(before_response.strip()) >= 10:
        return True

    if before.probe_id == GREETING_PROBE_ID:
        before_greets = bool(_GREETING_PATTERN.search(before_response))
        after_greets = bool(_GREETING_PATTERN.search(after_response))
        if before_greets and not after_greets:
            return True

    return False


def is_regression(before: ProbeResult, after: ProbeResult) -> bool:
    return (before.status == "pass" and after.status != "pass") or (
        before.status != "error" and after.status == "error"
    )


def diff_probe_results(
    before: list[ProbeResult],
    after: list[ProbeResult],
    latency_threshold_percent: float = LATENCY_REGRESSION_THRESHOLD_PERCENT,
) -> DiffSummary:
    """
    Diff two probe runs. Probes present in only one run are ignored.
    Pure and deterministic: output order follows the before run.
    """
    before_idx = _index_by_probe(before)
    after_idx = _index_by_probe(after)

    status_changes = StatusChanges()
    latency_regressions: list[LatencyRegression] = []
    quality_degradations: list[str] = []
    new_errors: list[str] = []
    improvements: list[str] = []
    probe_diffs: list[ProbeDiff] = []

    for probe_id, b in before_idx.items():
        a = after_idx.get(probe_id)
        if a is None:
            continue

        status_changed = b.status != a.status
        latency_increase: int | None = None
        latency_increase_percent: float | None = None

        if b.duration_ms is not None and a.duration_ms is not None and b.duration_ms > 0:
            latency_increase = a.duration_ms - b.duration_ms
            latency_increase_percent = latency_increase * 100 / b.duration_ms
            if latency_increase_percent > latency_threshold_percent:
                latency_regressions.append(
                    LatencyRegression(
                        probe_id=probe_id,
                        before=b.duration_ms,
                        after=a.duration_ms,
                        increase=latency_increase,
                        increase_percent=latency_increase_percent,
                    )
                )

        quality_changed = detect_quality_change(b, a)
        regressed = is_regression(b, a)

        if status_changed:
            transition = (b.status, a.status)
            if transition == ("pass", "fail"):
                status_changes.pass_to_fail += 1
            elif transition == ("pass", "error"):
                status_changes.pass_to_error += 1
            elif transition == ("fail", "pass"):
                status_changes.fail_to_pass += 1
            elif transition == ("error", "pass"):
                status_changes.error_to_pass += 1

        if regressed:
            new_errors.append(f"{probe_id}: {b.status} -> {a.status}")

        if quality_changed:
            quality_degradations.append(f"{probe_id}: Response quality degraded")

        if not status_changed and not regressed and a.status == "pass":
            if latency_increase is not None and latency_increase < 0:
                improvements.append(f"{probe_id}: Latency improved by {abs(latency_increase)}ms")

        probe_diffs.append(
            ProbeDiff(
                probe_id=probe_id,
                before=b,
                after=a,
                status_changed=status_changed,
                latency_increase=latency_increase,
                latency_increase_percent=latency_increase_percent,
                quality_changed=quality_changed,
                is_regression=regressed,
            )
        )

    return DiffSummary(
        total_probes=len(probe_diffs),
        status_changes=status_changes,
        latency_regressions=latency_regressions,
        quality_degradations=quality_degradations,
        new_errors=new_errors,
        improvements=improvements,
        probe_diffs=probe_diffs,
    )


def summarize_diff(diff: DiffSummary) -> str:
    """Render a diff summary as a plain-text report."""
    sc = diff.status_changes
    lines = [
        "PATCH EVALUATION DIFF",
        f"Total probes: {diff.total_probes}",
        "",
        "Status changes:",
        f"  PASS -> FAIL: {sc.pass_to_fail}",
        f"  PASS -> ERROR: {sc.pass_to_error}",
        f"  FAIL -> PASS: {sc.fail_to_pass}",
        f"  ERROR -> PASS: {sc.error_to_pass}",
        "",
    ]

    if diff.latency_regressions:
        lines.append(f"Latency regressions ({len(diff.latency_regressions)}):")
        for r in diff.latency_regressions:
            lines.append(f"  {r.probe_id}: {r.before}ms -> {r.after}ms (+{r.increase_percent:.1f}%)")
        lines.append("")

    sections = (
        ("Quality degradations", diff.quality_degradations),
        ("New errors/failures", diff.new_errors),
        ("Improvements", diff.improvements),
    )
    for title, entries in sections:
        if entries:
            lines.append(f"{title} ({len(entries)}):")
            lines.extend(f"  {entry}" for entry in entries)
            lines.append("")

    return "\n".join(lines).rstrip("\n")
