"""Secondary (auto-detect) triggers evaluated on each after-probe result.

These overlap with gate rules on purpose: triggers feed per-probe alerting and
investigation filing, the gate gives the overall approve/reject.
"""

from patchgate.schemas.evaluation import ProbeResult, SecondaryTrigger

SLOW_PROBE_THRESHOLD_MS = 10000
MIN_RESPONSE_CHARS = 10


def check_probe(result: ProbeResult, slow_threshold_ms: int = SLOW_PROBE_THRESHOLD_MS) -> list[str]:
    """Return the trigger reasons that apply to one probe result."""
    reasons: list[str] = []

    if result.status == "error":
        reasons.append("error")
    if result.status == "fail":
        reasons.append("fail")
    if result.duration_ms is not None and result.duration_ms > slow_threshold_ms:
        reasons.append("timeout")

    response = result.response_text
    if response is not None:
        if not response.strip():
            reasons.append("quality-empty")
        elif len(response) < MIN_RESPONSE_CHARS:
            reasons.append("quality-short")

    return reasons


def detect_secondary_triggers(
    results: list[ProbeResult],
    slow_threshold_ms: int = SLOW_PROBE_THRESHOLD_MS,
) -> list[SecondaryTrigger]:
    """One trigger per probe that tripped at least one check, in run order."""
    triggers: list[SecondaryTrigger] = []
    for result in results:
        reasons = check_probe(result, slow_threshold_ms)
        if reasons:
            triggers.append(SecondaryTrigger(probe_id=result.probe_id, reasons=reasons))
    return triggers
