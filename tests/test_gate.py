"""Unit tests for the regression gate."""

from patchgate.engine.differ import diff_probe_results
from patchgate.engine.gate import APPROVAL_REASONS, UNMET_CRITERIA_REASON, decide
from patchgate.schemas.evaluation import DiffSummary, RiskFlags


def _decide(before, after, triggers=(), flags=None):
    return decide(diff_probe_results(before, after), before, after, list(triggers), flags)


def test_identical_runs_are_approved(probe):
    run = [probe("greeting-basic", "pass", 500, "Hello! What are you looking for?"), probe("b", "pass", 300)]
    decision = _decide(run, list(run))
    assert decision.status == "approved"
    assert decision.score == 100
    assert decision.risk_level == "low"
    assert decision.reasons == list(APPROVAL_REASONS)


def test_decision_is_deterministic(probe):
    before = [probe("a", "pass", 100), probe("b", "pass", 100)]
    after = [probe("a", "fail", 100), probe("b", "error", 400, details="boot failed")]
    flags = RiskFlags(risk="high")
    first = _decide(before, after, ["a: fail"], flags)
    second = _decide(before, after, ["a: fail"], flags)
    assert first == second


def test_latency_regression_rejects_with_high_risk(probe):
    decision = _decide([probe("greeting", "pass", 500)], [probe("greeting", "pass", 700)])
    assert decision.status == "rejected"
    assert decision.risk_level == "high"
    assert decision.score == 0
    assert any(r.startswith("RULE 3:") for r in decision.reasons)


def test_pass_to_fail_reports_every_reason(probe):
    decision = _decide([probe("a", "pass", None)], [probe("a", "fail", None)])
    assert decision.status == "rejected"
    prefixes = [r.split(":")[0] for r in decision.reasons]
    assert "RULE 1" in prefixes
    assert "RULE 5" in prefixes
    assert "RULE 2" in prefixes
    assert decision.risk_level == "high"


def test_failed_probe_always_rejects_even_if_it_was_failing_before(probe):
    run_before = [probe("a", "fail", 100), probe("b", "pass", 100)]
    run_after = [probe("a", "fail", 100), probe("b", "pass", 100)]
    decision = _decide(run_before, run_after)
    assert decision.status == "rejected"
    assert decision.reasons == ['RULE 1: Probe "a" FAILED after applying patch']


def test_quality_degradation_is_medium_risk(probe):
    long_reply = "A complete answer that describes the leads that were found nearby."
    decision = _decide(
        [probe("lead-search-basic", "pass", 100, long_reply)],
        [probe("lead-search-basic", "pass", 100, long_reply[:25])],
    )
    assert decision.status == "rejected"
    assert decision.risk_level == "medium"
    assert decision.reasons[0].startswith("RULE 4:")


def test_external_flags(probe):
    run = [probe("a", "pass", 100)]
    dangerous = _decide(run, run, flags=RiskFlags(classification="structurally breaking"))
    assert dangerous.status == "rejected"
    assert dangerous.risk_level == "high"
    assert dangerous.reasons[0].startswith("RULE 6:")

    degraded = _decide(run, run, flags=RiskFlags(quality="degraded"))
    assert degraded.risk_level == "medium"
    assert degraded.reasons == ["RULE 7: External review marked quality as degraded"]

    safe = _decide(run, run, flags=RiskFlags(risk="low", classification="minor"))
    assert safe.status == "approved"


def test_secondary_trigger_rejects_even_when_status_stays_pass(probe):
    run = [probe("a", "pass", 100)]
    decision = _decide(run, run, triggers=["a: quality-short"])
    assert decision.status == "rejected"
    assert decision.risk_level == "high"
    assert decision.reasons == ["RULE 8: Secondary triggers fired (a: quality-short)"]


def test_boot_errors_get_their_own_reason(probe):
    decision = _decide(
        [probe("a", "pass", 100)],
        [probe("a", "error", 100, details="Error: Cannot find module export 'x'")],
    )
    assert any(r.startswith("RULE 2:") for r in decision.reasons)
    assert decision.reasons[-1] == "RULE 11: Patch breaks imports, exports, or server boot"


def test_safety_net_rejects_unexplained_failures(probe):
    """An after-run error the diff cannot see still blocks approval."""
    before = [probe("a", "pass", 100)]
    after = [probe("a", "pass", 100), probe("new-probe", "error", 100, details="unreachable")]
    decision = decide(diff_probe_results(before, after), before, after, [])
    assert decision.status == "rejected"
    assert decision.reasons == [UNMET_CRITERIA_REASON]
    assert decision.score == 25
    assert decision.risk_level == "medium"


def test_custom_rule_registry_collects_all_findings(probe):
    from patchgate.engine.gate import Finding

    def always(ctx):
        return [Finding("custom one", "low"), Finding("custom two", "medium")]

    run = [probe("a", "pass", 100)]
    decision = decide(DiffSummary(), run, run, [], rules=(always,))
    assert decision.reasons == ["custom one", "custom two"]
    assert decision.risk_level == "medium"
