"""Unit tests for the result differ."""

from patchgate.engine.differ import diff_probe_results, summarize_diff


def test_identical_runs_have_no_changes(probe):
    run = [
        probe("greeting-basic", "pass", 500, "Hello! What are you trying to achieve today?"),
        probe("lead-search-basic", "fail", 900, "Searching..."),
        probe("monitor-setup-basic", "error", None, None, "Error: timeout"),
    ]
    diff = diff_probe_results(run, list(run))
    sc = diff.status_changes
    assert (sc.pass_to_fail, sc.pass_to_error, sc.fail_to_pass, sc.error_to_pass) == (0, 0, 0, 0)
    assert diff.new_errors == []
    assert diff.latency_regressions == []
    assert diff.quality_degradations == []
    assert diff.total_probes == 3
    assert not any(d.is_regression for d in diff.probe_diffs)


def test_latency_regression_threshold_is_strict(probe):
    """Exactly 30% slower is tolerated; 31% is a regression."""
    at_threshold = diff_probe_results([probe("a", duration_ms=100)], [probe("a", duration_ms=130)])
    assert at_threshold.latency_regressions == []
    assert at_threshold.probe_diffs[0].latency_increase_percent == 30.0

    over = diff_probe_results([probe("a", duration_ms=100)], [probe("a", duration_ms=131)])
    assert len(over.latency_regressions) == 1
    assert over.latency_regressions[0].increase == 31


def test_forty_percent_slower_greeting(probe):
    diff = diff_probe_results(
        [probe("greeting", "pass", 500)],
        [probe("greeting", "pass", 700)],
    )
    pd = diff.probe_diffs[0]
    assert pd.latency_increase == 200
    assert pd.latency_increase_percent == 40.0
    assert diff.latency_regressions[0].probe_id == "greeting"


def test_pass_to_fail_counts_as_regression(probe):
    diff = diff_probe_results([probe("a", "pass", None)], [probe("a", "fail", None)])
    assert diff.status_changes.pass_to_fail == 1
    assert diff.probe_diffs[0].is_regression is True
    assert diff.new_errors == ["a: pass -> fail"]


def test_fail_to_error_is_regression_but_fail_to_pass_is_not(probe):
    diff = diff_probe_results(
        [probe("a", "fail"), probe("b", "fail"), probe("c", "error")],
        [probe("a", "error"), probe("b", "pass"), probe("c", "pass")],
    )
    by_id = {d.probe_id: d for d in diff.probe_diffs}
    assert by_id["a"].is_regression is True
    assert by_id["b"].is_regression is False
    assert diff.status_changes.fail_to_pass == 1
    assert diff.status_changes.error_to_pass == 1
    assert diff.status_changes.pass_to_error == 0


def test_probes_missing_from_one_run_are_ignored(probe):
    diff = diff_probe_results([probe("a"), probe("only-before")], [probe("a"), probe("only-after")])
    assert [d.probe_id for d in diff.probe_diffs] == ["a"]


def test_quality_heuristics(probe):
    long_reply = "Here is a detailed answer with plenty of useful context."
    halved = diff_probe_results(
        [probe("lead-search-basic", response=long_reply)],
        [probe("lead-search-basic", response=long_reply[:20])],
    )
    assert halved.probe_diffs[0].quality_changed is True
    assert halved.quality_degradations == ["lead-search-basic: Response quality degraded"]

    too_short = diff_probe_results(
        [probe("x", response="0123456789")],
        [probe("x", response="short   ")],
    )
    assert too_short.probe_diffs[0].quality_changed is True


def test_greeting_keyword_loss_only_counts_for_greeting_probe(probe):
    before = "Hello there, what are you looking for today?"
    after = "Good day there, what are you looking for today?"
    greeting = diff_probe_results([probe("greeting-basic", response=before)], [probe("greeting-basic", response=after)])
    other = diff_probe_results([probe("lead-search-basic", response=before)], [probe("lead-search-basic", response=after)])
    assert greeting.probe_diffs[0].quality_changed is True
    assert other.probe_diffs[0].quality_changed is False


def test_latency_decrease_is_an_improvement(probe):
    diff = diff_probe_results([probe("a", duration_ms=800)], [probe("a", duration_ms=600)])
    assert diff.improvements == ["a: Latency improved by 200ms"]


def test_summary_lists_sections(probe):
    diff = diff_probe_results(
        [probe("a", "pass", 100), probe("b", "pass", 100)],
        [probe("a", "fail", 100), probe("b", "pass", 200)],
    )
    text = summarize_diff(diff)
    assert "PASS -> FAIL: 1" in text
    assert "b: 100ms -> 200ms (+100.0%)" in text
    assert "a: pass -> fail" in text
