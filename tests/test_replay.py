"""Replaying stored decisions from persisted inputs."""

import asyncio

from patchgate.engine.orchestrator import PatchEvaluator
from patchgate.engine.replay import replay_record
from patchgate.schemas.evaluation import RiskFlags


def _stored_record(store, runner, patch, **kwargs):
    evaluator = PatchEvaluator(store=store, probe_runner=runner)
    result = asyncio.run(evaluator.evaluate_patch(patch, **kwargs))
    return asyncio.run(store.get(result.id))


def test_replay_reproduces_rejection(store, scripted_runner, probe, sample_diff):
    before = [probe("greeting-basic", "pass", 500, "Hello, what are you looking for?")]
    after = [probe("greeting-basic", "pass", 900, "Hello, what are you looking for?")]
    record = _stored_record(
        store, scripted_runner(before, after), sample_diff, risk_flags=RiskFlags(quality="degraded")
    )
    outcome = replay_record(record)
    assert record.status == "rejected"
    assert outcome.matches is True
    assert outcome.inputs_match is True
    assert outcome.decision.reasons == record.reasons


def test_replay_reproduces_approval(store, scripted_runner, probe, sample_diff):
    run = [probe("a", "pass", 100)]
    record = _stored_record(store, scripted_runner(run, list(run)), sample_diff)
    outcome = replay_record(record)
    assert outcome.decision.status == "approved"
    assert outcome.matches is True


def test_replay_skips_rejections_without_gate(store, scripted_runner, probe):
    record = _stored_record(store, scripted_runner([probe("a")]), "not a patch")
    assert replay_record(record) is None
