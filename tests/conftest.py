"""Shared fakes for orchestrator and API tests."""

import asyncio
from datetime import datetime, timezone

import pytest

from patchgate.schemas.evaluation import EvaluationRecord, ProbeResult


class FakeStore:
    """In-memory insert-then-single-update store."""

    def __init__(self, fail_on_create: bool = False):
        self.rows: dict[str, dict] = {}
        self.finalize_calls = 0
        self.fail_on_create = fail_on_create

    async def create_pending(self, patch_text: str, patch_hash: str) -> str:
        if self.fail_on_create:
            raise RuntimeError("database unavailable")
        evaluation_id = f"ev-{len(self.rows) + 1}"
        self.rows[evaluation_id] = {
            "id": evaluation_id,
            "created_at": datetime(2026, 10, 18, tzinfo=timezone.utc),
            "status": "pending",
            "patch_text": patch_text,
            "patch_hash": patch_hash,
            "reasons": [],
            "diff": None,
            "before_results": [],
            "after_results": [],
            "investigation_ids": [],
            "evaluation_meta": {},
        }
        return evaluation_id

    async def finalize(self, evaluation_id, *, status, reasons, diff, before, after, investigation_ids, meta):
        row = self.rows[evaluation_id]
        assert row["status"] == "pending", "evaluation finalized twice"
        self.finalize_calls += 1
        row.update(
            status=status,
            reasons=reasons,
            diff=diff,
            before_results=before,
            after_results=after,
            investigation_ids=investigation_ids,
            evaluation_meta=meta,
        )

    async def get(self, evaluation_id):
        row = self.rows.get(evaluation_id)
        if row is None:
            return None
        return EvaluationRecord(**row, risk_level=row["evaluation_meta"].get("risk_level"))


class FakeSink:
    """Records investigations instead of filing them."""

    def __init__(self):
        self.triggers = []
        self.failures = []

    async def file_secondary_trigger(self, evaluation_id, trigger):
        self.triggers.append((evaluation_id, trigger))
        return f"ad-{trigger.probe_id}"

    async def file_patch_failure(self, evaluation_id, original_investigation_id, patch_text, reasons, risk_level, before, after):
        self.failures.append((evaluation_id, original_investigation_id, reasons, risk_level))
        return f"pf-{evaluation_id}"


class ScriptedProbeRunner:
    """Returns one scripted result list per call; optional delay simulates a hung suite."""

    def __init__(self, *runs: list[ProbeResult], delay: float = 0.0, hang_on_call: int | None = None):
        self.runs = list(runs)
        self.calls = 0
        self.delay = delay
        self.hang_on_call = hang_on_call

    async def run_all_probes(self) -> list[ProbeResult]:
        self.calls += 1
        if self.hang_on_call == self.calls:
            await asyncio.sleep(self.delay)
        return self.runs[min(self.calls, len(self.runs)) - 1]


def make_probe(probe_id="greeting-basic", status="pass", duration_ms=500, response=None, details=""):
    raw_output = {"response": response} if response is not None else None
    return ProbeResult(
        probe_id=probe_id,
        status=status,
        details=details,
        raw_output=raw_output,
        duration_ms=duration_ms,
    )


@pytest.fixture
def probe():
    return make_probe


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def scripted_runner():
    return ScriptedProbeRunner


SAMPLE_DIFF = """diff --git a/src/evaluator/greeting.ts b/src/evaluator/greeting.ts
index 1111111..2222222 100644
--- a/src/evaluator/greeting.ts
+++ b/src/evaluator/greeting.ts
@@ -1,3 +1,3 @@
 export function greet(name: string) {
-  return "Hi " + name;
+  return "Hello " + name + ", what can I help with?";
 }
"""


@pytest.fixture
def sample_diff():
    return SAMPLE_DIFF


@pytest.fixture
def failing_store():
    return FakeStore(fail_on_create=True)
