"""API contract tests with the evaluator swapped for in-memory fakes."""

import pytest
from fastapi.testclient import TestClient

from patchgate.api.evaluations import get_patch_evaluator
from patchgate.engine.orchestrator import PatchEvaluator
from patchgate.main import app


@pytest.fixture
def client(store, scripted_runner, probe):
    run = [probe("greeting-basic", "pass", 400, "Hello! What can I help you find?")]
    evaluator = PatchEvaluator(store=store, probe_runner=scripted_runner(run, list(run)))
    app.dependency_overrides[get_patch_evaluator] = lambda: evaluator
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_submit_and_lookup(client, sample_diff):
    response = client.post("/v1/patches/submit", json={"patch": sample_diff})
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "approved"
    assert body["risk_level"] == "low"
    assert set(body) >= {
        "id", "status", "reasons", "summary", "risk_level", "diff",
        "before_results", "after_results", "investigation_ids",
    }

    lookup = client.get(f"/v1/patches/{body['id']}")
    assert lookup.status_code == 200
    assert lookup.json()["patch_text"] == sample_diff


def test_rejects_missing_or_non_string_patch(client):
    assert client.post("/v1/patches/submit", json={}).status_code == 422
    assert client.post("/v1/patches/submit", json={"patch": 42}).status_code == 422
    assert client.post("/v1/patches/submit", json={"patch": ""}).status_code == 422


def test_unknown_evaluation_is_404(client):
    response = client.get("/v1/patches/does-not-exist")
    assert response.status_code == 404
    assert response.json()["detail"] == "Patch evaluation not found"


def test_store_outage_is_500(failing_store, scripted_runner, probe, sample_diff):
    evaluator = PatchEvaluator(store=failing_store, probe_runner=scripted_runner([probe()]))
    app.dependency_overrides[get_patch_evaluator] = lambda: evaluator
    try:
        response = TestClient(app).post("/v1/patches/submit", json={"patch": sample_diff})
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 500


def test_admin_reset_disabled_without_key(client):
    assert client.post("/v1/admin/reset").status_code == 403


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
