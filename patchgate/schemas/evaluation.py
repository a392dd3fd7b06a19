"""Probe results, diff summaries, gate decisions and patch evaluation request/response schemas."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ProbeStatus = Literal["pass", "fail", "error"]
RiskLevel = Literal["low", "medium", "high"]
EvaluationStatus = Literal["pending", "approved", "rejected"]


class ProbeResult(BaseModel):
    """One probe outcome from a single probe-suite run."""

    model_config = ConfigDict(frozen=True)

    probe_id: str
    status: ProbeStatus
    details: str = ""
    raw_output: dict[str, Any] | None = None
    duration_ms: int | None = Field(default=None, ge=0)

    @property
    def response_text(self) -> str | None:
        """Textual response payload, if the probe captured one."""
        if not self.raw_output:
            return None
        response = self.raw_output.get("response")
        return response if isinstance(response, str) else None


class ProbeDiff(BaseModel):
    """Before/after comparison for one probe."""

    probe_id: str
    before: ProbeResult
    after: ProbeResult
    status_changed: bool
    latency_increase: int | None = None
    latency_increase_percent: float | None = None
    quality_changed: bool
    is_regression: bool


class StatusChanges(BaseModel):
    """Status transition tallies."""

    pass_to_fail: int = 0
    pass_to_error: int = 0
    fail_to_pass: int = 0
    error_to_pass: int = 0


class LatencyRegression(BaseModel):
    """A probe whose duration grew past the regression threshold."""

    probe_id: str
    before: int
    after: int
    increase: int
    increase_percent: float


class DiffSummary(BaseModel):
    """Aggregate differences between a before and an after probe run."""

    total_probes: int = 0
    status_changes: StatusChanges = Field(default_factory=StatusChanges)
    latency_regressions: list[LatencyRegression] = Field(default_factory=list)
    quality_degradations: list[str] = Field(default_factory=list)
    new_errors: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    probe_diffs: list[ProbeDiff] = Field(default_factory=list)


class RiskFlags(BaseModel):
    """External risk signals attached to a patch (e.g. from an investigator)."""

    risk: str | None = None
    classification: str | None = None
    quality: str | None = None


class GateDecision(BaseModel):
    """Outcome of the regression gate."""

    model_config = ConfigDict(frozen=True)

    status: Literal["approved", "rejected"]
    reasons: list[str]
    score: int = Field(ge=0, le=100)
    risk_level: RiskLevel


class SecondaryTrigger(BaseModel):
    """A probe-level anomaly detected on the after run."""

    probe_id: str
    reasons: list[str]

    @property
    def reason(self) -> str:
        return ", ".join(self.reasons)

    @property
    def summary(self) -> str:
        return f"{self.probe_id}: {self.reason}"


class PatchSubmitRequest(BaseModel):
    """POST /v1/patches/submit request."""

    patch: str = Field(min_length=1)
    investigation_id: str | None = None
    risk_flags: RiskFlags | None = None


class PatchEvaluationResult(BaseModel):
    """POST /v1/patches/submit response; also the orchestrator's return value."""

    id: str
    status: EvaluationStatus
    reasons: list[str] = Field(default_factory=list)
    summary: str = ""
    risk_level: RiskLevel | None = None
    score: int | None = None
    diff: DiffSummary | None = None
    before_results: list[ProbeResult] = Field(default_factory=list)
    after_results: list[ProbeResult] = Field(default_factory=list)
    investigation_ids: list[str] = Field(default_factory=list)


class EvaluationRecord(BaseModel):
    """Full persisted evaluation, as returned by GET /v1/patches/{id}."""

    id: str
    created_at: datetime
    status: EvaluationStatus
    patch_text: str
    patch_hash: str
    reasons: list[str] = Field(default_factory=list)
    summary: str = ""
    risk_level: RiskLevel | None = None
    diff: DiffSummary | None = None
    before_results: list[ProbeResult] = Field(default_factory=list)
    after_results: list[ProbeResult] = Field(default_factory=list)
    investigation_ids: list[str] = Field(default_factory=list)
    evaluation_meta: dict[str, Any] = Field(default_factory=dict)
