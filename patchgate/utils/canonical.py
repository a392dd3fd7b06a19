"""Canonical JSON and hashing utilities."""

import hashlib
import json
from decimal import Decimal
from typing import Any

from pydantic import BaseModel


def _canonical_value(obj: Any) -> Any:
    """Convert value for canonical representation."""
    if obj is None:
        return None
    if isinstance(obj, BaseModel):
        return _canonical_value(obj.model_dump(mode="json"))
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, (int, float, Decimal)):
        return float(obj) if isinstance(obj, (float, Decimal)) else int(obj)
    if isinstance(obj, dict):
        return {str(k): _canonical_value(v) for k, v in sorted(obj.items())}
    if isinstance(obj, (list, tuple)):
        return [_canonical_value(v) for v in obj]
    if isinstance(obj, str):
        return obj
    return str(obj)


def canonical_json(obj: Any) -> str:
    """Produce canonical JSON string (sorted keys, consistent formatting)."""
    canonical = _canonical_value(obj)
    return json.dumps(canonical, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def patch_hash(patch_text: str) -> str:
    """SHA256 of the raw patch text."""
    return hashlib.sha256(patch_text.encode("utf-8")).hexdigest()


def gate_inputs_hash(
    before: list,
    after: list,
    secondary_triggers: list[str],
    risk_flags: Any = None,
) -> str:
    """Fingerprint of everything the gate decision is derived from."""
    payload = {
        "before": before,
        "after": after,
        "secondary_triggers": secondary_triggers,
        "risk_flags": risk_flags,
    }
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()
