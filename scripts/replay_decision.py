#!/usr/bin/env python3
"""
Recompute the gate decision for a stored evaluation from its persisted inputs.
Exits non-zero when the replayed decision disagrees with the stored one.
Usage: python scripts/replay_decision.py <evaluation_id>
"""

import asyncio
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from patchgate.database import async_session_maker, engine
from patchgate.engine.replay import replay_record
from patchgate.storage.repositories import SqlEvaluationStore


async def replay(evaluation_id: str) -> int:
    store = SqlEvaluationStore(async_session_maker)
    record = await store.get(evaluation_id)
    await engine.dispose()
    if record is None:
        print(f"Evaluation {evaluation_id} not found.")
        return 1

    outcome = replay_record(record)
    if outcome is None:
        print(f"Evaluation {evaluation_id} is {record.status} without a gate decision "
              f"({record.evaluation_meta.get('rejection_kind', 'pending')}); nothing to replay.")
        return 0

    print(f"Stored:   {record.status} risk={record.risk_level}")
    print(f"Replayed: {outcome.decision.status} risk={outcome.decision.risk_level}")
    if not outcome.inputs_match:
        print("WARNING: stored inputs hash does not match the persisted probe results.")
    if outcome.matches:
        print("Decision reproduced.")
        return 0
    print("MISMATCH between stored and replayed decision:")
    for reason in outcome.decision.reasons:
        print(f"  - {reason}")
    return 2


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)
    sys.exit(asyncio.run(replay(sys.argv[1])))
