#!/usr/bin/env python3
"""
Submit a patch file to a running patchgate service and print the decision.
Usage: python scripts/submit_patch.py path/to/change.diff [--url http://localhost:8000]
"""

import argparse
import json
import sys
from pathlib import Path

import httpx


def main() -> int:
    parser = argparse.ArgumentParser(description="Submit a patch for evaluation.")
    parser.add_argument("patch_file", help="Path to a unified diff or FILE: block patch")
    parser.add_argument("--url", default="http://localhost:8000", help="Patchgate base URL")
    parser.add_argument("--investigation-id", default=None, help="Investigation the patch addresses")
    parser.add_argument("--timeout", type=float, default=180.0, help="Request timeout in seconds")
    args = parser.parse_args()

    patch = Path(args.patch_file).read_text(encoding="utf-8")
    body = {"patch": patch}
    if args.investigation_id:
        body["investigation_id"] = args.investigation_id

    response = httpx.post(f"{args.url.rstrip('/')}/v1/patches/submit", json=body, timeout=args.timeout)
    if response.status_code != 200:
        print(f"Submission failed ({response.status_code}): {response.text}", file=sys.stderr)
        return 1

    result = response.json()
    print(f"Evaluation {result['id']}: {result['status'].upper()} (risk={result.get('risk_level')})")
    for reason in result["reasons"]:
        print(f"  - {reason}")
    if result.get("summary"):
        print()
        print(result["summary"])
    if result.get("investigation_ids"):
        print()
        print("Investigations filed:", json.dumps(result["investigation_ids"]))
    return 0 if result["status"] == "approved" else 2


if __name__ == "__main__":
    sys.exit(main())
