#!/usr/bin/env python3
"""Compare a run's results JSON against a stored baseline; exit 1 on regression.

Usage:
    python -m load_tests.baseline reports/baseline.json reports/latest.json
"""

import json
import sys
from typing import List

LATENCY_THRESHOLD = 0.20  # 20% increase allowed
ERROR_THRESHOLD = 0.05  # 5 points absolute increase


def _regression(baseline: dict, current: dict, key: str) -> float:
    before = baseline.get(key) or 0
    if not before:
        return 0.0
    return (current.get(key, 0) - before) / before


def compare_results(baseline: dict, current: dict) -> List[str]:
    """Return a description of every regression; empty means within baseline."""
    failures = []

    for key in ("p95_ms", "p99_ms"):
        regression = _regression(baseline, current, key)
        if regression > LATENCY_THRESHOLD:
            failures.append(
                f"{key[:3]} regression: {regression * 100:.1f}% "
                f"(baseline: {baseline[key]}ms, current: {current[key]}ms)"
            )

    error_increase = current.get("error_rate", 0) - baseline.get("error_rate", 0)
    if error_increase > ERROR_THRESHOLD:
        failures.append(f"Error rate increased by {error_increase * 100:.2f}%")

    return failures


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 2:
        print("usage: baseline.py BASELINE_JSON CURRENT_JSON", file=sys.stderr)
        return 2

    with open(argv[0]) as f:
        baseline = json.load(f)
    with open(argv[1]) as f:
        current = json.load(f)

    failures = compare_results(baseline, current)
    if failures:
        print("❌ PERFORMANCE REGRESSION DETECTED:")
        for failure in failures:
            print(f"  - {failure}")
        return 1

    print("✅ Performance within baseline thresholds")
    return 0


if __name__ == "__main__":
    sys.exit(main())
