"""
Threshold sets (pass/fail SLA expressions)

Keys are metric expressions, optionally filtered by tag
(``http_req_duration{endpoint:login}``); values are condition lists
such as ``p(95)<500``. See load_tests.evaluation for how they are judged.
"""

import os
from typing import Dict, List, Mapping, Optional

ThresholdSet = Dict[str, List[str]]

STRICT_THRESHOLDS: ThresholdSet = {
    "http_req_duration": ["p(95)<300", "p(99)<800"],
    "http_req_failed": ["rate<0.005"],
    "http_reqs": ["rate>200"],
    "checks": ["rate>0.99"],
}

RELAXED_THRESHOLDS: ThresholdSet = {
    "http_req_duration": ["p(95)<1000", "p(99)<2000"],
    "http_req_failed": ["rate<0.05"],
    "http_reqs": ["rate>50"],
    "checks": ["rate>0.90"],
}

# Per-endpoint limits, matched against the ``endpoint`` request tag
ENDPOINT_THRESHOLDS: ThresholdSet = {
    "http_req_duration{endpoint:login}": ["p(95)<200", "p(99)<500"],
    "http_req_duration{endpoint:list}": ["p(95)<500", "p(99)<1000"],
    "http_req_duration{endpoint:create}": ["p(95)<800", "p(99)<1500"],
    "http_req_duration{endpoint:update}": ["p(95)<800", "p(99)<1500"],
    "http_req_duration{endpoint:delete}": ["p(95)<300", "p(99)<600"],
}

SMOKE_THRESHOLDS: ThresholdSet = {
    "http_req_failed": ["rate<0.05"],
    "http_req_duration": ["p(95)<2000"],
}


def default_thresholds(environ: Optional[Mapping[str, str]] = None) -> ThresholdSet:
    env = os.environ if environ is None else environ
    return {
        "http_req_duration": [
            f"p(95)<{env.get('HTTP_REQ_DURATION_P95', '500')}",
            f"p(99)<{env.get('HTTP_REQ_DURATION_P99', '1000')}",
        ],
        "http_req_failed": [f"rate<{env.get('HTTP_REQ_FAILED_RATE', '0.01')}"],
        "http_reqs": [f"rate>{env.get('HTTP_REQS_RATE', '100')}"],
        "checks": ["rate>0.95"],
    }


def merge_thresholds(*sets: ThresholdSet) -> ThresholdSet:
    """Shallow merge; later sets win on key collision. Lists are copied."""
    merged: ThresholdSet = {}
    for threshold_set in sets:
        for key, conditions in threshold_set.items():
            merged[key] = list(conditions)
    return merged


def get_thresholds_for_environment(env_name: str, environ: Optional[Mapping[str, str]] = None) -> ThresholdSet:
    """Resolve the threshold tier for an environment.

    prod gets the strict tier plus endpoint overrides, dev the relaxed tier
    alone; everything else (qa, staging, unknown) gets the default tier plus
    endpoint overrides.
    """
    if env_name == "prod":
        return merge_thresholds(STRICT_THRESHOLDS, ENDPOINT_THRESHOLDS)
    if env_name == "dev":
        return merge_thresholds(RELAXED_THRESHOLDS)
    return merge_thresholds(default_thresholds(environ), ENDPOINT_THRESHOLDS)
