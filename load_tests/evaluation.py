"""
Threshold evaluation

locust has no threshold engine, so the end-of-run verdict is computed here
from locust's request statistics, the check recorder and the custom
metrics. Expressions follow the k6 syntax:

    http_req_duration{endpoint:login}: ["p(95)<200", "avg<100"]
    http_req_failed:                   ["rate<0.01"]

Keys or conditions we cannot interpret are skipped with a warning rather
than failing the run. A run that sent no request at all fails every
untagged ``http_*`` threshold.
"""

import logging
import operator
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from load_tests.checks import CheckRecorder
from load_tests.metrics import ApiMetrics, Counter, Gauge, Rate, Trend
from load_tests.thresholds import ThresholdSet

logger = logging.getLogger(__name__)

_KEY = re.compile(r"^\s*([A-Za-z_][\w.]*)\s*(?:\{(.*)\})?\s*$")
_CONDITION = re.compile(
    r"^\s*(avg|min|max|med|count|rate|value|p\(\s*(\d+(?:\.\d+)?)\s*\))\s*(<=|>=|==|!=|<|>)\s*(-?\d+(?:\.\d+)?)\s*$"
)
_OPERATORS = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}


@dataclass(frozen=True)
class Condition:
    aggregator: str  # avg, min, max, med, count, rate, value or p
    percentile: Optional[float]
    op: str
    limit: float

    def holds(self, observed: float) -> bool:
        return _OPERATORS[self.op](observed, self.limit)


@dataclass(frozen=True)
class ThresholdResult:
    metric: str
    condition: str
    observed: Optional[float]
    passed: bool
    skipped: bool = False

    def describe(self) -> str:
        if self.skipped:
            return f"- {self.metric} {self.condition}: no data"
        if self.observed is None:
            return f"✗ {self.metric} {self.condition}: no requests were made"
        mark = "✓" if self.passed else "✗"
        return f"{mark} {self.metric} {self.condition} (observed {self.observed:.2f})"


def parse_metric_key(key: str) -> Tuple[str, Dict[str, str]]:
    match = _KEY.match(key)
    if not match:
        raise ValueError(f"Malformed threshold key: {key!r}")

    name, raw_tags = match.group(1), match.group(2)
    tags = {}
    if raw_tags:
        for pair in raw_tags.split(","):
            tag, sep, value = pair.partition(":")
            if not sep or not tag.strip():
                raise ValueError(f"Malformed tag filter in threshold key: {key!r}")
            tags[tag.strip()] = value.strip()
    return name, tags


def parse_condition(expression: str) -> Condition:
    match = _CONDITION.match(expression)
    if not match:
        raise ValueError(f"Malformed threshold condition: {expression!r}")

    aggregator, percentile, op, limit = match.groups()
    if percentile is not None:
        aggregator = "p"
    return Condition(
        aggregator=aggregator,
        percentile=float(percentile) if percentile is not None else None,
        op=op,
        limit=float(limit),
    )


class LocustStats:
    """Read-only view over locust's ``RequestStats`` grouped by endpoint name."""

    def __init__(self, request_stats):
        self.request_stats = request_stats

    def entries(self, tags: Dict[str, str]) -> Optional[list]:
        if not tags:
            return [self.request_stats.total]
        if set(tags) != {"endpoint"}:
            return None  # locust only groups by request name
        return [entry for entry in self.request_stats.entries.values() if entry.name == tags["endpoint"]]

    @staticmethod
    def duration(entries: list, condition: Condition) -> Optional[float]:
        entries = [entry for entry in entries if entry.num_requests]
        if not entries:
            return None
        if condition.aggregator == "p":
            return max(entry.get_response_time_percentile(condition.percentile / 100) for entry in entries)
        if condition.aggregator == "med":
            return max(entry.median_response_time for entry in entries)
        if condition.aggregator == "avg":
            total = sum(entry.num_requests for entry in entries)
            return sum(entry.avg_response_time * entry.num_requests for entry in entries) / total
        if condition.aggregator == "min":
            return min(entry.min_response_time for entry in entries)
        if condition.aggregator == "max":
            return max(entry.max_response_time for entry in entries)
        return None


class RunObservations:
    """Answers "what value did metric X reach" for every metric a threshold can name."""

    def __init__(
        self,
        stats: Optional[LocustStats],
        metrics: Optional[ApiMetrics] = None,
        checks: Optional[CheckRecorder] = None,
        elapsed_seconds: float = 0.0,
    ):
        self.stats = stats
        self.metrics = metrics
        self.checks = checks
        self.elapsed_seconds = elapsed_seconds

    def no_traffic(self) -> bool:
        """True when locust stats exist but not a single request was sent."""
        return self.stats is not None and not self.stats.request_stats.total.num_requests

    def observe(self, name: str, tags: Dict[str, str], condition: Condition) -> Optional[float]:
        if name.startswith("http_"):
            return self._observe_http(name, tags, condition)
        if name == "checks":
            if self.checks is None or not self.checks.rate.total or condition.aggregator != "rate":
                return None
            return self.checks.rate.rate

        metric = self.metrics.get(name) if self.metrics else None
        if metric is None or tags:
            return None
        return self._observe_custom(metric, condition)

    def _observe_http(self, name, tags, condition) -> Optional[float]:
        if self.stats is None:
            return None
        entries = self.stats.entries(tags)
        if entries is None:
            return None

        requests = sum(entry.num_requests for entry in entries)
        if name == "http_req_duration":
            return self.stats.duration(entries, condition)
        if name == "http_req_failed" and condition.aggregator == "rate":
            if not requests:
                return None
            return sum(entry.num_failures for entry in entries) / requests
        if name == "http_reqs":
            if condition.aggregator == "count":
                return requests
            if condition.aggregator == "rate":
                return sum(entry.total_rps for entry in entries)
        return None

    def _observe_custom(self, metric, condition) -> Optional[float]:
        if isinstance(metric, Counter):
            if condition.aggregator == "count":
                return metric.value
            if condition.aggregator == "rate" and self.elapsed_seconds > 0:
                return metric.value / self.elapsed_seconds
        elif isinstance(metric, Trend) and metric.values:
            if condition.aggregator == "p":
                return metric.percentile(condition.percentile)
            snapshot = metric.snapshot()
            return snapshot.get(condition.aggregator)
        elif isinstance(metric, Rate) and metric.total and condition.aggregator == "rate":
            return metric.rate
        elif isinstance(metric, Gauge) and metric.value is not None:
            return {"value": metric.value, "min": metric.min, "max": metric.max}.get(condition.aggregator)
        return None


def evaluate_thresholds(thresholds: ThresholdSet, source: RunObservations) -> List[ThresholdResult]:
    results = []
    for key, expressions in thresholds.items():
        try:
            name, tags = parse_metric_key(key)
        except ValueError as e:
            logger.warning(f"Skipping threshold: {e}")
            continue

        for expression in expressions:
            try:
                condition = parse_condition(expression)
            except ValueError as e:
                logger.warning(f"Skipping threshold on {key}: {e}")
                continue

            if name.startswith("http_") and not tags and source.no_traffic():
                results.append(ThresholdResult(key, expression, None, passed=False))
                continue

            observed = source.observe(name, tags, condition)
            if observed is None:
                results.append(ThresholdResult(key, expression, None, passed=True, skipped=True))
                continue
            results.append(ThresholdResult(key, expression, observed, passed=condition.holds(observed)))
    return results


def thresholds_passed(results: List[ThresholdResult]) -> bool:
    return all(result.passed for result in results)
