"""
Run lifecycle: one-time setup before load, one-time teardown after it.

Setup validates the environment and health-checks the API; any failure
aborts the run with a non-zero exit code before a single user starts.
Teardown prints the summary, judges the thresholds and saves the results
for baseline comparison.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from load_tests.checks import CheckRecorder
from load_tests.config import LoadTestConfig
from load_tests.environments import validate_environment
from load_tests.errors import ConfigurationError, HealthCheckError
from load_tests.evaluation import (
    LocustStats,
    RunObservations,
    ThresholdResult,
    evaluate_thresholds,
    thresholds_passed,
)
from load_tests.http_client import ApiClient
from load_tests.metrics import ApiMetrics
from load_tests.options import describe_test_config, get_test_options
from load_tests.transport import HttpxTransport, Transport

logger = logging.getLogger(__name__)

HEALTH_ENDPOINT = "/status"

# Stress runs are expected to break things; they report but never fail the build
NON_GATING_TEST_TYPES = ("stress",)


@dataclass
class RunReport:
    test_type: str
    duration_seconds: float
    iterations: int
    errors: int
    thresholds: List[ThresholdResult] = field(default_factory=list)
    latency: Dict[str, float] = field(default_factory=dict)
    metric_lines: List[str] = field(default_factory=list)
    check_lines: List[str] = field(default_factory=list)

    @property
    def error_rate(self) -> float:
        return self.errors / self.iterations if self.iterations else 0.0

    @property
    def passed(self) -> bool:
        return thresholds_passed(self.thresholds)

    def render(self) -> str:
        lines = [
            "=" * 60,
            f"{self.test_type.upper()} TEST - COMPLETED",
            "=" * 60,
            f"Total test duration: {self.duration_seconds / 60:.2f} minutes",
            f"Total iterations:    {self.iterations:,}",
            f"Total errors:        {self.errors:,}",
            f"Overall error rate:  {self.error_rate * 100:.2f}%",
        ]
        if self.latency:
            lines.append("")
            lines.append("Latency:")
            for key in ("p50_ms", "p95_ms", "p99_ms"):
                if key in self.latency:
                    lines.append(f"  {key[:-3].upper():<6} {self.latency[key]}ms")
        if self.check_lines:
            lines.append("")
            lines.append("Checks:")
            lines.extend(f"  {line}" for line in self.check_lines)
        if self.metric_lines:
            lines.append("")
            lines.append("Custom metrics:")
            lines.extend(f"  {line}" for line in self.metric_lines)
        if self.thresholds:
            lines.append("")
            lines.append("Thresholds:")
            lines.extend(f"  {result.describe()}" for result in self.thresholds)
            lines.append("")
            lines.append("All thresholds passed" if self.passed else "FAILED: one or more thresholds crossed")
        lines.append("=" * 60)
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "test_type": self.test_type,
            **self.latency,
            "error_rate": self.error_rate,
            "iterations": self.iterations,
            "errors": self.errors,
            "duration_seconds": self.duration_seconds,
            "thresholds_passed": self.passed,
            "thresholds": [
                {
                    "metric": result.metric,
                    "condition": result.condition,
                    "observed": result.observed,
                    "passed": result.passed,
                    "skipped": result.skipped,
                }
                for result in self.thresholds
            ],
        }


class TestRun:
    """Shared, run-wide objects for one locustfile: config, options, metrics, checks."""

    __test__ = False  # not a pytest class

    def __init__(
        self,
        config: LoadTestConfig,
        test_type: str,
        transport_factory: Callable[[], Transport] = HttpxTransport,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.test_type = test_type
        self.options = get_test_options(test_type, config)
        self.metrics = ApiMetrics()
        self.checks = CheckRecorder()
        self.transport_factory = transport_factory
        self.clock = clock
        self.start_time: Optional[float] = None

    def setup(self) -> dict:
        """Validate the environment and health-check the API. Raises on failure."""
        print("=" * 60)
        print(f"{self.test_type.upper()} TEST - SETUP")
        print("=" * 60)

        validate_environment(self.config.environment)
        print(describe_test_config(self.test_type, self.config))

        transport = self.transport_factory()
        try:
            client = ApiClient(self.config.environment, transport, self.options)
            health = client.get(HEALTH_ENDPOINT, endpoint_tag="health-check")
        finally:
            close = getattr(transport, "close", None)
            if close:
                close()

        if health.status != 200:
            logger.error(f"Health check failed: {health.status} {health.error or ''}".rstrip())
            raise HealthCheckError("API is not healthy, aborting test")

        print("✓ API health check passed")
        self.start_time = self.clock()
        return {"base_url": self.config.environment.base_url, "start_time": self.start_time}

    def teardown(self, stats: Optional[LocustStats] = None) -> RunReport:
        elapsed = self.clock() - self.start_time if self.start_time else 0.0
        observations = RunObservations(stats, self.metrics, self.checks, elapsed)

        latency = {}
        if stats is not None:
            total = stats.request_stats.total
            latency = {
                "p50_ms": total.get_response_time_percentile(0.5),
                "p95_ms": total.get_response_time_percentile(0.95),
                "p99_ms": total.get_response_time_percentile(0.99),
                "total_requests": total.num_requests,
                "failed_requests": total.num_failures,
                "rps": total.total_rps,
            }

        return RunReport(
            test_type=self.test_type,
            duration_seconds=elapsed,
            iterations=int(self.metrics.iterations.value),
            errors=int(self.metrics.api_calls_failed.value),
            thresholds=evaluate_thresholds(self.options.thresholds, observations),
            latency=latency,
            metric_lines=self.metrics.summary_lines(),
            check_lines=self.checks.summary_lines(),
        )

    def save_report(self, report: RunReport) -> Path:
        reports_dir = Path(self.config.reports_dir)
        reports_dir.mkdir(parents=True, exist_ok=True)
        results = report.to_dict()

        for name in (f"{self.test_type}_results.json", "latest.json"):
            with open(reports_dir / name, "w") as f:
                json.dump(results, f, indent=2)
        return reports_dir / "latest.json"

    # locust event listeners

    def on_test_start(self, environment, **kwargs):
        try:
            self.setup()
        except (ConfigurationError, HealthCheckError) as e:
            logger.error(f"Aborting {self.test_type} test: {e}")
            environment.process_exit_code = 1
            if environment.runner is not None:
                environment.runner.quit()

    def on_test_stop(self, environment, **kwargs):
        if self.start_time is None:
            logger.error("Setup did not complete, no results to report")
            return

        report = self.teardown(LocustStats(environment.stats))
        if not report.latency.get("total_requests"):
            logger.error(f"No requests were made during the {self.test_type} test")
        print(report.render())

        path = self.save_report(report)
        print(f"Results saved to: {path}")

        # Thresholds decide the exit code, not locust's "any failure" default
        if self.test_type in NON_GATING_TEST_TYPES:
            environment.process_exit_code = 0
        else:
            environment.process_exit_code = 0 if report.passed else 1
