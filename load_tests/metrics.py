"""
Custom metrics

Append-only sinks in the style of k6's Counter/Trend/Rate/Gauge. Test code
only adds values; ``snapshot()`` exists for the end-of-run report and the
threshold evaluation, nothing reads them during an iteration.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class Counter:
    name: str
    value: float = 0

    def add(self, amount: float = 1) -> None:
        self.value += amount

    def snapshot(self) -> Dict[str, float]:
        return {"count": self.value}


@dataclass
class Trend:
    name: str
    is_time: bool = True
    values: List[float] = field(default_factory=list)

    def add(self, value: float) -> None:
        self.values.append(float(value))

    def percentile(self, p: float) -> float:
        """Linear-interpolated percentile, ``p`` in 0-100."""
        if not self.values:
            return 0.0
        ordered = sorted(self.values)
        rank = (len(ordered) - 1) * p / 100
        low = math.floor(rank)
        high = math.ceil(rank)
        return ordered[low] + (ordered[high] - ordered[low]) * (rank - low)

    def snapshot(self) -> Dict[str, float]:
        if not self.values:
            return {"count": 0}
        return {
            "count": len(self.values),
            "avg": sum(self.values) / len(self.values),
            "min": min(self.values),
            "med": self.percentile(50),
            "max": max(self.values),
            "p(90)": self.percentile(90),
            "p(95)": self.percentile(95),
        }


@dataclass
class Rate:
    name: str
    passes: int = 0
    total: int = 0

    def add(self, value: bool) -> None:
        self.total += 1
        if value:
            self.passes += 1

    @property
    def rate(self) -> float:
        return self.passes / self.total if self.total else 0.0

    def snapshot(self) -> Dict[str, float]:
        return {"rate": self.rate, "passes": self.passes, "fails": self.total - self.passes}


@dataclass
class Gauge:
    name: str
    value: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None

    def set(self, value: float) -> None:
        self.value = value
        self.min = value if self.min is None else min(self.min, value)
        self.max = value if self.max is None else max(self.max, value)

    def snapshot(self) -> Dict[str, float]:
        return {"value": self.value, "min": self.min, "max": self.max}


class ApiMetrics:
    """The fixed set of custom metrics for one run."""

    def __init__(self):
        # API calls
        self.api_calls_total = Counter("api_calls_total")
        self.api_calls_success = Counter("api_calls_success")
        self.api_calls_failed = Counter("api_calls_failed")

        # Business operations
        self.items_created = Counter("items_created")
        self.items_updated = Counter("items_updated")
        self.items_deleted = Counter("items_deleted")
        self.items_retrieved = Counter("items_retrieved")

        # Authentication
        self.login_attempts = Counter("login_attempts")
        self.login_success = Counter("login_success")
        self.login_failures = Counter("login_failures")

        # Errors
        self.validation_errors = Counter("validation_errors")
        self.server_errors = Counter("server_errors")
        self.timeout_errors = Counter("timeout_errors")

        self.iterations = Counter("iterations")
        self.rate_limit_hit = Counter("rate_limit_hit")

        # Timings
        self.login_duration = Trend("login_duration")
        self.create_item_duration = Trend("create_item_duration")
        self.update_item_duration = Trend("update_item_duration")
        self.delete_item_duration = Trend("delete_item_duration")
        self.list_items_duration = Trend("list_items_duration")
        self.search_duration = Trend("search_duration")
        self.checkout_duration = Trend("checkout_duration")
        self.payment_processing_time = Trend("payment_processing_time")
        self.ttfb = Trend("time_to_first_byte")

        self.api_success_rate = Rate("api_success_rate")
        self.data_validation_rate = Rate("data_validation_rate")
        self.client_error_rate = Rate("client_error_rate")  # 4xx
        self.server_error_rate = Rate("server_error_rate")  # 5xx
        self.checkout_success_rate = Rate("checkout_success_rate")
        self.search_results_found_rate = Rate("search_results_found_rate")

        self.active_users = Gauge("active_users")
        self.items_in_cart = Gauge("items_in_cart")
        self.average_response_size = Gauge("average_response_size")
        self.rate_limit_remaining = Gauge("rate_limit_remaining")
        self.rate_limit_reset = Gauge("rate_limit_reset_seconds")

        self._response_bytes = 0
        self._responses = 0

    def all(self) -> Dict[str, object]:
        return {
            metric.name: metric
            for metric in vars(self).values()
            if isinstance(metric, (Counter, Trend, Rate, Gauge))
        }

    def get(self, name: str):
        return self.all().get(name)

    def record_api_call(self, success: bool, duration_ms: float = 0) -> None:
        self.api_calls_total.add(1)
        if success:
            self.api_calls_success.add(1)
        else:
            self.api_calls_failed.add(1)
        self.api_success_rate.add(success)

    def record_login(self, success: bool, duration_ms: float) -> None:
        self.login_attempts.add(1)
        self.login_duration.add(duration_ms)
        if success:
            self.login_success.add(1)
        else:
            self.login_failures.add(1)

    def record_create(self, success: bool, duration_ms: float) -> None:
        if success:
            self.items_created.add(1)
        self.create_item_duration.add(duration_ms)

    def record_update(self, success: bool, duration_ms: float) -> None:
        if success:
            self.items_updated.add(1)
        self.update_item_duration.add(duration_ms)

    def record_delete(self, success: bool, duration_ms: float) -> None:
        if success:
            self.items_deleted.add(1)
        self.delete_item_duration.add(duration_ms)

    def record_retrieve(self, success: bool, duration_ms: float) -> None:
        if success:
            self.items_retrieved.add(1)
        self.list_items_duration.add(duration_ms)

    def record_error(self, status_code: int) -> None:
        """Classify an error status into client/validation/server buckets."""
        if 400 <= status_code < 500:
            self.client_error_rate.add(True)
            if status_code in (400, 422):
                self.validation_errors.add(1)
        elif status_code >= 500:
            self.server_error_rate.add(True)
            self.server_errors.add(1)

    def record_timeout(self) -> None:
        self.timeout_errors.add(1)

    def record_search(self, duration_ms: float, results_found: bool) -> None:
        self.search_duration.add(duration_ms)
        self.search_results_found_rate.add(results_found)

    def record_checkout(self, success: bool, duration_ms: float) -> None:
        self.checkout_duration.add(duration_ms)
        self.checkout_success_rate.add(success)

    def record_response(self, ttfb_ms: float, size: int) -> None:
        self.ttfb.add(ttfb_ms)
        self._response_bytes += size
        self._responses += 1
        self.average_response_size.set(self._response_bytes / self._responses)

    def update_active_users(self, count: int) -> None:
        self.active_users.set(count)

    def summary_lines(self) -> List[str]:
        lines = []
        for name, metric in sorted(self.all().items()):
            snapshot = metric.snapshot()
            if isinstance(metric, Counter) and not metric.value:
                continue
            if isinstance(metric, Trend) and not metric.values:
                continue
            if isinstance(metric, Rate) and not metric.total:
                continue
            if isinstance(metric, Gauge) and metric.value is None:
                continue
            values = ", ".join(f"{key}={_fmt(value)}" for key, value in snapshot.items())
            lines.append(f"{name:<28} {values}")
        return lines


def _fmt(value) -> str:
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)
