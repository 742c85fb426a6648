"""
Per test-type iterations

One scenario per load profile. ``iterate`` performs a single user
iteration (request, checks, metrics, strictly in that order) and returns
the think time to wait before the next one.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from load_tests.checks import CheckRecorder
from load_tests.http_client import ApiClient
from load_tests.metrics import ApiMetrics
from load_tests.rate_limit import RateLimitHandler
from load_tests.run_state import RunState
from load_tests.transport import Response

logger = logging.getLogger(__name__)

STATUS_ENDPOINT = "/status"


@dataclass
class IterationContext:
    client: ApiClient
    checks: CheckRecorder
    metrics: ApiMetrics
    rate_limits: RateLimitHandler
    state: RunState = field(default_factory=RunState)
    active_users: Callable[[], int] = lambda: 0
    clock: Callable[[], float] = time.time


def _record(ctx: IterationContext, response: Response, success: bool) -> None:
    ctx.metrics.record_api_call(success, response.duration_ms)
    ctx.metrics.record_retrieve(success, response.duration_ms)
    ctx.metrics.record_response(response.ttfb_ms, len(response.body or b""))
    if response.status == 0:
        ctx.metrics.record_timeout()
    elif response.status >= 400:
        ctx.metrics.record_error(response.status)
    ctx.rate_limits.update_metrics(response)
    ctx.metrics.iterations.add(1)
    ctx.state.record_iteration(success)


class LoadScenario:
    """Expected normal load against the status endpoint"""

    name = "load"
    max_response_time = 1000
    think_time = 1.0

    def iterate(self, ctx: IterationContext) -> float:
        response = ctx.client.get(STATUS_ENDPOINT, endpoint_tag="status", tags={"operation": "read"})
        success = ctx.checks.check_get_success(response, self.max_response_time)
        _record(ctx, response, success)
        return self.think_time


class StressScenario:
    """Keeps going under rate limiting and errors to find the breaking point"""

    name = "stress"
    max_response_time = 2000
    slow_response_ms = 3000
    think_time = 0.5

    def iterate(self, ctx: IterationContext) -> float:
        response = ctx.client.get(
            STATUS_ENDPOINT,
            endpoint_tag="status",
            tags={"operation": "read", "test_type": "stress"},
        )

        if ctx.rate_limits.handle(response):
            logger.warning("Rate limit encountered during stress test")

        success = ctx.checks.check_get_success(response, self.max_response_time)
        if not ctx.checks.check_no_errors(response):
            logger.warning(f"Error detected: Status {response.status}")

        _record(ctx, response, success)

        if response.duration_ms > self.slow_response_ms:
            logger.warning(f"Slow response detected: {response.duration_ms:.0f}ms")
        return self.think_time


class SpikeScenario:
    """Lenient checks while the user count is spiking, strict ones at baseline"""

    name = "spike"
    spike_users = 100
    spike_detect_users = 50
    slow_response_ms = 3000

    def __init__(self):
        self.spike_detected = False

    def phase(self, users: int) -> str:
        return "spike" if users > self.spike_users else "baseline"

    def iterate(self, ctx: IterationContext) -> float:
        users = ctx.active_users()
        if users > self.spike_detect_users and not self.spike_detected:
            logger.info(f"SPIKE DETECTED - VUs: {users}")
            self.spike_detected = True

        phase = self.phase(users)
        response = ctx.client.get(
            STATUS_ENDPOINT,
            endpoint_tag="status",
            tags={"operation": "read", "test_type": "spike", "phase": phase},
        )

        success = ctx.checks.check_status_success(response)
        ctx.checks.check_get_success(response, 5000 if phase == "spike" else 1000)

        _record(ctx, response, success)
        ctx.metrics.update_active_users(users)

        if ctx.rate_limits.is_rate_limited(response):
            logger.warning(f"Rate limited during spike - VUs: {users}")
        if response.duration_ms > self.slow_response_ms:
            logger.warning(f"Slow response during spike: {response.duration_ms:.0f}ms (VUs: {users})")

        return 0.3 if phase == "spike" else 1.0


class EnduranceScenario:
    """Steady load for hours with periodic progress checkpoints"""

    name = "endurance"
    max_response_time = 1000
    degraded_response_ms = 2000
    think_time = 2.0

    def iterate(self, ctx: IterationContext) -> float:
        now = ctx.clock()
        if ctx.state.due_checkpoint(now):
            logger.info(ctx.state.checkpoint_message(now))

        response = ctx.client.get(
            STATUS_ENDPOINT,
            endpoint_tag="status",
            tags={"operation": "read", "test_type": "endurance"},
        )
        success = ctx.checks.check_api_success(response, self.max_response_time)
        _record(ctx, response, success)

        if response.duration_ms > self.degraded_response_ms:
            logger.warning(
                f"Performance degradation detected at {ctx.state.elapsed_minutes(now):.1f}min: "
                f"{response.duration_ms:.0f}ms"
            )
        return self.think_time


class SmokeScenario:
    """One user, minimal load: is the API answering with JSON at all"""

    name = "smoke"
    think_time = 1.0

    def iterate(self, ctx: IterationContext) -> float:
        response = ctx.client.get(STATUS_ENDPOINT, endpoint_tag="status")
        success = ctx.checks.check_api_success(response)
        _record(ctx, response, success)
        return self.think_time


SCENARIOS = {
    "load": LoadScenario,
    "stress": StressScenario,
    "spike": SpikeScenario,
    "endurance": EnduranceScenario,
    "soak": EnduranceScenario,
    "smoke": SmokeScenario,
}
