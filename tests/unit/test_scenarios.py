import pytest

from load_tests.checks import CheckRecorder
from load_tests.environments import EnvironmentConfig
from load_tests.http_client import ApiClient
from load_tests.metrics import ApiMetrics
from load_tests.rate_limit import RateLimitHandler
from load_tests.run_state import RunState
from load_tests.scenarios import (
    SCENARIOS,
    EnduranceScenario,
    IterationContext,
    LoadScenario,
    SmokeScenario,
    SpikeScenario,
    StressScenario,
)


@pytest.fixture
def ctx(transport, sleeps, clock):
    env = EnvironmentConfig(name="qa", base_url="https://api.test", max_vus=100)
    metrics = ApiMetrics()
    return IterationContext(
        client=ApiClient(env, transport),
        checks=CheckRecorder(),
        metrics=metrics,
        rate_limits=RateLimitHandler(metrics, sleep=sleeps, clock=clock),
        state=RunState(start_time=clock.now),
        clock=clock,
    )


class TestLoadScenario:
    def test_healthy_response_counts_one_success(self, ctx, transport, make_response):
        transport.respond_with(make_response(status=200, body={"ok": True}, duration_ms=120))

        think = LoadScenario().iterate(ctx)

        assert think == 1.0
        assert ctx.metrics.api_calls_success.value == 1
        assert ctx.metrics.api_calls_failed.value == 0
        assert ctx.metrics.items_retrieved.value == 1
        assert ctx.metrics.iterations.value == 1
        assert ctx.checks.rate.rate == 1.0

    def test_request_is_tagged(self, ctx, transport):
        LoadScenario().iterate(ctx)

        request = transport.last
        assert request.url == "https://api.test/status"
        assert request.tags["endpoint"] == "status"
        assert request.tags["operation"] == "read"

    def test_slow_response_is_a_failure(self, ctx, transport, make_response):
        transport.respond_with(make_response(duration_ms=1200))

        LoadScenario().iterate(ctx)

        assert ctx.metrics.api_calls_failed.value == 1
        assert ctx.state.error_count == 1

    def test_server_error_is_classified(self, ctx, transport, make_response):
        transport.respond_with(make_response(status=503, body={"error": "down"}))

        LoadScenario().iterate(ctx)

        assert ctx.metrics.server_errors.value == 1
        assert ctx.metrics.api_calls_failed.value == 1

    def test_connection_error_counts_as_timeout(self, ctx, transport, make_response):
        transport.respond_with(make_response(status=0, body=None, error="refused"))

        LoadScenario().iterate(ctx)

        assert ctx.metrics.timeout_errors.value == 1


class TestStressScenario:
    def test_rate_limited_iteration_waits_and_does_not_retry(self, ctx, transport, sleeps, make_response):
        transport.respond_with(make_response(status=429, headers={"Retry-After": "5"}, body={"error": "slow down"}))

        think = StressScenario().iterate(ctx)

        assert sleeps.calls == [5]
        assert len(transport.requests) == 1
        assert ctx.metrics.rate_limit_hit.value == 1
        assert ctx.metrics.api_calls_failed.value == 1
        assert think == 0.5

    def test_next_iteration_proceeds_normally(self, ctx, transport, sleeps, make_response):
        transport.respond_with(make_response(status=429, headers={"Retry-After": "2"}))
        scenario = StressScenario()

        scenario.iterate(ctx)
        scenario.iterate(ctx)

        assert sleeps.calls == [2]
        assert len(transport.requests) == 2
        assert ctx.metrics.api_calls_success.value == 1

    def test_lenient_ceiling_and_slow_warning(self, ctx, transport, make_response, caplog):
        transport.respond_with(make_response(duration_ms=1500), make_response(duration_ms=3500))
        scenario = StressScenario()

        scenario.iterate(ctx)
        scenario.iterate(ctx)

        assert ctx.metrics.api_calls_success.value == 1
        assert "Slow response detected: 3500ms" in caplog.text

    def test_error_body_is_reported(self, ctx, transport, make_response, caplog):
        transport.respond_with(make_response(status=200, body={"error": "partial"}))

        StressScenario().iterate(ctx)

        assert "Error detected: Status 200" in caplog.text
        assert ctx.checks.results["no error field in response"]["fails"] == 1


class TestSpikeScenario:
    def test_baseline_phase(self, ctx, transport, make_response):
        ctx.active_users = lambda: 10
        transport.respond_with(make_response(duration_ms=1500))

        think = SpikeScenario().iterate(ctx)

        assert think == 1.0
        assert transport.last.tags["phase"] == "baseline"
        assert ctx.checks.results["GET response time OK"]["fails"] == 1
        assert ctx.metrics.active_users.value == 10

    def test_spike_phase_is_lenient(self, ctx, transport, make_response, caplog):
        caplog.set_level("INFO")
        ctx.active_users = lambda: 180
        transport.respond_with(make_response(duration_ms=4000))
        scenario = SpikeScenario()

        think = scenario.iterate(ctx)

        assert think == 0.3
        assert transport.last.tags["phase"] == "spike"
        assert ctx.checks.results["GET response time OK"]["passes"] == 1
        assert scenario.spike_detected
        assert "SPIKE DETECTED - VUs: 180" in caplog.text

    def test_success_is_status_only(self, ctx, transport, make_response):
        ctx.active_users = lambda: 10
        transport.respond_with(make_response(status=204, body=b""))

        SpikeScenario().iterate(ctx)

        assert ctx.metrics.api_calls_success.value == 1


class TestEnduranceScenario:
    def test_checkpoint_logged_after_interval(self, ctx, clock, caplog):
        scenario = EnduranceScenario()
        caplog.set_level("INFO")

        scenario.iterate(ctx)
        clock.advance(301)
        scenario.iterate(ctx)

        assert ctx.state.iteration_count == 2
        assert "Checkpoint: 5.0min elapsed, 1 iterations, 0.00% errors" in caplog.text

    def test_errors_counted_in_run_state(self, ctx, transport, make_response):
        transport.respond_with(make_response(status=500), make_response(), make_response(duration_ms=1001))
        scenario = EnduranceScenario()

        for _ in range(3):
            assert scenario.iterate(ctx) == 2.0

        assert ctx.state.iteration_count == 3
        assert ctx.state.error_count == 2

    def test_degradation_warning(self, ctx, transport, make_response, caplog):
        transport.respond_with(make_response(duration_ms=2500))

        EnduranceScenario().iterate(ctx)

        assert "Performance degradation detected" in caplog.text


def test_smoke_scenario(ctx, transport, make_response):
    transport.respond_with(make_response(body="not json"))

    assert SmokeScenario().iterate(ctx) == 1.0
    assert ctx.metrics.api_calls_failed.value == 1


def test_every_test_type_has_a_scenario():
    assert set(SCENARIOS) == {"load", "stress", "spike", "endurance", "soak", "smoke"}
