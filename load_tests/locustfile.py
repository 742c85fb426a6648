"""
Load test: expected normal traffic against the API

Ramps to VUS users over RAMP_UP_DURATION, holds for DURATION, then ramps
down. Thresholds are the default tier (HTTP_REQ_DURATION_P95/P99,
HTTP_REQ_FAILED_RATE, HTTP_REQS_RATE).

Run with:
    ENV=qa locust -f load_tests/locustfile.py --headless
"""

from locust import events

from load_tests import lifecycle, scenarios, shape, user
from load_tests.config import LoadTestConfig

config = LoadTestConfig.from_env()
test_run = lifecycle.TestRun(config, "load")


class LoadUser(user.ApiUser):
    host = config.environment.base_url
    test_run = test_run
    scenario_class = scenarios.LoadScenario


class LoadStages(shape.StagedShape):
    options = test_run.options
    max_users = config.environment.max_vus


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Validate the environment and health-check the API before any load"""
    test_run.on_test_start(environment, **kwargs)


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print the summary, judge thresholds and save results for baseline comparison"""
    test_run.on_test_stop(environment, **kwargs)
