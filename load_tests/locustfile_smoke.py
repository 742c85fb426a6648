"""
Smoke test: one user for one minute

Validates the API answers with JSON before running anything heavier.

Run with:
    ENV=qa locust -f load_tests/locustfile_smoke.py --headless
"""

from locust import events

from load_tests import lifecycle, scenarios, shape, user
from load_tests.config import LoadTestConfig

config = LoadTestConfig.from_env()
test_run = lifecycle.TestRun(config, "smoke")


class SmokeUser(user.ApiUser):
    host = config.environment.base_url
    test_run = test_run
    scenario_class = scenarios.SmokeScenario


class SmokeStages(shape.StagedShape):
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
