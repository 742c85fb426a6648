"""
Endurance (soak) test: 50 users for four hours

Logs a checkpoint every five minutes per user and warns on responses
slower than 2s. Compare response times at the start, middle and end of the
run to spot leaks and slow degradation.

Run with:
    ENV=qa locust -f load_tests/locustfile_endurance.py --headless
"""

from locust import events

from load_tests import lifecycle, scenarios, shape, user
from load_tests.config import LoadTestConfig

config = LoadTestConfig.from_env()
test_run = lifecycle.TestRun(config, "endurance")


class EnduranceUser(user.ApiUser):
    host = config.environment.base_url
    test_run = test_run
    scenario_class = scenarios.EnduranceScenario


class EnduranceStages(shape.StagedShape):
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
