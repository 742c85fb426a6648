"""
Spike test: sudden jump from 10 to 200 users and back

Checks are lenient while the spike lasts and strict at baseline. Things to
look at afterwards: how quickly the service recovered, whether error rates
returned to normal, whether any failure cascaded.

Run with:
    ENV=qa locust -f load_tests/locustfile_spike.py --headless
"""

from locust import events

from load_tests import lifecycle, scenarios, shape, user
from load_tests.config import LoadTestConfig

config = LoadTestConfig.from_env()
test_run = lifecycle.TestRun(config, "spike")


class SpikeUser(user.ApiUser):
    host = config.environment.base_url
    test_run = test_run
    scenario_class = scenarios.SpikeScenario


class SpikeStages(shape.StagedShape):
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
