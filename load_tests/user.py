"""Base locust user shared by every locustfile."""

import logging

from locust import HttpUser, task
from locust.exception import StopUser

from load_tests.auth import Authenticator, AuthToken, Credentials
from load_tests.errors import AuthenticationError
from load_tests.http_client import ApiClient
from load_tests.rate_limit import RateLimitHandler
from load_tests.run_state import RunState
from load_tests.scenarios import IterationContext
from load_tests.transport import LocustTransport


class ApiUser(HttpUser):
    """Runs ``scenario.iterate`` once per task execution.

    Subclasses set ``test_run`` (a lifecycle.TestRun), ``scenario_class`` and
    ``host``. Each user gets its own scenario instance and run state. When
    credentials are configured the user logs in once and keeps its bearer
    token fresh; API key users send the key with every request.
    """

    abstract = True
    test_run = None
    scenario_class = None

    def on_start(self):
        """Per-user setup: transport, client, auth and private run state"""
        self.state = RunState()
        self.scenario = self.scenario_class()
        self.api = ApiClient(self.test_run.config.environment, self.make_transport(), self.test_run.options)
        self.context = IterationContext(
            client=self.api,
            checks=self.test_run.checks,
            metrics=self.test_run.metrics,
            rate_limits=RateLimitHandler(self.test_run.metrics),
            state=self.state,
            active_users=self._active_users,
        )
        self.think_time = 1.0

        config = self.test_run.config
        self.credentials = None
        if config.username:
            self.credentials = Credentials(username=config.username, password=config.password)
        self.authenticator = Authenticator(self.api, self.test_run.metrics)
        self.auth_token = None
        if self.credentials is not None:
            try:
                auth = self.authenticator.setup_authentication(self.credentials)
            except AuthenticationError as e:
                logging.error(f"Stopping user: {e}")
                raise StopUser()
            if isinstance(auth, AuthToken):
                self._use_token(auth)

    def on_stop(self):
        if self.auth_token is not None:
            self.authenticator.logout(self.auth_token)
        logging.debug(
            f"User finished: {self.state.iteration_count} iterations, {self.state.error_count} errors"
        )

    def make_transport(self):
        return LocustTransport(self.client)

    def _use_token(self, auth_token: AuthToken):
        self.auth_token = auth_token
        self.api.bearer_token = auth_token.token

    def _refresh_auth(self):
        auth_token = self.authenticator.ensure_fresh(self.auth_token)
        if auth_token is None:
            auth_token = self.authenticator.authenticate(self.credentials)
        if auth_token is None:
            logging.error("Stopping user: could not renew the auth token")
            raise StopUser()
        self._use_token(auth_token)

    def _active_users(self) -> int:
        runner = self.environment.runner
        return runner.user_count if runner else 0

    def wait_time(self):
        return self.think_time

    @task
    def iteration(self):
        if self.auth_token is not None:
            self._refresh_auth()
        self.think_time = self.scenario.iterate(self.context)
