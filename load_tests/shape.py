import logging

from locust import LoadTestShape

from load_tests.options import TestOptions


class StagedShape(LoadTestShape):
    """Drives the user count through ``options`` stages, capped at the environment's max VUs.

    Subclasses set ``options`` and ``max_users``.
    """

    abstract = True
    options: TestOptions = None
    max_users: int = None

    def tick(self):
        target = self.options.target_at(self.get_run_time())
        if target is None:
            return None

        users, spawn_rate = target
        if self.max_users and users > self.max_users:
            if not getattr(self, "_capped", False):
                logging.warning(f"Stage target {users} exceeds max VUs {self.max_users}, capping")
                self._capped = True
            users = self.max_users
        return users, spawn_rate
