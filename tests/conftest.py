"""Shared fakes: a scripted transport, a manual clock and a recording sleep."""

import json

import pytest

from load_tests.config import LoadTestConfig
from load_tests.transport import Response


def build_response(status=200, body=b'{"ok": true}', headers=None, duration_ms=120.0, **kwargs):
    if isinstance(body, (dict, list)):
        body = json.dumps(body).encode()
    elif isinstance(body, str):
        body = body.encode()
    return Response(status=status, headers=headers or {}, body=body, duration_ms=duration_ms, **kwargs)


class FakeTransport:
    """Returns queued responses in order (then the default) and remembers every request."""

    def __init__(self, default=None):
        self.default = default or build_response()
        self.queue = []
        self.requests = []

    def respond_with(self, *responses):
        self.queue.extend(responses)
        return self

    def perform(self, request):
        self.requests.append(request)
        if self.queue:
            return self.queue.pop(0)
        return self.default

    @property
    def last(self):
        return self.requests[-1]


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    """A sleep replacement; the list holds every requested pause."""
    calls = []

    def sleep(seconds):
        calls.append(seconds)

    sleep.calls = calls
    return sleep


@pytest.fixture
def qa_environ():
    return {
        "ENV": "qa",
        "QA_BASE_URL": "https://qa.api.test/",
        "QA_API_KEY": "qa-key",
    }


@pytest.fixture
def qa_config(qa_environ):
    return LoadTestConfig.from_env(qa_environ)


class FakeStatsEntry:
    """The parts of locust's StatsEntry the threshold evaluation reads."""

    def __init__(self, name, method="GET", times=(), failures=0, rps=0.0):
        self.name = name
        self.method = method
        self.times = sorted(times)
        self.num_requests = len(self.times)
        self.num_failures = failures
        self.total_rps = rps

    @property
    def avg_response_time(self):
        return sum(self.times) / len(self.times)

    @property
    def min_response_time(self):
        return self.times[0]

    @property
    def max_response_time(self):
        return self.times[-1]

    @property
    def median_response_time(self):
        return self.get_response_time_percentile(0.5)

    def get_response_time_percentile(self, percent):
        if not self.times:
            return 0
        index = min(int(len(self.times) * percent), len(self.times) - 1)
        return self.times[index]


class FakeRequestStats:
    def __init__(self, *entries):
        self.entries = {(entry.name, entry.method): entry for entry in entries}
        self.total = FakeStatsEntry(
            "Aggregated",
            "",
            [t for entry in entries for t in entry.times],
            failures=sum(entry.num_failures for entry in entries),
            rps=sum(entry.total_rps for entry in entries),
        )


@pytest.fixture
def make_stats_entry():
    return FakeStatsEntry


@pytest.fixture
def make_request_stats():
    return FakeRequestStats
