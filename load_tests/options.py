"""
Test options per load profile

Combines the shared base options (batching, tags, thresholds) with the
stage list of each test type. Stages ramp linearly from the previous
stage's target, the way k6 ramping-vus profiles do.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple

from load_tests.config import LoadTestConfig
from load_tests.errors import ConfigurationError
from load_tests.thresholds import SMOKE_THRESHOLDS, ThresholdSet, default_thresholds

logger = logging.getLogger(__name__)

DEFAULT_TEST_TYPE = "load"
TEST_TYPES = ("load", "stress", "spike", "endurance", "soak", "smoke")

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}


def parse_duration(value: str) -> float:
    """Convert '30s', '5m', '4h' or '1m30s' into seconds. Bare numbers are seconds."""
    text = str(value).strip()
    if re.fullmatch(r"\d+(?:\.\d+)?", text):
        return float(text)

    parts = _DURATION_PART.findall(text)
    if not text or "".join(number + unit for number, unit in parts) != text:
        raise ConfigurationError(f"Invalid duration: {value!r}")

    return sum(float(number) * _UNIT_SECONDS[unit] for number, unit in parts)


@dataclass(frozen=True)
class Stage:
    duration: str
    target: int

    @property
    def seconds(self) -> float:
        return parse_duration(self.duration)


@dataclass(frozen=True)
class TestOptions:
    stages: Tuple[Stage, ...] = ()
    thresholds: ThresholdSet = field(default_factory=dict)
    tags: Dict[str, str] = field(default_factory=dict)
    batch: int = 20
    batch_per_host: int = 6
    user_agent: str = "locust-performance-tests/1.0"
    no_connection_reuse: bool = False
    # Constant-VU runs (smoke) use vus/duration instead of stages
    vus: Optional[int] = None
    duration: Optional[str] = None

    __test__ = False  # not a pytest class

    def effective_stages(self) -> Tuple[Stage, ...]:
        if self.stages:
            return self.stages
        if self.vus is not None and self.duration is not None:
            return (Stage(self.duration, self.vus),)
        return ()

    def total_duration(self) -> float:
        return sum(stage.seconds for stage in self.effective_stages())

    def target_at(self, elapsed: float) -> Optional[Tuple[int, float]]:
        """Return (target users, spawn rate) at ``elapsed`` seconds, None once finished.

        The first stage ramps from zero users. Constant-VU options start
        at full strength.
        """
        previous = 0
        if not self.stages and self.vus is not None:
            previous = self.vus

        start = 0.0
        for stage in self.effective_stages():
            length = stage.seconds
            if elapsed < start + length:
                progress = (elapsed - start) / length
                users = round(previous + (stage.target - previous) * progress)
                spawn_rate = max(abs(stage.target - previous) / length, 1.0)
                return users, spawn_rate
            start += length
            previous = stage.target

        return None


def base_options(config: LoadTestConfig) -> TestOptions:
    return TestOptions(
        thresholds=config.thresholds,
        tags={
            "test_type": "performance",
            "environment": config.env_name,
        },
    )


def _load_options(config: LoadTestConfig) -> TestOptions:
    return replace(
        base_options(config),
        stages=(
            Stage(config.ramp_up_duration, config.vus),
            Stage(config.duration, config.vus),
            Stage(config.ramp_down_duration, 0),
        ),
        thresholds=default_thresholds(config.raw_env),
    )


def _stress_options(config: LoadTestConfig) -> TestOptions:
    return replace(
        base_options(config),
        stages=(
            Stage("2m", 50),
            Stage("5m", 50),
            Stage("2m", 100),
            Stage("5m", 100),
            Stage("2m", 200),
            Stage("5m", 200),
            Stage("2m", 300),
            Stage("5m", 300),
            Stage("10m", 0),
        ),
    )


def _spike_options(config: LoadTestConfig) -> TestOptions:
    return replace(
        base_options(config),
        stages=(
            Stage("1m", 10),  # baseline
            Stage("30s", 200),  # spike
            Stage("3m", 200),
            Stage("30s", 10),
            Stage("3m", 10),  # recovery
            Stage("30s", 0),
        ),
    )


def _endurance_options(config: LoadTestConfig) -> TestOptions:
    return replace(
        base_options(config),
        stages=(
            Stage("5m", 50),
            Stage("4h", 50),  # soak
            Stage("5m", 0),
        ),
    )


def _smoke_options(config: LoadTestConfig) -> TestOptions:
    return replace(
        base_options(config),
        vus=1,
        duration="1m",
        thresholds=dict(SMOKE_THRESHOLDS),
    )


_BUILDERS = {
    "load": _load_options,
    "stress": _stress_options,
    "spike": _spike_options,
    "endurance": _endurance_options,
    "soak": _endurance_options,
    "smoke": _smoke_options,
}


def get_test_options(test_type: str, config: LoadTestConfig) -> TestOptions:
    """Options for a test type; unknown types fall back to the load profile."""
    key = (test_type or "").lower()
    builder = _BUILDERS.get(key)
    if builder is None:
        logger.warning(f"Unknown test type '{test_type}', using the {DEFAULT_TEST_TYPE} profile")
        builder = _BUILDERS[DEFAULT_TEST_TYPE]
    return builder(config)


def describe_test_config(test_type: str, config: LoadTestConfig) -> str:
    options = get_test_options(test_type, config)
    lines = [
        "=" * 60,
        f"Test Type: {test_type.upper()}",
        f"Environment: {config.environment.name}",
        f"Base URL: {config.environment.base_url}",
        f"Max VUs: {config.environment.max_vus}",
    ]
    if options.stages:
        lines.append(f"Stages: {len(options.stages)}")
    else:
        lines.append(f"VUs: {options.vus}, Duration: {options.duration}")
    lines.append("=" * 60)
    return "\n".join(lines)
