import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from load_tests.environments import (
    DEFAULT_ENVIRONMENT,
    EnvironmentConfig,
    get_environment,
    is_known_environment,
)
from load_tests.errors import ConfigurationError
from load_tests.thresholds import ThresholdSet, get_thresholds_for_environment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadTestConfig:
    """Everything a run needs, resolved once from the process environment."""

    environment: EnvironmentConfig
    env_name: str = DEFAULT_ENVIRONMENT
    thresholds: ThresholdSet = field(default_factory=dict)

    # Load profile tuning
    vus: int = 10
    duration: str = "5m"
    ramp_up_duration: str = "30s"
    ramp_down_duration: str = "30s"

    reports_dir: str = "reports"

    # Token auth, only used when the environment has no API key
    username: Optional[str] = None
    password: Optional[str] = None

    raw_env: Mapping[str, str] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LoadTestConfig":
        env = dict(os.environ if environ is None else environ)
        env_name = env.get("ENV") or DEFAULT_ENVIRONMENT

        if not is_known_environment(env_name):
            logger.warning(
                f"Unknown ENV '{env_name}': using the {DEFAULT_ENVIRONMENT} environment "
                f"and default thresholds"
            )

        return cls(
            environment=get_environment(env_name, env),
            env_name=env_name,
            thresholds=get_thresholds_for_environment(env_name, env),
            vus=_int_setting(env, "VUS", 10),
            duration=env.get("DURATION", "5m"),
            ramp_up_duration=env.get("RAMP_UP_DURATION", "30s"),
            ramp_down_duration=env.get("RAMP_DOWN_DURATION", "30s"),
            reports_dir=env.get("REPORTS_DIR", "reports"),
            username=env.get("API_USERNAME") or None,
            password=env.get("API_PASSWORD") or None,
            raw_env=env,
        )


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None
