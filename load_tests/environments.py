"""
Environment registry

Maps an environment name to its base URL, API key and VU ceiling.
Values come from a static table, overridden by environment variables.
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from load_tests.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_ENVIRONMENT = "prod"
ENVIRONMENT_NAMES = ("dev", "qa", "staging", "prod")


@dataclass(frozen=True)
class EnvironmentConfig:
    name: str
    base_url: str
    api_key: str = ""
    max_vus: int = 1
    description: str = ""

    def __post_init__(self):
        if self.max_vus <= 0:
            raise ConfigurationError(f"max_vus must be > 0 for {self.name}, got {self.max_vus}")


def build_environments(environ: Optional[Mapping[str, str]] = None) -> Dict[str, EnvironmentConfig]:
    """Build the environment table, applying *_BASE_URL / *_API_KEY overrides."""
    env = os.environ if environ is None else environ

    return {
        "dev": EnvironmentConfig(
            name="dev",
            base_url=env.get("DEV_BASE_URL", "https://dev.api.example.com"),
            api_key=env.get("DEV_API_KEY", ""),
            max_vus=50,
            description="Development environment",
        ),
        "qa": EnvironmentConfig(
            name="qa",
            base_url=env.get("QA_BASE_URL", "https://qa.api.example.com"),
            api_key=env.get("QA_API_KEY", ""),
            max_vus=100,
            description="QA/Testing environment",
        ),
        "staging": EnvironmentConfig(
            name="staging",
            base_url=env.get("STAGING_BASE_URL", "https://staging.api.example.com"),
            api_key=env.get("STAGING_API_KEY", ""),
            max_vus=200,
            description="Staging/Pre-production environment",
        ),
        "prod": EnvironmentConfig(
            name="prod",
            base_url=env.get("BASE_URL", "https://api.practicesoftwaretesting.com"),
            api_key=env.get("API_KEY", ""),
            max_vus=500,
            description="Production environment",
        ),
    }


def is_known_environment(name: Optional[str]) -> bool:
    return name in ENVIRONMENT_NAMES


def get_environment(name: str, environ: Optional[Mapping[str, str]] = None) -> EnvironmentConfig:
    """Return the config for ``name``; unknown names resolve to prod."""
    environments = build_environments(environ)
    return environments.get(name, environments[DEFAULT_ENVIRONMENT])


def get_current_environment(environ: Optional[Mapping[str, str]] = None) -> EnvironmentConfig:
    """Return the environment selected by ``ENV`` (default prod)."""
    env = os.environ if environ is None else environ
    return get_environment(env.get("ENV") or DEFAULT_ENVIRONMENT, env)


def validate_environment(environment: EnvironmentConfig) -> None:
    """Abort the run before any load is generated if the base URL is empty."""
    if not environment.base_url or not environment.base_url.strip():
        raise ConfigurationError(f"BASE_URL is not set for environment: {environment.name}")

    logger.info(f"Running tests against: {environment.name} ({environment.base_url})")
    logger.info(f"Max VUs allowed: {environment.max_vus}")
