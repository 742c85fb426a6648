import logging

import pytest

from load_tests.config import LoadTestConfig
from load_tests.environments import (
    EnvironmentConfig,
    build_environments,
    get_current_environment,
    get_environment,
    validate_environment,
)
from load_tests.errors import ConfigurationError


class TestEnvironmentRegistry:
    """Environment table and selection"""

    def test_defaults_to_prod_when_env_unset(self):
        env = get_current_environment({})

        assert env.name == "prod"
        assert env.base_url == "https://api.practicesoftwaretesting.com"
        assert env.max_vus == 500

    @pytest.mark.parametrize("name", ["production", "QA", "", "local", "test"])
    def test_unknown_names_fall_back_to_prod(self, name):
        assert get_current_environment({"ENV": name}).name == "prod"

    @pytest.mark.parametrize(
        "name,max_vus",
        [("dev", 50), ("qa", 100), ("staging", 200), ("prod", 500)],
    )
    def test_known_environments(self, name, max_vus):
        env = get_current_environment({"ENV": name})

        assert env.name == name
        assert env.max_vus == max_vus

    def test_overrides_from_environment_variables(self):
        environ = {
            "STAGING_BASE_URL": "https://stage.internal",
            "STAGING_API_KEY": "s3cret",
            "BASE_URL": "https://prod.internal",
        }
        environments = build_environments(environ)

        assert environments["staging"].base_url == "https://stage.internal"
        assert environments["staging"].api_key == "s3cret"
        assert environments["prod"].base_url == "https://prod.internal"
        assert environments["dev"].api_key == ""

    def test_two_environments_in_one_process(self):
        """Nothing is cached globally, each lookup sees its own variables"""
        first = get_environment("dev", {"DEV_BASE_URL": "https://one"})
        second = get_environment("dev", {"DEV_BASE_URL": "https://two"})

        assert first.base_url == "https://one"
        assert second.base_url == "https://two"

    def test_config_is_immutable(self):
        env = get_environment("qa", {})
        with pytest.raises(AttributeError):
            env.base_url = "https://elsewhere"

    def test_max_vus_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            EnvironmentConfig(name="dev", base_url="https://x", max_vus=0)


class TestValidateEnvironment:
    """Fail-fast startup check"""

    def test_empty_base_url_aborts(self):
        env = get_current_environment({"ENV": "qa", "QA_BASE_URL": ""})

        with pytest.raises(ConfigurationError, match="qa"):
            validate_environment(env)

    def test_whitespace_base_url_aborts(self):
        with pytest.raises(ConfigurationError):
            validate_environment(EnvironmentConfig(name="prod", base_url="   ", max_vus=1))

    def test_valid_environment_logs_target(self, caplog):
        caplog.set_level(logging.INFO)
        validate_environment(get_environment("staging", {}))

        assert "staging (https://staging.api.example.com)" in caplog.text


class TestLoadTestConfig:
    def test_from_env(self, qa_environ):
        config = LoadTestConfig.from_env({**qa_environ, "VUS": "25", "DURATION": "10m", "REPORTS_DIR": "/tmp/r"})

        assert config.env_name == "qa"
        assert config.environment.base_url == "https://qa.api.test/"
        assert config.vus == 25
        assert config.duration == "10m"
        assert config.ramp_up_duration == "30s"
        assert config.reports_dir == "/tmp/r"
        assert "http_req_duration{endpoint:login}" in config.thresholds

    def test_unknown_env_is_not_silent(self, caplog):
        config = LoadTestConfig.from_env({"ENV": "prdo"})

        assert config.environment.name == "prod"
        assert "Unknown ENV 'prdo'" in caplog.text

    @pytest.mark.parametrize("vus", ["", "ten", "2.5"])
    def test_non_integer_vus_is_a_configuration_error(self, qa_environ, vus):
        with pytest.raises(ConfigurationError, match="VUS must be an integer"):
            LoadTestConfig.from_env({**qa_environ, "VUS": vus})

    def test_credentials(self, qa_environ):
        config = LoadTestConfig.from_env({**qa_environ, "API_USERNAME": "ada", "API_PASSWORD": "pw"})

        assert (config.username, config.password) == ("ada", "pw")
        assert LoadTestConfig.from_env(qa_environ).username is None
