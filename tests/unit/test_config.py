"""
Unit tests for DispatchConfig.

Priority: YAML file < environment < explicit overrides.
"""

import os

import pytest

from dispatch.src.config import ConfigError, DispatchConfig, load_env_file

BASE_ENV = {
    "DISPATCH_API_ENDPOINT": "https://env/api/jobs",
    "DISPATCH_EVENT_DATA_PATH": "env-jobs.json",
}


class TestFromEnv:
    """Loading from environment variables."""

    def test_defaults(self):
        config = DispatchConfig.from_env(BASE_ENV)

        assert config.api_endpoint == "https://env/api/jobs"
        assert config.event_data_path == "env-jobs.json"
        assert config.access_token is None
        assert config.max_attempts == 15
        assert config.request_timeout == 30
        assert config.max_jitter == 6
        assert config.max_concurrency == 1
        assert config.log_level == "INFO"

    def test_numeric_values_coerced(self):
        env = dict(BASE_ENV, DISPATCH_MAX_ATTEMPTS="5", DISPATCH_REQUEST_TIMEOUT="2.5")

        config = DispatchConfig.from_env(env)

        assert config.max_attempts == 5
        assert config.request_timeout == 2.5

    def test_missing_endpoint(self):
        with pytest.raises(ConfigError) as exc_info:
            DispatchConfig.from_env({"DISPATCH_EVENT_DATA_PATH": "jobs.json"})

        assert "DISPATCH_API_ENDPOINT" in str(exc_info.value)

    def test_missing_event_data_path(self):
        with pytest.raises(ConfigError):
            DispatchConfig.from_env({"DISPATCH_API_ENDPOINT": "https://h"})

    @pytest.mark.parametrize("name,value", [
        ("DISPATCH_MAX_ATTEMPTS", "many"),
        ("DISPATCH_MAX_ATTEMPTS", "0"),
        ("DISPATCH_MAX_CONCURRENCY", "-1"),
        ("DISPATCH_REQUEST_TIMEOUT", "0"),
        ("DISPATCH_LOG_LEVEL", "LOUD"),
    ])
    def test_invalid_values(self, name, value):
        with pytest.raises(ConfigError):
            DispatchConfig.from_env(dict(BASE_ENV, **{name: value}))


class TestLoad:
    """Layered loading."""

    def test_yaml_then_env_then_overrides(self, tmp_path):
        config_file = tmp_path / "dispatch.yaml"
        config_file.write_text(
            "api_endpoint: https://yaml/api/jobs\n"
            "event_data_path: yaml-jobs.json\n"
            "max_attempts: 3\n"
            "max_jitter: 2\n"
        )
        env = {"DISPATCH_MAX_ATTEMPTS": "7", "DISPATCH_ACCESS_TOKEN": "tok"}

        config = DispatchConfig.load(
            config_path=config_file,
            environ=env,
            overrides={"event_data_path": "cli-jobs.json", "output_path": None},
        )

        assert config.api_endpoint == "https://yaml/api/jobs"
        assert config.max_jitter == 2
        assert config.max_attempts == 7
        assert config.access_token == "tok"
        assert config.event_data_path == "cli-jobs.json"
        assert config.output_path is None

    def test_config_path_from_env(self, tmp_path):
        config_file = tmp_path / "dispatch.yaml"
        config_file.write_text("api_endpoint: https://yaml\nevent_data_path: j.json\n")

        config = DispatchConfig.load(environ={"CONFIG_PATH": str(config_file)})

        assert config.api_endpoint == "https://yaml"

    def test_unknown_keys_rejected(self, tmp_path):
        config_file = tmp_path / "dispatch.yaml"
        config_file.write_text("api_endpoint: https://yaml\nevent_data_path: j\nretries: 3\n")

        with pytest.raises(ConfigError) as exc_info:
            DispatchConfig.load(config_path=config_file, environ={})

        assert "retries" in str(exc_info.value)

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(ConfigError):
            DispatchConfig.load(config_path=tmp_path / "missing.yaml", environ={})

    def test_non_mapping_yaml(self, tmp_path):
        config_file = tmp_path / "dispatch.yaml"
        config_file.write_text("- a\n- b\n")

        with pytest.raises(ConfigError):
            DispatchConfig.load(config_path=config_file, environ={})


class TestLoadEnvFile:
    """Tests for .env loading."""

    def test_loads_existing_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("DISPATCH_TEST_ONLY_VALUE=from-dotenv\n")
        monkeypatch.delenv("DISPATCH_TEST_ONLY_VALUE", raising=False)

        assert load_env_file(env_file) is True

        assert os.environ["DISPATCH_TEST_ONLY_VALUE"] == "from-dotenv"
        monkeypatch.delenv("DISPATCH_TEST_ONLY_VALUE")

    def test_missing_file(self, tmp_path):
        assert load_env_file(tmp_path / ".env") is False


class TestValidation:
    """Values that are present but unusable."""

    @pytest.mark.parametrize("endpoint", ["queue.example.com/api/jobs", "/api/jobs", "file:///jobs"])
    def test_relative_endpoint_rejected(self, endpoint):
        with pytest.raises(ConfigError) as exc_info:
            DispatchConfig(api_endpoint=endpoint, event_data_path="jobs.json")

        assert "absolute" in str(exc_info.value)

    def test_non_string_log_level_rejected(self):
        with pytest.raises(ConfigError):
            DispatchConfig(api_endpoint="https://h", event_data_path="jobs.json", log_level=None)

    def test_empty_yaml_keys_treated_as_unset(self, tmp_path):
        config_file = tmp_path / "dispatch.yaml"
        config_file.write_text(
            "api_endpoint: https://yaml\nevent_data_path: j.json\nlog_level:\nmax_attempts:\n"
        )

        config = DispatchConfig.load(config_path=config_file, environ={})

        assert config.log_level == "INFO"
        assert config.max_attempts == 15

    def test_empty_required_yaml_key_is_config_error(self, tmp_path):
        config_file = tmp_path / "dispatch.yaml"
        config_file.write_text("api_endpoint:\nevent_data_path: j.json\n")

        with pytest.raises(ConfigError):
            DispatchConfig.load(config_path=config_file, environ={})
