"""Tests for config module"""

import os

import pytest
import yaml

from pronestheus.config import (
    Config,
    NestAppConfig,
    NestConfig,
    WeatherConfig,
    WebConfig,
    load_config,
)
from pronestheus.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep PRONESTHEUS_* variables from the host out of the tests."""
    for key in list(os.environ):
        if key.startswith("PRONESTHEUS_"):
            monkeypatch.delenv(key)


class TestConfigDataclasses:
    def test_web_defaults(self):
        config = WebConfig()
        assert config.host == "0.0.0.0"
        assert config.port == 9777
        assert config.metrics_path == "/metrics"

    def test_defaults(self):
        config = Config()
        assert config.timeout == 5000
        assert config.weather.location == "2643743"
        assert config.nest.url == "https://smartdevicemanagement.googleapis.com/v1"
        assert config.nest_app.api_url == "https://home.nest.com"

    def test_nest_configured(self):
        assert not NestConfig().is_configured
        assert not NestConfig(project_id="p").is_configured
        assert NestConfig(project_id="p", refresh_token="r").is_configured

    def test_weather_configured(self):
        assert not WeatherConfig().is_configured
        assert WeatherConfig(api_key="k").is_configured

    def test_nest_app_configured(self):
        assert not NestAppConfig().is_configured
        assert NestAppConfig(auth_url="https://a", auth_cookies="c").is_configured

    def test_nest_app_cookies_without_url(self):
        with pytest.raises(ConfigurationError, match="authentication URL not provided"):
            NestAppConfig(auth_cookies="c").is_configured

    def test_nest_app_url_without_cookies(self):
        with pytest.raises(ConfigurationError, match="no cookies provided"):
            NestAppConfig(auth_url="https://a").is_configured


class TestLoadConfig:
    def test_load_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            yaml.dump(
                {
                    "web": {"port": 9100},
                    "nest": {"project_id": "p", "refresh_token": "r", "label_space_to_dash": True},
                    "weather": {"api_key": "k", "location": "2988507"},
                    "timeout": 2000,
                }
            )
        )

        config = load_config(str(path))

        assert config.web.port == 9100
        assert config.web.host == "0.0.0.0"
        assert config.nest.project_id == "p"
        assert config.nest.label_space_to_dash is True
        assert config.weather.location == "2988507"
        assert config.timeout == 2000

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(str(tmp_path / "missing.yaml"))
        assert config == Config()

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(str(path)) == Config()

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"nest": {"projectid": "p"}}))

        with pytest.raises(ConfigurationError, match="'nest'"):
            load_config(str(path))


class TestEnvOverrides:
    def test_string_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PRONESTHEUS_NEST_REFRESH_TOKEN", "from-env")
        config = load_config(str(tmp_path / "missing.yaml"))
        assert config.nest.refresh_token == "from-env"

    def test_typed_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PRONESTHEUS_WEB_PORT", "9200")
        monkeypatch.setenv("PRONESTHEUS_NEST_LABEL_SPACE_TO_DASH", "true")
        monkeypatch.setenv("PRONESTHEUS_TIMEOUT", "1500")

        config = load_config(str(tmp_path / "missing.yaml"))

        assert config.web.port == 9200
        assert config.nest.label_space_to_dash is True
        assert config.timeout == 1500

    def test_env_wins_over_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"weather": {"api_key": "from-file"}}))
        monkeypatch.setenv("PRONESTHEUS_WEATHER_API_KEY", "from-env")

        assert load_config(str(path)).weather.api_key == "from-env"

    def test_invalid_integer(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PRONESTHEUS_WEB_PORT", "http")

        with pytest.raises(ConfigurationError, match="PRONESTHEUS_WEB_PORT"):
            load_config(str(tmp_path / "missing.yaml"))

    @pytest.mark.parametrize("timeout", ["abc", None, 1.5, True])
    def test_invalid_timeout_in_file(self, tmp_path, timeout):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"timeout": timeout}))

        with pytest.raises(ConfigurationError, match="timeout"):
            load_config(str(path))

    def test_non_positive_timeout(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PRONESTHEUS_TIMEOUT", "0")

        with pytest.raises(ConfigurationError, match="timeout must be positive"):
            load_config(str(tmp_path / "missing.yaml"))


class TestValidateConfig:
    @pytest.mark.parametrize("metrics_path", ["/", "/health", "metrics"])
    def test_unusable_metrics_path(self, tmp_path, metrics_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"web": {"metrics_path": metrics_path}}))

        with pytest.raises(ConfigurationError, match="metrics_path"):
            load_config(str(path))

    def test_custom_metrics_path_allowed(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"web": {"metrics_path": "/scrape"}}))

        assert load_config(str(path)).web.metrics_path == "/scrape"
