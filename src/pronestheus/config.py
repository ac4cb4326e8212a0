"""Configuration loading and validation"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Default config search paths (in order)
CONFIG_PATHS = [
    Path("config.yaml"),
    Path.home() / ".config" / "pronestheus" / "config.yaml",
    Path("/etc/pronestheus/config.yaml"),
]

ENV_PREFIX = "PRONESTHEUS_"

# Routes registered by the web app besides the metrics endpoint
RESERVED_PATHS = ("/", "/health")


@dataclass
class WebConfig:
    host: str = "0.0.0.0"
    port: int = 9777
    metrics_path: str = "/metrics"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = ""


@dataclass
class NestConfig:
    """Smart Device Management API (thermostats)"""
    url: str = "https://smartdevicemanagement.googleapis.com/v1"
    client_id: str = ""
    client_secret: str = ""
    project_id: str = ""
    refresh_token: str = ""
    label_space_to_dash: bool = False  # "Living Room" -> "Living-Room" in the label label
    require_thermostats: bool = True  # An empty devices list counts as a failed scrape

    @property
    def is_configured(self) -> bool:
        return bool(self.project_id and self.refresh_token)


@dataclass
class WeatherConfig:
    """OpenWeatherMap API"""
    url: str = "https://api.openweathermap.org/data/2.5/weather"
    api_key: str = ""
    location: str = "2643743"  # London

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


@dataclass
class NestAppConfig:
    """Nest app API (temperature sensors), authenticated with Google cookies"""
    auth_url: str = ""
    auth_cookies: str = ""
    issue_jwt_url: str = "https://nestauthproxyservice-pa.googleapis.com/v1/issue_jwt"
    api_url: str = "https://home.nest.com"

    @property
    def is_configured(self) -> bool:
        """
        Both auth_url and auth_cookies are needed.

        Raises:
            ConfigurationError: If only one of them is set
        """
        if not self.auth_url:
            if self.auth_cookies:
                raise ConfigurationError(
                    "Cookies for Nest app provided, but the Google authentication URL not provided"
                )
            return False
        if not self.auth_cookies:
            raise ConfigurationError(
                "Google auth URL for the Nest app provided, but no cookies provided"
            )
        return True


@dataclass
class Config:
    web: WebConfig = field(default_factory=WebConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    nest: NestConfig = field(default_factory=NestConfig)
    weather: WeatherConfig = field(default_factory=WeatherConfig)
    nest_app: NestAppConfig = field(default_factory=NestAppConfig)
    timeout: int = 5000  # Milliseconds, applied to every upstream request


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations"""
    for path in CONFIG_PATHS:
        if path.exists():
            return path
    return None


def _coerce(raw: str, default: Any, key: str) -> Any:
    """Convert an environment string to the type of the field's default."""
    if isinstance(default, bool):
        return raw.lower() in ("true", "1", "yes")
    if isinstance(default, int):
        try:
            return int(raw)
        except ValueError as e:
            raise ConfigurationError(f"{key} must be an integer, got '{raw}'") from e
    return raw


def _apply_env_overrides(section: Any, prefix: str) -> None:
    for f in fields(section):
        key = f"{prefix}{f.name.upper()}"
        raw = os.environ.get(key)
        if raw is not None:
            setattr(section, f.name, _coerce(raw, getattr(section, f.name), key))


def apply_env_overrides(config: Config) -> Config:
    """
    Override config values from ``PRONESTHEUS_<SECTION>_<KEY>`` variables.

    Example: ``PRONESTHEUS_NEST_REFRESH_TOKEN``, ``PRONESTHEUS_WEB_PORT``,
    ``PRONESTHEUS_TIMEOUT``.
    """
    for section_name in ("web", "logging", "nest", "weather", "nest_app"):
        _apply_env_overrides(getattr(config, section_name), f"{ENV_PREFIX}{section_name.upper()}_")

    raw_timeout = os.environ.get(f"{ENV_PREFIX}TIMEOUT")
    if raw_timeout is not None:
        config.timeout = _coerce(raw_timeout, config.timeout, f"{ENV_PREFIX}TIMEOUT")
    return config


def _section(cls: type, data: dict[str, Any], name: str) -> Any:
    values = data.get(name) or {}
    try:
        return cls(**values)
    except TypeError as e:
        raise ConfigurationError(f"Invalid '{name}' section in config: {e}") from e


def _timeout(data: dict[str, Any]) -> int:
    raw = data.get("timeout", 5000)
    if isinstance(raw, str):
        return _coerce(raw, 5000, "timeout")
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ConfigurationError(f"timeout must be an integer, got '{raw}'")
    return raw


def validate_config(config: Config) -> Config:
    """
    Reject values that would only fail later, at serve or scrape time.

    Raises:
        ConfigurationError: On a non-positive timeout or an unusable metrics path
    """
    if config.timeout <= 0:
        raise ConfigurationError(f"timeout must be positive, got {config.timeout}")

    metrics_path = config.web.metrics_path
    if not metrics_path.startswith("/"):
        raise ConfigurationError(f"web.metrics_path must start with '/', got '{metrics_path}'")
    if metrics_path in RESERVED_PATHS:
        raise ConfigurationError(f"web.metrics_path '{metrics_path}' is already served")
    return config


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from YAML file, then apply environment overrides"""
    if config_path:
        path = Path(config_path)
    else:
        path = find_config_file()

    if path is None or not path.exists():
        logger.warning("No config file found, using defaults")
        return validate_config(apply_env_overrides(Config()))

    logger.info(f"Loading config from: {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    config = Config(
        web=_section(WebConfig, data, "web"),
        logging=_section(LoggingConfig, data, "logging"),
        nest=_section(NestConfig, data, "nest"),
        weather=_section(WeatherConfig, data, "weather"),
        nest_app=_section(NestAppConfig, data, "nest_app"),
        timeout=_timeout(data),
    )
    return validate_config(apply_env_overrides(config))
