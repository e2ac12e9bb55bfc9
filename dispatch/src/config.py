"""
Configuration for the job dispatch client.

Sources, lowest priority first:
    1. YAML config file (CONFIG_PATH or --config)
    2. Environment variables (optionally loaded from a .env file)
    3. Explicit overrides (command-line arguments)

Environment Variables:
    DISPATCH_API_ENDPOINT: Job API endpoint (required)
    DISPATCH_ACCESS_TOKEN: API access token (optional)
    DISPATCH_EVENT_DATA_PATH: Path to the job event JSON (required)
    DISPATCH_MAX_ATTEMPTS: HTTP attempts per job (default: 15)
    DISPATCH_REQUEST_TIMEOUT: Per-attempt timeout in seconds (default: 30)
    DISPATCH_MAX_JITTER: Upper bound of the backoff multiplier (default: 6)
    DISPATCH_MAX_CONCURRENCY: Jobs submitted at once (default: 1)
    DISPATCH_OUTPUT_PATH: Where to write accepted jobs as JSON (optional)
    DISPATCH_LOG_LEVEL: Logging level (default: INFO)
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from dotenv import load_dotenv

from dispatch.src.batch.job_submitter import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_JITTER,
    DEFAULT_REQUEST_TIMEOUT,
    is_absolute_http_url,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "DISPATCH_"

_INT_FIELDS = {"max_attempts", "max_jitter", "max_concurrency"}
_FLOAT_FIELDS = {"request_timeout"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigError(Exception):
    """Raised when required settings are missing or invalid."""
    pass


@dataclass
class DispatchConfig:
    """
    Settings for one dispatch run.

    Attributes:
        api_endpoint: Job API endpoint
        event_data_path: Path to the job event JSON
        access_token: Optional API access token
        max_attempts: HTTP attempts per job
        request_timeout: Per-attempt timeout in seconds
        max_jitter: Backoff multiplier is drawn from 1..max_jitter
        max_concurrency: Jobs submitted at once (1 = sequential)
        output_path: Optional path for the JSON result file
        log_level: Logging level name
    """

    api_endpoint: str
    event_data_path: str
    access_token: Optional[str] = None
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_jitter: int = DEFAULT_MAX_JITTER
    max_concurrency: int = 1
    output_path: Optional[str] = None
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.api_endpoint:
            raise ConfigError("api_endpoint is required (set DISPATCH_API_ENDPOINT)")
        if not is_absolute_http_url(self.api_endpoint):
            raise ConfigError(
                f"api_endpoint must be an absolute http(s) URL, got '{self.api_endpoint}'"
            )
        if not self.event_data_path:
            raise ConfigError("event_data_path is required (set DISPATCH_EVENT_DATA_PATH)")
        for name in ("max_attempts", "max_jitter", "max_concurrency"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be at least 1, got {getattr(self, name)}")
        if self.request_timeout <= 0:
            raise ConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        if not isinstance(self.log_level, str):
            raise ConfigError(f"log_level must be a level name, got {self.log_level!r}")
        self.log_level = self.log_level.upper()
        if self.log_level not in _LOG_LEVELS:
            raise ConfigError(f"Unknown log_level: '{self.log_level}'")

    @classmethod
    def load(
        cls,
        config_path: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "DispatchConfig":
        """
        Build a config from a YAML file, the environment and overrides.

        Args:
            config_path: Optional YAML file; falls back to CONFIG_PATH env var
            environ: Environment mapping (default: os.environ)
            overrides: Values that win over everything else; None values are ignored

        Returns:
            Validated DispatchConfig

        Raises:
            ConfigError: If a file cannot be read or a value is missing/invalid
        """
        environ = os.environ if environ is None else environ
        config_path = config_path or environ.get("CONFIG_PATH")

        values: Dict[str, Any] = {}
        if config_path:
            values.update(_read_yaml(config_path))
        values.update(_read_env(environ))
        values.update({k: v for k, v in (overrides or {}).items() if v is not None})

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

        return _build(cls, values)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DispatchConfig":
        """Load config from environment variables only."""
        return _build(cls, _read_env(os.environ if environ is None else environ))


def load_env_file(env_path: Optional[Union[str, Path]] = None) -> bool:
    """
    Load a .env file into the process environment if present.

    Existing environment variables are not overwritten.

    Returns:
        True if a file was loaded
    """
    path = Path(env_path) if env_path else Path.cwd() / ".env"
    if not path.exists():
        return False
    load_dotenv(path)
    logger.info(f"Loaded environment from: {path}")
    return True


def _read_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot load config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    logger.info(f"Loaded config from: {path}")
    return data


def _read_env(environ: Mapping[str, str]) -> Dict[str, str]:
    values = {}
    for f in fields(DispatchConfig):
        value = environ.get(ENV_PREFIX + f.name.upper())
        if value:
            values[f.name] = value
    return values


def _build(cls, values: Dict[str, Any]) -> "DispatchConfig":
    # Empty YAML keys mean "not set", like empty environment variables
    values = {k: _coerce(k, v) for k, v in values.items() if v is not None}
    values.setdefault("api_endpoint", "")
    values.setdefault("event_data_path", "")
    return cls(**values)


def _coerce(name: str, value: Any) -> Any:
    try:
        if name in _INT_FIELDS:
            return int(value)
        if name in _FLOAT_FIELDS:
            return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {name}: {value!r}")
    return str(value) if value is not None else None
