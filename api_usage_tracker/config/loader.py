"""
Configuration management and loading.

Resolves gateway credentials and display options from a YAML file and
environment variables. Resolution happens on every refresh so edits are
picked up without restarting.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml


DEFAULT_CONFIG_PATH = ".api-usage-tracker.yaml"
DEFAULT_REFRESH_INTERVAL = 300

ENV_API_KEY = "API_USAGE_TRACKER_API_KEY"
ENV_ENDPOINT = "API_USAGE_TRACKER_ENDPOINT"
ENV_INITIAL_BALANCE = "API_USAGE_TRACKER_INITIAL_BALANCE"


@dataclass(frozen=True)
class TrackerConfig:
    """Credentials and display options for one tracker instance."""
    api_key: str = ""
    endpoint: str = ""
    refresh_interval: int = DEFAULT_REFRESH_INTERVAL
    initial_balance: float = 0.0

    def __post_init__(self):
        """Validate numeric options are non-negative."""
        if self.refresh_interval < 0:
            raise ValueError("refresh_interval must be >= 0")
        if self.initial_balance < 0:
            raise ValueError("initial_balance must be >= 0")

    @property
    def is_configured(self) -> bool:
        """True when both the API key and the endpoint are set."""
        return bool(self.api_key) and bool(self.endpoint)

    @property
    def masked_api_key(self) -> str:
        if not self.api_key:
            return ""
        if len(self.api_key) <= 8:
            return "*" * len(self.api_key)
        return f"{self.api_key[:4]}...{self.api_key[-4:]}"


def load_tracker_config(path: str) -> TrackerConfig:
    """Load and validate tracker configuration from a YAML file.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated TrackerConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Tracker config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_keys = {'api_key', 'endpoint', 'refresh_interval', 'initial_balance'}
    unknown_keys = set(raw_config.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    return TrackerConfig(
        api_key=_parse_string(raw_config, 'api_key'),
        endpoint=_parse_string(raw_config, 'endpoint'),
        refresh_interval=_parse_interval(raw_config),
        initial_balance=_parse_amount(raw_config.get('initial_balance', 0), 'initial_balance')
    )


def resolve_tracker_config(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None
) -> TrackerConfig:
    """Resolve the effective configuration for one refresh cycle.

    The file is optional when no path is given; an explicit path must exist.
    Environment variables override values from the file.

    Args:
        path: Config file path (defaults to DEFAULT_CONFIG_PATH)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated TrackerConfig object
    """
    env = os.environ if environ is None else environ

    if path is not None:
        config = load_tracker_config(path)
    elif Path(DEFAULT_CONFIG_PATH).exists():
        config = load_tracker_config(DEFAULT_CONFIG_PATH)
    else:
        config = TrackerConfig()

    overrides: Dict[str, Any] = {}
    if env.get(ENV_API_KEY):
        overrides['api_key'] = env[ENV_API_KEY].strip()
    if env.get(ENV_ENDPOINT):
        overrides['endpoint'] = env[ENV_ENDPOINT].strip()
    if env.get(ENV_INITIAL_BALANCE):
        try:
            balance = float(env[ENV_INITIAL_BALANCE])
        except ValueError:
            raise ValueError(f"{ENV_INITIAL_BALANCE} must be a number")
        overrides['initial_balance'] = balance

    return replace(config, **overrides) if overrides else config


def _parse_string(data: Dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value.strip()


def _parse_interval(data: Dict) -> int:
    value = data.get('refresh_interval', DEFAULT_REFRESH_INTERVAL)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError("'refresh_interval' must be an integer number of seconds")
    if value < 0:
        raise ValueError("'refresh_interval' must be >= 0")
    return value


def _parse_amount(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number")
    if value < 0:
        raise ValueError(f"'{key}' must be >= 0")
    return float(value)
