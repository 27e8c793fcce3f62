"""
Unit tests for configuration loading and validation.

Tests strict validation of tracker config files and environment overrides.
"""

import os
import tempfile

import pytest
import yaml

from api_usage_tracker.config.loader import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_REFRESH_INTERVAL,
    ENV_API_KEY,
    ENV_ENDPOINT,
    ENV_INITIAL_BALANCE,
    TrackerConfig,
    load_tracker_config,
    resolve_tracker_config
)


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_valid_config_loads_correctly(self):
        """Test that a valid configuration loads correctly."""
        config_data = {
            "api_key": "sk-abc123",
            "endpoint": "https://api.example.com",
            "refresh_interval": 60,
            "initial_balance": 25.5
        }

        config_path = self._write_config(config_data)
        config = load_tracker_config(config_path)

        assert config.api_key == "sk-abc123"
        assert config.endpoint == "https://api.example.com"
        assert config.refresh_interval == 60
        assert config.initial_balance == 25.5
        assert config.is_configured

    def test_optional_fields_use_defaults(self):
        """Test that omitted options fall back to defaults."""
        config_path = self._write_config({"endpoint": "https://api.example.com"})
        config = load_tracker_config(config_path)

        assert config.api_key == ""
        assert config.refresh_interval == DEFAULT_REFRESH_INTERVAL
        assert config.initial_balance == 0.0
        assert not config.is_configured

    def test_strings_are_stripped(self):
        """Test that surrounding whitespace is removed from credentials."""
        config_path = self._write_config({
            "api_key": "  sk-abc123\n",
            "endpoint": " https://api.example.com "
        })
        config = load_tracker_config(config_path)

        assert config.api_key == "sk-abc123"
        assert config.endpoint == "https://api.example.com"

    def test_missing_file_raises_error(self):
        """Test that missing config file raises error."""
        with pytest.raises(FileNotFoundError, match="Tracker config file not found"):
            load_tracker_config("nonexistent.yaml")

    def test_empty_config_raises_error(self):
        """Test that empty config file raises error."""
        config_path = self._write_config({})

        with pytest.raises(ValueError, match="Configuration file is empty"):
            load_tracker_config(config_path)

    def test_non_mapping_config_raises_error(self):
        """Test that a YAML list is rejected."""
        config_path = self._write_config(["api_key", "endpoint"])

        with pytest.raises(ValueError, match="must be a dictionary"):
            load_tracker_config(config_path)

    def test_invalid_yaml_raises_error(self):
        """Test that invalid YAML raises error."""
        config_path = os.path.join(self.temp_dir, "invalid.yaml")
        with open(config_path, 'w') as f:
            f.write("invalid: yaml: content: [")

        with pytest.raises(yaml.YAMLError):
            load_tracker_config(config_path)

    def test_unknown_keys_raise_error(self):
        """Test that unknown keys are rejected."""
        config_path = self._write_config({
            "api_key": "sk-abc123",
            "endpoint": "https://api.example.com",
            "provider": "oneapi"
        })

        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_tracker_config(config_path)

    def test_non_string_api_key_raises_error(self):
        """Test that a numeric api_key is rejected."""
        config_path = self._write_config({"api_key": 12345, "endpoint": "https://api.example.com"})

        with pytest.raises(ValueError, match="'api_key' must be a string"):
            load_tracker_config(config_path)

    def test_negative_refresh_interval_raises_error(self):
        """Test that a negative refresh interval is rejected."""
        config_path = self._write_config({"endpoint": "https://api.example.com", "refresh_interval": -5})

        with pytest.raises(ValueError, match="'refresh_interval' must be >= 0"):
            load_tracker_config(config_path)

    def test_fractional_refresh_interval_raises_error(self):
        """Test that a non-integer refresh interval is rejected."""
        config_path = self._write_config({"endpoint": "https://api.example.com", "refresh_interval": 1.5})

        with pytest.raises(ValueError, match="must be an integer"):
            load_tracker_config(config_path)

    def test_zero_refresh_interval_is_allowed(self):
        """Test that 0 disables auto refresh rather than failing."""
        config_path = self._write_config({"endpoint": "https://api.example.com", "refresh_interval": 0})

        assert load_tracker_config(config_path).refresh_interval == 0

    def test_negative_initial_balance_raises_error(self):
        """Test that a negative initial balance is rejected."""
        config_path = self._write_config({"endpoint": "https://api.example.com", "initial_balance": -1})

        with pytest.raises(ValueError, match="'initial_balance' must be >= 0"):
            load_tracker_config(config_path)

    def test_string_initial_balance_raises_error(self):
        """Test that a non-numeric initial balance is rejected."""
        config_path = self._write_config({"endpoint": "https://api.example.com", "initial_balance": "ten"})

        with pytest.raises(ValueError, match="'initial_balance' must be a number"):
            load_tracker_config(config_path)


class TestConfigResolution:
    """Test per-refresh resolution from file and environment."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_no_file_no_env_is_unconfigured(self, monkeypatch):
        """Test resolution without any source yields an empty config."""
        monkeypatch.chdir(self.temp_dir)

        config = resolve_tracker_config(environ={})

        assert config == TrackerConfig()
        assert not config.is_configured

    def test_default_file_is_used_when_present(self, monkeypatch):
        """Test the default config file in the working directory is picked up."""
        self._write_config(
            {"api_key": "sk-file", "endpoint": "https://file.example.com"},
            filename=DEFAULT_CONFIG_PATH
        )
        monkeypatch.chdir(self.temp_dir)

        config = resolve_tracker_config(environ={})

        assert config.api_key == "sk-file"
        assert config.endpoint == "https://file.example.com"

    def test_explicit_missing_file_raises_error(self):
        """Test that an explicitly requested file must exist."""
        with pytest.raises(FileNotFoundError):
            resolve_tracker_config(os.path.join(self.temp_dir, "missing.yaml"), environ={})

    def test_environment_overrides_file(self):
        """Test environment variables take precedence over the file."""
        config_path = self._write_config({
            "api_key": "sk-file",
            "endpoint": "https://file.example.com",
            "initial_balance": 5
        })
        environ = {
            ENV_API_KEY: "sk-env",
            ENV_ENDPOINT: "https://env.example.com",
            ENV_INITIAL_BALANCE: "12.5"
        }

        config = resolve_tracker_config(config_path, environ=environ)

        assert config.api_key == "sk-env"
        assert config.endpoint == "https://env.example.com"
        assert config.initial_balance == 12.5

    def test_empty_environment_values_are_ignored(self):
        """Test blank environment variables do not clear file values."""
        config_path = self._write_config({"api_key": "sk-file", "endpoint": "https://file.example.com"})

        config = resolve_tracker_config(config_path, environ={ENV_API_KEY: ""})

        assert config.api_key == "sk-file"

    def test_invalid_environment_balance_raises_error(self, monkeypatch):
        """Test a non-numeric balance in the environment is rejected."""
        monkeypatch.chdir(self.temp_dir)

        with pytest.raises(ValueError, match=ENV_INITIAL_BALANCE):
            resolve_tracker_config(environ={ENV_INITIAL_BALANCE: "lots"})

    def test_resolution_rereads_file(self):
        """Test each resolution sees the current file contents."""
        config_path = self._write_config({"api_key": "sk-old", "endpoint": "https://api.example.com"})
        first = resolve_tracker_config(config_path, environ={})

        self._write_config({"api_key": "sk-new", "endpoint": "https://api.example.com"})
        second = resolve_tracker_config(config_path, environ={})

        assert first.api_key == "sk-old"
        assert second.api_key == "sk-new"


class TestTrackerConfig:
    """Test TrackerConfig validation and helpers."""

    def test_negative_values_rejected(self):
        """Test direct construction validates numbers."""
        with pytest.raises(ValueError, match="refresh_interval must be >= 0"):
            TrackerConfig(refresh_interval=-1)
        with pytest.raises(ValueError, match="initial_balance must be >= 0"):
            TrackerConfig(initial_balance=-0.01)

    def test_masked_api_key(self):
        """Test the API key is masked for display."""
        assert TrackerConfig(api_key="sk-1234567890abcd").masked_api_key == "sk-1...abcd"
        assert TrackerConfig(api_key="short").masked_api_key == "*****"
        assert TrackerConfig().masked_api_key == ""
