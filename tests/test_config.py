"""
Unit tests for configuration loading and validation.

Tests strict validation and error handling for application settings.
"""

import os
import shutil
import tempfile

import pytest
import yaml

from token_telemetry.config.loader import (
    ApiConfig,
    Settings,
    StreamingConfig,
    SummaryConfig,
    default_settings,
    load_settings,
)


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_no_path_returns_defaults(self):
        """Test that omitting the path yields built-in defaults."""
        settings = load_settings(None)
        assert settings == default_settings()
        assert settings.api.default_limit == 100
        assert settings.api.max_limit == 1000
        assert settings.summary.top_models == 10
        assert settings.streaming.sample_interval_ms == 200
        assert settings.streaming.window_ms == 2000
        assert settings.streaming.chars_per_token == 4
        assert settings.streaming.min_final_duration == 0.5
        assert settings.log_level == "INFO"

    def test_valid_config_loads_correctly(self):
        """Test that a valid configuration loads correctly."""
        config_data = {
            "database": {"path": "/var/lib/telemetry/ledger.db"},
            "api": {"default_limit": 50, "max_limit": 500},
            "summary": {"top_models": 5},
            "streaming": {
                "sample_interval_ms": 100,
                "window_ms": 3000,
                "chars_per_token": 3,
                "min_final_duration": 1,
            },
            "preferences": {"path": "/tmp/prefs.yaml"},
            "logging": {"level": "debug"},
        }

        config_path = self._write_config(config_data)
        settings = load_settings(config_path)

        assert settings.database.path == "/var/lib/telemetry/ledger.db"
        assert settings.api == ApiConfig(default_limit=50, max_limit=500)
        assert settings.summary == SummaryConfig(top_models=5)
        assert settings.streaming == StreamingConfig(
            sample_interval_ms=100, window_ms=3000, chars_per_token=3, min_final_duration=1.0
        )
        assert isinstance(settings.streaming.min_final_duration, float)
        assert settings.preferences.path == "/tmp/prefs.yaml"
        assert settings.log_level == "DEBUG"

    def test_partial_config_keeps_other_defaults(self):
        """Test that omitted sections and keys fall back to defaults."""
        config_path = self._write_config({"api": {"max_limit": 200}})
        settings = load_settings(config_path)

        assert settings.api.max_limit == 200
        assert settings.api.default_limit == 100
        assert settings.summary == SummaryConfig()
        assert settings.streaming == StreamingConfig()

    def test_empty_config_returns_defaults(self):
        """Test that an empty file is the same as no file."""
        config_path = os.path.join(self.temp_dir, "empty.yaml")
        open(config_path, 'w').close()
        assert load_settings(config_path) == Settings()

    def test_missing_file_raises_error(self):
        """Test that missing config file raises error."""
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_settings(os.path.join(self.temp_dir, "nonexistent.yaml"))

    def test_invalid_yaml_raises_error(self):
        """Test that invalid YAML raises error."""
        config_path = os.path.join(self.temp_dir, "invalid.yaml")
        with open(config_path, 'w') as f:
            f.write("invalid: yaml: content: [")

        with pytest.raises(yaml.YAMLError):
            load_settings(config_path)

    def test_non_mapping_root_raises_error(self):
        """Test that a list at the root is rejected."""
        config_path = self._write_config(["database", "api"])
        with pytest.raises(ValueError, match="root must be a dictionary"):
            load_settings(config_path)

    def test_unknown_top_level_keys_raise_error(self):
        """Test that unknown top-level keys raise error."""
        config_path = self._write_config({"budget": {"daily": 100.0}})
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_settings(config_path)

    def test_unknown_section_keys_raise_error(self):
        """Test that a typo inside a section raises error."""
        config_path = self._write_config({"api": {"default_limt": 10}})
        with pytest.raises(ValueError, match="Unknown keys in api"):
            load_settings(config_path)

    def test_section_must_be_mapping(self):
        """Test that a scalar section raises error."""
        config_path = self._write_config({"summary": 10})
        with pytest.raises(ValueError, match="'summary' must be a dictionary"):
            load_settings(config_path)

    def test_non_integer_limit_raises_error(self):
        """Test that string and boolean limits are rejected."""
        config_path = self._write_config({"api": {"max_limit": "1000"}})
        with pytest.raises(ValueError, match="must be an integer"):
            load_settings(config_path)

        config_path = self._write_config({"summary": {"top_models": True}}, "bool.yaml")
        with pytest.raises(ValueError, match="must be an integer"):
            load_settings(config_path)

    def test_default_limit_above_max_raises_error(self):
        """Test that default_limit must fit under max_limit."""
        config_path = self._write_config({"api": {"default_limit": 2000, "max_limit": 1000}})
        with pytest.raises(ValueError, match="default_limit must be between"):
            load_settings(config_path)

    def test_zero_top_models_raises_error(self):
        """Test that the breakdown needs at least one entry."""
        config_path = self._write_config({"summary": {"top_models": 0}})
        with pytest.raises(ValueError, match="top_models must be >= 1"):
            load_settings(config_path)

    def test_empty_database_path_raises_error(self):
        """Test that a blank path is rejected."""
        config_path = self._write_config({"database": {"path": "  "}})
        with pytest.raises(ValueError, match="non-empty string"):
            load_settings(config_path)

    def test_invalid_log_level_raises_error(self):
        """Test that unknown log levels are rejected."""
        config_path = self._write_config({"logging": {"level": "verbose"}})
        with pytest.raises(ValueError, match="must be one of"):
            load_settings(config_path)


class TestStreamingConfig:
    """Test estimator timing validation."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _load(self, streaming: dict) -> Settings:
        config_path = os.path.join(self.temp_dir, "config.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump({"streaming": streaming}, f)
        return load_settings(config_path)

    def test_window_must_exceed_interval(self):
        with pytest.raises(ValueError, match="window_ms must be greater"):
            self._load({"sample_interval_ms": 500, "window_ms": 500})

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError, match="sample_interval_ms must be > 0"):
            self._load({"sample_interval_ms": 0})

    def test_chars_per_token_must_be_positive(self):
        with pytest.raises(ValueError, match="chars_per_token must be > 0"):
            self._load({"chars_per_token": 0})

    def test_min_final_duration_must_be_number(self):
        with pytest.raises(ValueError, match="must be a number"):
            self._load({"min_final_duration": "half a second"})

    def test_negative_min_final_duration_raises_error(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            self._load({"min_final_duration": -1.0})

    def test_float_interval_rejected(self):
        with pytest.raises(ValueError, match="must be an integer"):
            self._load({"sample_interval_ms": 200.5})


class TestSettingsImmutability:
    """Settings objects are frozen."""

    def test_cannot_mutate(self):
        settings = default_settings()
        with pytest.raises(Exception):
            settings.log_level = "DEBUG"
