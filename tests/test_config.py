"""Tests for pipeline configuration loading and validation."""

import pytest
from pydantic import ValidationError

from src.pocket.config import EMBEDDING_DIMENSIONS, PipelineConfig, get_config


class TestDefaults:
    def test_default_values(self, config):
        assert config.classifier_enabled is True
        assert config.primary_provider == "openrouter"
        assert config.secondary_provider == "gemini"
        assert config.auto_confirm_threshold == 95
        assert config.suggest_threshold == 60
        assert config.embedding_dimensions == EMBEDDING_DIMENSIONS == 768
        assert config.min_embedding_length == 20
        assert config.batch_default_size == 3
        assert config.batch_max_size == 50
        assert config.batch_timeout_seconds == 180.0

    def test_config_is_frozen(self, config):
        with pytest.raises(ValidationError):
            config.auto_confirm_threshold = 50


class TestEnvironment:
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("AUTO_CONFIRM_THRESHOLD", "90")
        monkeypatch.setenv("SUGGEST_THRESHOLD", "50")
        monkeypatch.setenv("PRIMARY_PROVIDER", "Claude")
        config = PipelineConfig(_env_file=None)
        assert config.auto_confirm_threshold == 90
        assert config.suggest_threshold == 50
        assert config.primary_provider == "claude"

    def test_api_keys_are_secret(self, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-secret")
        config = PipelineConfig(_env_file=None)
        assert "sk-or-secret" not in repr(config)
        assert config.openrouter_api_key.get_secret_value() == "sk-or-secret"

    def test_get_config_is_cached(self):
        assert get_config() is get_config()


class TestValidation:
    def test_auto_confirm_below_suggest_rejected(self):
        with pytest.raises(ValidationError, match="auto_confirm_threshold"):
            PipelineConfig(_env_file=None, auto_confirm_threshold=50, suggest_threshold=60)

    def test_equal_thresholds_accepted(self):
        config = PipelineConfig(_env_file=None, auto_confirm_threshold=70, suggest_threshold=70)
        assert config.auto_confirm_threshold == config.suggest_threshold

    @pytest.mark.parametrize("value", [-1, 101])
    def test_threshold_out_of_range(self, value):
        with pytest.raises(ValidationError):
            PipelineConfig(_env_file=None, auto_confirm_threshold=value)

    def test_unknown_primary_provider(self):
        with pytest.raises(ValidationError, match="Unknown provider"):
            PipelineConfig(_env_file=None, primary_provider="mystery")

    @pytest.mark.parametrize("value", ["none", "", "NONE"])
    def test_secondary_provider_can_be_disabled(self, value):
        config = PipelineConfig(_env_file=None, secondary_provider=value)
        assert config.secondary_provider is None

    def test_batch_default_above_max_rejected(self):
        with pytest.raises(ValidationError):
            PipelineConfig(_env_file=None, batch_default_size=20, batch_max_size=10)

    def test_log_level_normalized(self):
        assert PipelineConfig(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_invalid_log_format(self):
        with pytest.raises(ValidationError):
            PipelineConfig(_env_file=None, log_format="xml")


class TestHelpers:
    def test_provider_order(self, config):
        assert config.provider_order() == ["openrouter", "gemini"]

    def test_provider_order_drops_duplicate_secondary(self):
        config = PipelineConfig(
            _env_file=None, primary_provider="gemini", secondary_provider="gemini"
        )
        assert config.provider_order() == ["gemini"]

    def test_bucket_settings(self, config):
        assert config.bucket_settings("openrouter") == (50, 600)
        assert config.bucket_settings("gemini") == (40, 40)
        assert config.bucket_settings("ollama") == (10, 60)
